import pandas as pd
import pytest

import delivery_analytics.data_contract as dc
from delivery_analytics.coordinates import CoordinateRepairer
from delivery_analytics.data_cleaning import DataCleaner, is_sentinel
from delivery_analytics.data_loader import assign_types
from delivery_analytics.snapshot import SnapshotWriter, load_snapshot
from conftest import make_row


def test_cleaned_rows_satisfy_contract(clean_data):
    assert clean_data['Delivery_Time'].between(dc.DELIVERY_TIME_MIN, dc.DELIVERY_TIME_MAX).all()
    assert clean_data['Agent_Age'].between(dc.AGENT_AGE_MIN, dc.AGENT_AGE_MAX).all()
    assert clean_data['Agent_Rating'].between(dc.AGENT_RATING_MIN, dc.AGENT_RATING_MAX).all()
    for lat_col, lon_col in dc.COORDINATE_PAIRS:
        assert clean_data[lat_col].between(dc.LATITUDE_MIN, dc.LATITUDE_MAX).all()
        assert clean_data[lon_col].between(dc.LONGITUDE_MIN, dc.LONGITUDE_MAX).all()
        assert not ((clean_data[lat_col] == 0) & (clean_data[lon_col] == 0)).any()
    assert not clean_data.duplicated().any()


def test_end_to_end_scenario(clean_data):
    # Rows 0, 1, 9 and 10 of the fixture survive.
    assert list(clean_data.index) == [0, 1, 9, 10]
    assert 300 not in clean_data['Delivery_Time'].values
    assert 10 not in clean_data['Agent_Age'].values
    assert 'unknown' not in clean_data['Weather'].values


def test_duplicate_leaves_one_copy(clean_data):
    base = make_row()
    matches = clean_data[
        (clean_data['Delivery_Time'] == base['Delivery_Time'])
        & (clean_data['Category'] == base['Category'])
        & (clean_data['Weather'] == base['Weather'])
    ]
    assert len(matches) == 1


def test_stats_count_each_rule(clean_data):
    stats = clean_data.attrs["stats"]

    assert stats["initial_rows"] == 12
    assert stats["missing_values"] == 1
    assert stats["violation_delivery_time"] == 1
    assert stats["violation_agent_age"] == 1
    assert stats["violation_agent_rating"] == 1
    assert stats["violation_sentinel"] == 1
    assert stats["violation_coordinates"] == 4
    assert stats["coordinates_repaired"] == 1
    assert stats["coordinates_dropped"] == 2
    assert stats["duplicate_rows"] == 1
    assert stats["clean_rows"] == 4
    assert stats["dropped_rows"] == 8


def test_repaired_rows_are_reported(clean_data):
    assert clean_data.attrs["repaired_index"] == [10]
    assert clean_data[dc.COORDINATES_REPAIRED].tolist() == [0, 0, 0, 1]


def test_repair_flag_survives_the_snapshot(clean_data, tmp_path):
    path = SnapshotWriter(str(tmp_path / "coords.csv")).write(clean_data, quote=False)

    assert load_snapshot(path)[dc.COORDINATES_REPAIRED].tolist() == [0, 0, 0, 1]


def test_cleaning_is_idempotent(clean_data, cleaner):
    again = cleaner.clean(clean_data)

    assert again.equals(clean_data)
    assert again.attrs["stats"]["dropped_rows"] == 0


def test_cleaning_is_deterministic(raw_data, cleaner):
    assert cleaner.clean(raw_data).equals(cleaner.clean(raw_data))


def test_dropped_sample_written(clean_data):
    path = clean_data.attrs["dropped_sample_path"]
    sample = pd.read_csv(path)

    assert 0 < len(sample) <= 100


def test_empty_result_is_critical(cleaner):
    raw = assign_types(pd.DataFrame([make_row(Delivery_Time=500)]))

    with pytest.raises(ValueError, match="Data Quality Critical"):
        cleaner.clean(raw)


def test_sentinel_matching_ignores_case_and_whitespace():
    values = pd.Series(['Unknown', ' NaN ', 'Sunny', 'unknown '])
    assert is_sentinel(values).tolist() == [True, True, False, True]


def test_duplicates_compared_after_coordinate_repair(tmp_path):
    # Identical once the latitude sign is normalised.
    raw = assign_types(pd.DataFrame([
        make_row(),
        make_row(Store_Latitude=-make_row()['Store_Latitude']),
    ]))
    cleaned = DataCleaner(artifact_dir=str(tmp_path)).clean(raw)

    assert len(cleaned) == 1
    assert cleaned.attrs["stats"]["duplicate_rows"] == 1


class TestCoordinateRepairer:
    def frame(self, **overrides):
        return assign_types(pd.DataFrame([make_row(**overrides)]))

    def test_out_of_range_latitude_takes_longitude(self):
        repaired = CoordinateRepairer().repair(self.frame(Store_Latitude=200.0, Store_Longitude=40.0))

        assert repaired['Store_Latitude'].iloc[0] == 40.0
        assert repaired['Store_Longitude'].iloc[0] == 40.0
        assert repaired.attrs["coordinate_stats"]["repaired_rows"] == 1

    def test_out_of_range_latitude_uses_absolute_longitude(self):
        repaired = CoordinateRepairer().repair(self.frame(Drop_Latitude=-120.0, Drop_Longitude=-75.5))

        assert repaired['Drop_Latitude'].iloc[0] == 75.5
        assert repaired['Drop_Longitude'].iloc[0] == -75.5

    def test_out_of_range_longitude_takes_latitude(self):
        repaired = CoordinateRepairer().repair(self.frame(Store_Latitude=-22.5, Store_Longitude=722.5))

        assert repaired['Store_Latitude'].iloc[0] == 22.5
        assert repaired['Store_Longitude'].iloc[0] == 22.5

    def test_negative_latitude_made_positive(self):
        repaired = CoordinateRepairer().repair(self.frame(Store_Latitude=-12.5))

        assert repaired['Store_Latitude'].iloc[0] == 12.5
        assert repaired.attrs["coordinate_stats"]["repaired_rows"] == 0

    def test_origin_pairs_dropped(self):
        repaired = CoordinateRepairer().repair(self.frame(Drop_Latitude=0.0, Drop_Longitude=0.0))

        assert repaired.empty
        assert repaired.attrs["coordinate_stats"]["dropped_rows"] == 1

    def test_unrepairable_pairs_dropped(self):
        repaired = CoordinateRepairer().repair(self.frame(Store_Latitude=95.0, Store_Longitude=250.0))

        assert repaired.empty

    def test_valid_rows_untouched(self):
        original = self.frame()
        repaired = CoordinateRepairer().repair(original)

        assert repaired.drop(columns=dc.COORDINATES_REPAIRED).equals(original)
        assert repaired[dc.COORDINATES_REPAIRED].tolist() == [0]

    def test_blanked_value_filled_from_partner(self):
        repaired = CoordinateRepairer().repair(self.frame(Drop_Latitude=95.0, Drop_Longitude=77.25))

        assert repaired['Drop_Latitude'].notna().all()
        assert repaired['Drop_Latitude'].iloc[0] == 77.25
        assert repaired[dc.COORDINATES_REPAIRED].tolist() == [1]

    def test_flag_kept_on_a_second_pass(self):
        repairer = CoordinateRepairer()
        once = repairer.repair(self.frame(Store_Latitude=200.0, Store_Longitude=40.0))
        twice = repairer.repair(once)

        assert twice.attrs["coordinate_stats"]["repaired_rows"] == 0
        assert twice[dc.COORDINATES_REPAIRED].tolist() == [1]

    def test_pairs_default_to_store_and_drop(self):
        assert CoordinateRepairer().pairs == dc.COORDINATE_PAIRS
        assert CoordinateRepairer(pairs=[dc.STORE_COORDS]).pairs == [dc.STORE_COORDS]
