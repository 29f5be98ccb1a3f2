import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
import delivery_analytics.data_contract as dc

logger = logging.getLogger(__name__)


def latitude_in_range(lat: pd.Series) -> pd.Series:
    return lat.between(dc.LATITUDE_MIN, dc.LATITUDE_MAX)


def longitude_in_range(lon: pd.Series) -> pd.Series:
    return lon.between(dc.LONGITUDE_MIN, dc.LONGITUDE_MAX)


def pair_is_valid(df: pd.DataFrame, lat_col: str, lon_col: str) -> pd.Series:
    """In range on both axes and not the (0, 0) placeholder."""
    lat, lon = df[lat_col], df[lon_col]
    is_origin = (lat == 0) & (lon == 0)
    return latitude_in_range(lat) & longitude_in_range(lon) & ~is_origin


class CoordinateRepairer:
    """
    Repairs store/drop coordinates that were mangled on ingestion.

    Out-of-range values are treated as swapped fields: a bad latitude takes
    the absolute value of its paired longitude and vice versa. This is a
    heuristic, not a true swap; the original value of the other axis is kept,
    so repaired rows are flagged in the Coordinates_Repaired column and listed
    in attrs["repaired_index"].
    """

    def __init__(self, pairs: Optional[List[Tuple[str, str]]] = None):
        self.pairs = pairs or dc.COORDINATE_PAIRS

    def _repair_pair(self, df: pd.DataFrame, lat_col: str, lon_col: str) -> pd.Series:
        lat = df[lat_col].abs()
        lon = df[lon_col]

        bad_lat = ~latitude_in_range(lat)
        bad_lon = ~longitude_in_range(lon)

        # Out-of-range values are blanked first, then filled from the
        # paired axis as it stood before repair.
        new_lat = lat.mask(bad_lat, np.nan)
        new_lon = lon.mask(bad_lon, np.nan)
        new_lat = new_lat.fillna(lon.abs())
        new_lon = new_lon.fillna(lat)

        df[lat_col] = new_lat
        df[lon_col] = new_lon

        return bad_lat | bad_lon

    def repair(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        initial_rows = len(df)

        repaired = pd.Series(False, index=df.index)
        valid = pd.Series(True, index=df.index)

        for lat_col, lon_col in self.pairs:
            repaired |= self._repair_pair(df, lat_col, lon_col)
            valid &= pair_is_valid(df, lat_col, lon_col)

        repaired_index = df.index[repaired & valid]

        # Keep flags from an earlier pass so re-cleaning a snapshot is a no-op.
        if dc.COORDINATES_REPAIRED in df.columns:
            flagged = repaired | df[dc.COORDINATES_REPAIRED].astype(bool)
        else:
            flagged = repaired
        df[dc.COORDINATES_REPAIRED] = flagged.astype("int64")

        df_repaired = df[valid].copy()

        stats = {
            "repaired_rows": int(len(repaired_index)),
            "dropped_rows": int(initial_rows - len(df_repaired)),
        }
        logger.info(f"Coordinate repair stats: {stats}")

        df_repaired.attrs["coordinate_stats"] = stats
        df_repaired.attrs["repaired_index"] = list(repaired_index)

        return df_repaired
