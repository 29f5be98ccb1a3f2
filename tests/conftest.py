import pytest
import pandas as pd
import numpy as np
from delivery_analytics.data_cleaning import DataCleaner
from delivery_analytics.data_loader import assign_types
from delivery_analytics.feature_engineering import FeatureEngineer

BASE_ROW = {
    'Order_Date': '2022-03-19',
    'Order_Time': '11:30:00',
    'Pickup_Time': '11:45:00',
    'Agent_Age': 37,
    'Agent_Rating': 4.9,
    'Store_Latitude': 22.745049,
    'Store_Longitude': 75.892471,
    'Drop_Latitude': 22.765049,
    'Drop_Longitude': 75.912471,
    'Traffic': 'High',
    'Weather': 'Sunny',
    'Vehicle': 'motorcycle',
    'Area': 'Urban',
    'Category': 'Clothing',
    'Delivery_Time': 120,
}

SECOND_ROW = dict(
    BASE_ROW,
    Order_Date='2022-03-25',
    Order_Time='14:35:00',
    Pickup_Time='14:50:00',
    Agent_Age=34,
    Agent_Rating=4.5,
    Store_Latitude=12.913041,
    Store_Longitude=77.683237,
    Drop_Latitude=13.043041,
    Drop_Longitude=77.813237,
    Traffic='Jam',
    Weather='Stormy',
    Vehicle='scooter',
    Area='Metropolitian',
    Category='Electronics',
    Delivery_Time=165,
)


def make_row(base=BASE_ROW, **overrides):
    return dict(base, **overrides)


@pytest.fixture
def raw_rows():
    """Rows as they arrive in the export, one problem per row."""
    return [
        make_row(),                                                    # 0 kept
        make_row(SECOND_ROW),                                          # 1 kept
        make_row(Delivery_Time=300, Category='Toys'),                  # 2 too slow
        make_row(Agent_Age=10, Category='Shoes'),                      # 3 too young
        make_row(Store_Latitude=0.0, Store_Longitude=0.0),             # 4 (0,0) store
        make_row(),                                                    # 5 duplicate of 0
        make_row(Weather='unknown'),                                   # 6 sentinel
        make_row(Agent_Rating=6.0),                                    # 7 rating out of scale
        make_row(Traffic=None),                                        # 8 missing
        make_row(SECOND_ROW, Store_Latitude=-12.913041,
                 Delivery_Time=130, Category='Sports'),                # 9 kept, sign fixed
        make_row(Drop_Latitude=200.0, Drop_Longitude=40.0,
                 Delivery_Time=95, Category='Toys'),                   # 10 kept, repaired
        make_row(Store_Latitude=200.0, Store_Longitude=300.0),         # 11 unrepairable
    ]


@pytest.fixture
def raw_data(raw_rows):
    """Provides a typed raw DataFrame mimicking the loaded source data."""
    return assign_types(pd.DataFrame(raw_rows))


@pytest.fixture
def cleaner(tmp_path):
    return DataCleaner(artifact_dir=str(tmp_path / "artifacts"))


@pytest.fixture
def clean_data(raw_data, cleaner):
    """Provides cleaned data by running it through the real cleaner."""
    return cleaner.clean(raw_data)


@pytest.fixture
def feature_engineer():
    """Provides a configured FeatureEngineer instance."""
    return FeatureEngineer(
        numerical_features=['Agent_Rating', 'Order_Hour'],
        categorical_features=['Traffic', 'Weather', 'Vehicle', 'Area'],
        target='Delivery_Time',
    )


@pytest.fixture
def training_data():
    """Larger featured table with a learnable traffic effect."""
    rng = np.random.default_rng(7)
    n = 400
    traffic = rng.choice(['Low', 'Medium', 'High', 'Jam'], size=n)
    effect = pd.Series(traffic).map({'Low': 60, 'Medium': 90, 'High': 120, 'Jam': 150}).to_numpy()
    hours = rng.integers(0, 24, size=n)
    return pd.DataFrame({
        'Order_Date': pd.to_datetime('2022-03-01') + pd.to_timedelta(rng.integers(0, 60, size=n), unit='D'),
        'Agent_Age': rng.integers(18, 50, size=n),
        'Agent_Rating': rng.uniform(3.5, 5.0, size=n).round(1),
        'Store_Latitude': rng.uniform(10, 30, size=n),
        'Store_Longitude': rng.uniform(70, 88, size=n),
        'Drop_Latitude': rng.uniform(10, 30, size=n),
        'Drop_Longitude': rng.uniform(70, 88, size=n),
        'Traffic': traffic,
        'Weather': rng.choice(['Sunny', 'Cloudy', 'Fog'], size=n),
        'Vehicle': rng.choice(['motorcycle', 'scooter', 'van'], size=n),
        'Area': rng.choice(['Urban', 'Metropolitian', 'Semi-Urban'], size=n),
        'Category': rng.choice(['Clothing', 'Toys'], size=n),
        'Order_Hour': hours,
        'Delivery_Time': effect + rng.normal(0, 5, size=n) + np.arange(n) * 1e-3,
    })
