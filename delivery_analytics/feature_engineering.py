import logging
from datetime import datetime, time
from typing import List, Tuple

import pandas as pd
import delivery_analytics.data_contract as dc

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def parse_order_hour(value) -> int:
    """Hour of day (0-23) from a datetime.time or an 'HH:MM:SS' string."""
    if isinstance(value, time):
        return value.hour
    return datetime.strptime(str(value).strip(), dc.TIME_FORMAT).hour


def _minute_of_day(value) -> float:
    if not isinstance(value, time):
        value = datetime.strptime(str(value).strip(), dc.TIME_FORMAT).time()
    return value.hour * 60 + value.minute + value.second / 60


def add_order_hour(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df[dc.ORDER_HOUR] = df["Order_Time"].map(parse_order_hour).astype(int)
    return df


def compute_late_threshold(df: pd.DataFrame, quantile: float = dc.LATE_QUANTILE) -> float:
    """Dataset-wide delivery time cutoff. Computed once, after cleaning."""
    if df.empty:
        raise ValueError("Cannot compute late threshold on an empty table.")
    return float(df["Delivery_Time"].quantile(quantile))


def label_late(df: pd.DataFrame, threshold: float) -> pd.Series:
    return (df["Delivery_Time"] > threshold).astype(int)


def pickup_delay_minutes(df: pd.DataFrame) -> pd.Series:
    # Pickups after midnight wrap around to the next day.
    order = df["Order_Time"].map(_minute_of_day)
    pickup = df["Pickup_Time"].map(_minute_of_day)
    return (pickup - order) % MINUTES_PER_DAY


def agent_age_group(ages: pd.Series) -> pd.Series:
    return pd.cut(ages, bins=dc.AGE_GROUP_BINS, labels=dc.AGE_GROUP_LABELS).astype(str)


class FeatureEngineer:
    def __init__(
        self,
        numerical_features: List[str],
        categorical_features: List[str],
        target: str,
        late_quantile: float = dc.LATE_QUANTILE,
    ):
        self.numerical_features = numerical_features
        self.categorical_features = categorical_features
        self.target = target
        self.late_quantile = late_quantile

        # Final feature list
        self.features = self.numerical_features + self.categorical_features

    def create_features(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, float]:
        """Add derived columns. Returns the frame and the late threshold used."""
        logger.info("Engineering features...")

        df = add_order_hour(df)
        df["Order_DayOfWeek"] = df["Order_Date"].dt.dayofweek
        df["Is_Weekend"] = df["Order_DayOfWeek"].isin([5, 6]).astype(int)
        df["Pickup_Delay_Min"] = pickup_delay_minutes(df)
        df["Agent_Age_Group"] = agent_age_group(df["Agent_Age"])

        threshold = compute_late_threshold(df, self.late_quantile)
        df[dc.LATE_DELIVERY] = label_late(df, threshold)

        logger.info(
            f"Late threshold (q={self.late_quantile}): {threshold:.2f} min, "
            f"{df[dc.LATE_DELIVERY].mean():.2%} flagged late"
        )
        return df, threshold

    def model_matrix(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        """Predictors and target."""
        missing = [c for c in self.features + [self.target] if c not in df.columns]
        if missing:
            raise ValueError(f"Feature columns missing: {missing}")

        X = df[self.features]
        y = df[self.target]
        return X, y
