"""
Pure view functions for the dashboard.

Every view is a function of (cleaned table, current filter). Nothing here
caches or mutates the table, and late labels are read from the stored
Late_Delivery column rather than recomputed on the filtered subset.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
import delivery_analytics.data_contract as dc

FILTER_COLUMNS = ["Traffic", "Weather", "Vehicle", "Area"]


@dataclass
class DashboardFilter:
    date_range: Optional[Tuple[date, date]] = None
    traffic: List[str] = field(default_factory=list)
    weather: List[str] = field(default_factory=list)
    vehicle: List[str] = field(default_factory=list)
    area: List[str] = field(default_factory=list)
    age_range: Optional[Tuple[int, int]] = None

    def selections(self) -> Dict[str, List[str]]:
        return {
            "Traffic": self.traffic,
            "Weather": self.weather,
            "Vehicle": self.vehicle,
            "Area": self.area,
        }


def filter_options(df: pd.DataFrame) -> Dict[str, object]:
    """Values offered by the sidebar widgets."""
    options = {col: sorted(df[col].dropna().unique().tolist()) for col in FILTER_COLUMNS}
    options["date_range"] = (df["Order_Date"].min().date(), df["Order_Date"].max().date())
    options["age_range"] = (int(df["Agent_Age"].min()), int(df["Agent_Age"].max()))
    return options


def apply_filters(df: pd.DataFrame, flt: DashboardFilter) -> pd.DataFrame:
    """Empty selections leave a column unrestricted; ranges are inclusive."""
    mask = pd.Series(True, index=df.index)

    if flt.date_range:
        start, end = flt.date_range
        order_dates = df["Order_Date"].dt.date
        mask &= (order_dates >= start) & (order_dates <= end)

    for col, selected in flt.selections().items():
        if selected:
            mask &= df[col].isin(selected)

    if flt.age_range:
        low, high = flt.age_range
        mask &= df["Agent_Age"].between(low, high)

    return df[mask]


def key_metrics(df: pd.DataFrame) -> Dict[str, Optional[float]]:
    if df.empty:
        return {"deliveries": 0, "mean_delivery": None, "median_delivery": None, "pct_late": None}
    return {
        "deliveries": int(len(df)),
        "mean_delivery": float(df["Delivery_Time"].mean()),
        "median_delivery": float(df["Delivery_Time"].median()),
        "pct_late": float(df[dc.LATE_DELIVERY].mean() * 100),
    }


def mean_delivery_by(df: pd.DataFrame, by: Sequence[str]) -> pd.DataFrame:
    return df.groupby(list(by), observed=True)["Delivery_Time"].mean().reset_index()


def delivery_quantiles_by(df: pd.DataFrame, by: str, quantiles=(0.25, 0.5, 0.75)) -> pd.DataFrame:
    table = df.groupby(by, observed=True)["Delivery_Time"].quantile(list(quantiles)).unstack()
    table.columns = [f"q{int(q * 100)}" for q in table.columns]
    return table.reset_index()


def late_rate_by(df: pd.DataFrame, by: str) -> pd.DataFrame:
    rate = df.groupby(by, observed=True)[dc.LATE_DELIVERY].mean() * 100
    return rate.reset_index(name="% Late")


def counts_by(df: pd.DataFrame, by: str) -> pd.DataFrame:
    return df[by].value_counts().rename_axis(by).reset_index(name="Deliveries")


def heatmap_frame(df: pd.DataFrame, rows: str = "Area", columns: str = dc.ORDER_HOUR) -> pd.DataFrame:
    """Mean delivery time pivot; empty cells are NaN."""
    return df.pivot_table(index=rows, columns=columns, values="Delivery_Time", aggfunc="mean")


def map_frame(df: pd.DataFrame, max_points: int = 2000, random_state: int = 42) -> pd.DataFrame:
    """Long-format store/drop points for the map, sampled to keep rendering light."""
    if len(df) > max_points:
        df = df.sample(n=max_points, random_state=random_state)

    extra = [c for c in ("Delivery_Time", "Area", dc.COORDINATES_REPAIRED) if c in df.columns]
    frames = []
    for kind, (lat_col, lon_col) in (("Store", dc.STORE_COORDS), ("Drop", dc.DROP_COORDS)):
        points = df[[lat_col, lon_col, *extra]].rename(
            columns={lat_col: "Latitude", lon_col: "Longitude"}
        )
        points["Point"] = kind
        frames.append(points)
    return pd.concat(frames, ignore_index=True)


def monthly_trend(df: pd.DataFrame) -> pd.DataFrame:
    months = df["Order_Date"].dt.to_period("M").astype(str)
    return df.groupby(months)["Delivery_Time"].mean().rename_axis("Order_Month").reset_index()
