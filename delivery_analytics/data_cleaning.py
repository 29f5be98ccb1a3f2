import logging
import os
from datetime import datetime, timezone

import pandas as pd
import delivery_analytics.data_contract as dc
from delivery_analytics.coordinates import CoordinateRepairer, pair_is_valid

logger = logging.getLogger(__name__)


def is_sentinel(series: pd.Series) -> pd.Series:
    sentinels = [s.lower() for s in dc.SENTINEL_VALUES]
    return series.astype(str).str.strip().str.lower().isin(sentinels)


class DataCleaner:
    """
    Row-level cleaning:
    - Drops rows with missing required fields
    - Applies contract range / sentinel rules (counted against the same
      pre-cleaning table, so counts may overlap)
    - Hands coordinates to the CoordinateRepairer
    - Removes duplicate rows last, once every field is final
    - Writes a sample of dropped rows to a writable artifact dir
    - Attaches stats + artifact paths on df.attrs for main.py to log
    """

    def __init__(self, repairer: CoordinateRepairer | None = None, artifact_dir: str | None = None):
        self.repairer = repairer or CoordinateRepairer()
        self.artifact_dir = artifact_dir or os.environ.get("LOCAL_ARTIFACT_DIR", "/tmp/delivery_artifacts")

    def _ensure_artifact_dir(self) -> str:
        os.makedirs(self.artifact_dir, exist_ok=True)
        return self.artifact_dir

    def _save_dropped_sample(self, dropped_df: pd.DataFrame) -> str | None:
        try:
            self._ensure_artifact_dir()
            ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            path = os.path.join(self.artifact_dir, f"dropped_data_sample_{ts}.csv")
            dropped_df.head(100).to_csv(path, index=False)
            logger.info(f"Saved dropped rows sample to: {path}")
            return path
        except OSError as e:
            # The sample is for debugging only; cleaning results stand.
            logger.warning(f"Could not write dropped sample CSV: {e}")
            return None

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        raw_count = len(df)

        # 1) Drop rows with missing required values
        df = df.dropna(subset=dc.REQUIRED_COLUMNS).copy()
        after_null_drop = len(df)
        for col in dc.INTEGER_COLUMNS:
            df[col] = df[col].astype("int64")

        # 2) Calculate rule masks (observability)
        mask_delivery = df["Delivery_Time"].between(dc.DELIVERY_TIME_MIN, dc.DELIVERY_TIME_MAX)
        mask_age = df["Agent_Age"].between(dc.AGENT_AGE_MIN, dc.AGENT_AGE_MAX)
        mask_rating = df["Agent_Rating"].between(dc.AGENT_RATING_MIN, dc.AGENT_RATING_MAX)
        mask_sentinel = ~pd.concat(
            [is_sentinel(df[col]) for col in dc.CATEGORICAL_COLUMNS], axis=1
        ).any(axis=1)
        mask_coords = pd.Series(True, index=df.index)
        for lat_col, lon_col in dc.COORDINATE_PAIRS:
            mask_coords &= pair_is_valid(df, lat_col, lon_col)

        valid_mask = mask_delivery & mask_age & mask_rating & mask_sentinel

        # 3) Coordinates: repair what can be repaired, then enforce the range rule
        df_clean = self.repairer.repair(df[valid_mask])
        coordinate_stats = df_clean.attrs.get("coordinate_stats", {})
        repaired_index = df_clean.attrs.get("repaired_index", [])

        in_range = pd.Series(True, index=df_clean.index)
        for lat_col, lon_col in dc.COORDINATE_PAIRS:
            in_range &= pair_is_valid(df_clean, lat_col, lon_col)
        df_clean = df_clean[in_range]

        # 4) Duplicates are judged on final field values; the repair flag is bookkeeping
        record_columns = [c for c in df_clean.columns if c != dc.COORDINATES_REPAIRED]
        duplicated = df_clean.duplicated(subset=record_columns, keep="first")
        df_clean = df_clean[~duplicated].copy()

        # 5) Stats
        clean_rows = len(df_clean)
        dropped_rows = raw_count - clean_rows

        stats = {
            "initial_rows": raw_count,
            "after_null_drop_rows": after_null_drop,
            "clean_rows": clean_rows,
            "dropped_rows": dropped_rows,
            "cleaning_ratio": (dropped_rows / raw_count) if raw_count > 0 else 0.0,
            "missing_values": raw_count - after_null_drop,
            "violation_delivery_time": int((~mask_delivery).sum()),
            "violation_agent_age": int((~mask_age).sum()),
            "violation_agent_rating": int((~mask_rating).sum()),
            "violation_sentinel": int((~mask_sentinel).sum()),
            "violation_coordinates": int((~mask_coords).sum()),
            "coordinates_repaired": int(coordinate_stats.get("repaired_rows", 0)),
            "coordinates_dropped": int(coordinate_stats.get("dropped_rows", 0) + (~in_range).sum()),
            "duplicate_rows": int(duplicated.sum()),
        }

        logger.info(f"Cleaned data stats: {stats}")

        # 6) Save dropped sample
        dropped_sample_path = None
        if dropped_rows > 0:
            dropped_df = df[~df.index.isin(df_clean.index)]
            dropped_sample_path = self._save_dropped_sample(dropped_df)

        # Guards
        if clean_rows == 0:
            raise ValueError("Data Quality Critical: Resulting dataset is empty after cleaning.")

        # Attach metadata for main.py (MLflow logging)
        df_clean.attrs["stats"] = stats
        df_clean.attrs["dropped_sample_path"] = dropped_sample_path
        df_clean.attrs["repaired_index"] = [i for i in repaired_index if i in df_clean.index]

        return df_clean
