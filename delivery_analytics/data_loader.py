import logging
import os

import pandas as pd
import delivery_analytics.data_contract as dc

logger = logging.getLogger(__name__)


class DataLoader:
    """
    Fail-fast loader:
    - Reads csv / xlsx / xls
    - Validates required schema
    - Assigns semantic types (date, time-of-day, numeric, categorical)
    - Raises on any present-but-unparsable value; missing values are left
      for the cleaner to count and drop
    """

    READERS = {
        ".csv": pd.read_csv,
        ".xlsx": pd.read_excel,
        ".xls": pd.read_excel,
    }

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> pd.DataFrame:
        suffix = os.path.splitext(self.path)[1].lower()
        reader = self.READERS.get(suffix)
        if reader is None:
            raise ValueError(f"Unsupported file type '{suffix}' for {self.path}")
        return reader(self.path)

    def load_data(self) -> pd.DataFrame:
        logger.info(f"Loading data from {self.path}...")

        try:
            df = self._read()
        except Exception as e:
            logger.error(f"Failed to read source file: {e}")
            raise

        # 1) Critical schema check (fail fast)
        missing_cols = [c for c in dc.REQUIRED_COLUMNS if c not in df.columns]
        if missing_cols:
            raise ValueError(f"Schema Violation: Missing columns {missing_cols}")

        logger.info(f"Initial row count: {len(df)}")

        # 2) Type enforcement
        return assign_types(df)


def _present(series: pd.Series) -> pd.Series:
    return series.notna()


def parse_dates(series: pd.Series) -> pd.Series:
    try:
        return pd.to_datetime(series, errors="raise").dt.normalize()
    except (ValueError, TypeError) as e:
        raise ValueError(f"Malformed date in column '{series.name}': {e}") from e


def parse_times(series: pd.Series) -> pd.Series:
    """Parse HH:MM:SS strings (or spreadsheet time cells) into datetime.time."""
    text = series.where(~_present(series), series.astype(str).str.strip())
    try:
        parsed = pd.to_datetime(text, format=dc.TIME_FORMAT, errors="raise")
    except (ValueError, TypeError) as e:
        raise ValueError(f"Malformed time in column '{series.name}': {e}") from e
    return parsed.dt.time.where(parsed.notna(), None)


def parse_numbers(series: pd.Series) -> pd.Series:
    try:
        return pd.to_numeric(series, errors="raise")
    except (ValueError, TypeError) as e:
        raise ValueError(f"Non-numeric value in column '{series.name}': {e}") from e


def parse_categories(series: pd.Series) -> pd.Series:
    return series.where(~_present(series), series.astype(str).str.strip())


def assign_types(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()

    for col in dc.DATE_COLUMNS:
        df[col] = parse_dates(df[col])

    for col in dc.TIME_COLUMNS:
        df[col] = parse_times(df[col])

    for col in dc.NUMERIC_COLUMNS:
        df[col] = parse_numbers(df[col])

    for col in dc.CATEGORICAL_COLUMNS:
        df[col] = parse_categories(df[col])

    return df
