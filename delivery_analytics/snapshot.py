import csv
import logging
import os
import tempfile

import pandas as pd
import delivery_analytics.data_contract as dc
from delivery_analytics.data_loader import parse_dates, parse_times

logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Persists a cleaned table as CSV. The file appears only once fully written."""

    def __init__(self, path: str):
        self.path = path

    def write(self, df: pd.DataFrame, quote: bool = True) -> str:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        options = {"index": False}
        if not quote:
            options.update(quoting=csv.QUOTE_NONE, escapechar="\\")

        fd, tmp_path = tempfile.mkstemp(prefix=".snapshot_", suffix=".csv", dir=directory)
        os.close(fd)
        try:
            df.to_csv(tmp_path, **options)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.info(f"Wrote snapshot with {len(df)} rows to {self.path}")
        return self.path


def load_snapshot(path: str) -> pd.DataFrame:
    """Read a snapshot back with date and time columns restored."""
    df = pd.read_csv(path)
    for col in dc.DATE_COLUMNS:
        if col in df.columns:
            df[col] = parse_dates(df[col])
    for col in dc.TIME_COLUMNS:
        if col in df.columns:
            df[col] = parse_times(df[col])
    return df
