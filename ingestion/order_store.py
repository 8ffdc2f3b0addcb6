"""
Order Store
===========

Explicit, mutable collection of order records keyed by order_id. Every
cleaning stage receives the store it works on; nothing reaches for a
global table handle.
"""

import logging
from datetime import time, timedelta
from typing import Dict, Iterable, List, Optional

import pandas as pd
from sqlalchemy.types import Boolean, Date, Float, Integer, String

from processing.common_code.settings import KEY_COLUMN, RAW_TABLE
from processing.common_code.utils import is_missing
from quality_framework.schema_contract import SchemaContract

logger = logging.getLogger(__name__)

# Store-side types for every column the pipeline writes
WRITE_BACK_TYPES = {
    "clean_order_date": Date(),
    "delivery_duration": Integer(),
    "sla_breach_flag": Boolean(),
    "peak_hour_flag": Boolean(),
    "delivery_person_age": Integer(),
    "delivery_person_ratings": Float(),
    "weather_conditions": String(50),
    "road_traffic_density": String(30),
    "festival": String(10),
}


class OrderStore:
    """
    Order records held as a DataFrame indexed by order_id.

    Construction enforces the identity constraint; derived columns are
    created empty so stages can always target rows where they are unset.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        contract: Optional[SchemaContract] = None,
        table: str = RAW_TABLE
    ):
        contract = contract if contract is not None else SchemaContract()
        contract.enforce_unique_keys(frame)

        df = frame.copy()
        if df.index.name != KEY_COLUMN:
            df = df.set_index(KEY_COLUMN)
        df.index = df.index.astype(str)

        self.table = table
        self.frame = _coerce_types(df)

    @classmethod
    def from_records(cls, records: Iterable[Dict], **kwargs) -> "OrderStore":
        return cls(pd.DataFrame(list(records)), **kwargs)

    @classmethod
    def from_connector(cls, connector, table: str = RAW_TABLE, contract: Optional[SchemaContract] = None) -> "OrderStore":
        """
        Load the raw orders table from the store.

        Args:
            connector: SQLConnector with an open engine
            table: Raw orders table
            contract: Schema contract (defaults to the raw orders contract)

        Returns:
            OrderStore over the loaded rows
        """
        contract = contract if contract is not None else SchemaContract()
        df = connector.read_table(table)
        contract.validate_raw_columns(df, table)
        return cls(df, contract=contract, table=table)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def order_ids(self) -> List[str]:
        return list(self.frame.index)

    def to_frame(self) -> pd.DataFrame:
        """Copy of the records with order_id as a regular column."""
        return self.frame.reset_index()

    def save(self, connector, columns: Optional[List[str]] = None) -> int:
        """
        Write cleaned and derived columns back to the store.

        Args:
            connector: SQLConnector with an open engine
            columns: Columns to write (defaults to every pipeline-written column)

        Returns:
            Rows written
        """
        columns = [c for c in (columns or list(WRITE_BACK_TYPES)) if c in self.frame.columns]
        connector.ensure_columns(
            self.table,
            {c: WRITE_BACK_TYPES[c] for c in columns if c in WRITE_BACK_TYPES}
        )
        return connector.update_columns(self.table, self.to_frame(), columns, key=KEY_COLUMN)


def _coerce_types(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize dtypes of derived columns after loading. Raw numeric fields
    are left as loaded; impute_numeric_means parses them and records
    values that are not numbers.
    """
    if "time_ordered" in df.columns:
        df["time_ordered"] = df["time_ordered"].map(_as_time_of_day).astype(object)

    if "clean_order_date" in df.columns:
        df["clean_order_date"] = df["clean_order_date"].map(
            lambda v: None if is_missing(v) else pd.Timestamp(v).date()
        ).astype(object)
    else:
        df["clean_order_date"] = pd.Series([None] * len(df), index=df.index, dtype=object)

    if "delivery_duration" in df.columns:
        df["delivery_duration"] = pd.to_numeric(df["delivery_duration"], errors="coerce").astype("Int64")
    else:
        df["delivery_duration"] = pd.Series(pd.NA, index=df.index, dtype="Int64")

    for col in ("sla_breach_flag", "peak_hour_flag"):
        if col in df.columns:
            df[col] = df[col].astype("boolean")
        else:
            df[col] = pd.Series(pd.NA, index=df.index, dtype="boolean")

    return df


def _as_time_of_day(value):
    """MySQL TIME values arrive as timedelta; keep them as time of day."""
    if is_missing(value):
        return None
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds())
        if 0 <= seconds < 24 * 3600:
            return time(seconds // 3600, (seconds % 3600) // 60, seconds % 60)
    return value
