"""
Analytics Projection
====================

Narrowed, read-only snapshot of cleaned orders used for reporting.
Built once after every cleaning stage has run; it is not kept in sync
with later changes to the order store.
"""

import logging

import pandas as pd
from sqlalchemy.types import Boolean, Date, Integer

from processing.common_code.settings import ANALYTICS_COLUMNS

logger = logging.getLogger(__name__)

ANALYTICS_DTYPES = {
    "clean_order_date": Date(),
    "delivery_duration": Integer(),
    "sla_breach_flag": Boolean(),
    "peak_hour_flag": Boolean(),
}


def build_analytics_projection(store) -> pd.DataFrame:
    """
    Snapshot the reporting columns of a cleaned order store.

    Args:
        store: Cleaned OrderStore

    Returns:
        DataFrame with ANALYTICS_COLUMNS, one row per order

    Raises:
        ValueError: if a projected column is absent from the store
    """
    df = store.to_frame()
    missing = [c for c in ANALYTICS_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Cannot build analytics projection, missing columns: {missing}")

    projection = df[ANALYTICS_COLUMNS].copy()
    logger.info(f"Analytics projection built: {len(projection)} rows, {len(ANALYTICS_COLUMNS)} columns")
    return projection


def materialize_analytics_table(projection: pd.DataFrame, connector, table: str) -> int:
    """Persist the projection as a table, replacing the previous snapshot."""
    return connector.replace_table(projection, table, dtype=ANALYTICS_DTYPES)
