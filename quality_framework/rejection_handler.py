"""
Rejection Handler (Soft Contract)
=================================

Tracks raw values the cleaning stages could not parse. The offending
record keeps its derived field unset and the pipeline continues; each
rejection is recorded with its order_id, column, raw value and reason,
and can be quarantined to a table in the store.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Any

import pandas as pd

from .exceptions import ParseError

logger = logging.getLogger(__name__)

REJECTION_COLUMNS = ["order_id", "column", "raw_value", "reason", "stage", "rejected_at"]


class RejectionHandler:
    """
    Collects parse rejections for one pipeline run.

    Soft contract: pipeline continues, bad values are reported.
    """

    def __init__(self, batch_id: Optional[str] = None):
        self.batch_id = batch_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self._rejections: List[Dict] = []

    def __len__(self) -> int:
        return len(self._rejections)

    @property
    def rejections(self) -> List[Dict]:
        return list(self._rejections)

    def record(self, order_id: Any, error: ParseError, stage: str) -> None:
        """
        Record a value that failed to parse.

        Args:
            order_id: Identity of the offending record
            error: ParseError raised by the field parser
            stage: Cleaning stage that hit the error
        """
        self._rejections.append({
            "order_id": str(order_id),
            "column": error.column,
            "raw_value": None if error.raw_value is None else str(error.raw_value),
            "reason": error.reason,
            "stage": stage,
            "rejected_at": datetime.now().isoformat()
        })
        logger.debug(f"Rejected {error.column} for order {order_id}: {error.reason}")

    def rejected_order_ids(self, column: Optional[str] = None) -> List[str]:
        """Order ids with at least one rejection, optionally for one column."""
        seen = []
        for r in self._rejections:
            if column and r["column"] != column:
                continue
            if r["order_id"] not in seen:
                seen.append(r["order_id"])
        return seen

    def to_dataframe(self) -> pd.DataFrame:
        """Rejections as a DataFrame (one row per rejected value)."""
        return pd.DataFrame(self._rejections, columns=REJECTION_COLUMNS)

    def summary(self, total_records: int, table_name: str = "raw_orders") -> Dict:
        """
        Summarize rejections for the run.

        Args:
            total_records: Records processed
            table_name: Table name for tracking

        Returns:
            Dict with counts per column and rejection rate
        """
        by_column: Dict[str, Dict] = {}
        for r in self._rejections:
            entry = by_column.setdefault(r["column"], {"count": 0, "reasons": set()})
            entry["count"] += 1
            entry["reasons"].add(r["reason"])

        rejected_records = len(self.rejected_order_ids())

        return {
            "table_name": table_name,
            "batch_id": self.batch_id,
            "timestamp": datetime.now().isoformat(),
            "total_records": total_records,
            "rejected_values": len(self._rejections),
            "rejected_records": rejected_records,
            "rejection_rate": round(rejected_records / total_records * 100, 2) if total_records > 0 else 0,
            "columns": {
                col: {"count": v["count"], "reasons": sorted(v["reasons"])}
                for col, v in by_column.items()
            }
        }

    def quarantine(self, connector, table: str) -> int:
        """
        Write this run's rejections to a quarantine table in the store.

        Args:
            connector: SQLConnector with an open engine
            table: Quarantine table name (replaced on every run)

        Returns:
            Rows written
        """
        df = self.to_dataframe()
        df["batch_id"] = self.batch_id

        written = connector.replace_table(df, table)
        if written:
            logger.warning(f"Quarantined {written} rejected values to {table}")
        return written
