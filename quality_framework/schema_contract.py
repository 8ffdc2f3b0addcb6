"""
Schema Contract & Dimension Metrics
===================================

Validates the raw orders table before cleaning and measures data quality
after it.

Features:
- Raw column contract (missing columns are fatal, unexpected ones are noted)
- Identity constraint (unique, non-null order_id)
- Completeness scores per column
- Data quality gate on required derived fields (non-fatal warning)
- Validation summaries (delivery time range, final sanity totals)
"""

import logging
import warnings
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from processing.common_code.settings import (
    DERIVED_COLUMNS,
    KEY_COLUMN,
    OPTIONAL_RAW_COLUMNS,
    REQUIRED_RAW_COLUMNS
)
from .exceptions import ConstraintViolation, DataQualityWarning, SchemaContractError

logger = logging.getLogger(__name__)


class SchemaContract:
    """
    Contract for the raw orders table.

    Missing required columns and broken identities stop the pipeline;
    unexpected columns are reported and carried through unchanged.
    """

    def __init__(
        self,
        required_columns: Optional[List[str]] = None,
        optional_columns: Optional[List[str]] = None,
        key_column: str = KEY_COLUMN
    ):
        self.required_columns = list(required_columns or REQUIRED_RAW_COLUMNS)
        self.optional_columns = list(optional_columns or OPTIONAL_RAW_COLUMNS)
        self.key_column = key_column

    def validate_raw_columns(self, df: pd.DataFrame, table_name: str = "raw_orders") -> Dict:
        """
        Validate DataFrame columns against the raw contract.

        Args:
            df: Raw orders DataFrame (order_id as column or index)
            table_name: Table name for reporting

        Returns:
            Dict with missing/unexpected columns

        Raises:
            SchemaContractError: if required columns are missing
        """
        source_cols = set(df.columns)
        if df.index.name:
            source_cols.add(df.index.name)

        known = set(self.required_columns) | set(self.optional_columns) | set(DERIVED_COLUMNS)
        missing = [c for c in self.required_columns if c not in source_cols]
        unexpected = sorted(source_cols - known)

        result = {
            "table_name": table_name,
            "timestamp": datetime.now().isoformat(),
            "source_column_count": len(source_cols),
            "missing_columns": missing,
            "unexpected_columns": unexpected,
            "passed": not missing
        }

        if unexpected:
            logger.warning(f"Unexpected columns in {table_name}: {unexpected}")

        if missing:
            logger.error(f"Missing required columns in {table_name}: {missing}")
            raise SchemaContractError(missing)

        return result

    def enforce_unique_keys(self, df: pd.DataFrame) -> None:
        """
        Refuse record sets whose order_id is missing or duplicated.

        Raises:
            ConstraintViolation: on null or duplicate keys
        """
        if self.key_column in df.columns:
            keys = df[self.key_column]
        elif df.index.name == self.key_column:
            keys = df.index.to_series()
        else:
            raise SchemaContractError([self.key_column])

        null_count = int(keys.isna().sum())
        if null_count:
            raise ConstraintViolation(f"{null_count} records have no {self.key_column}")

        duplicated = keys[keys.duplicated(keep=False)]
        if not duplicated.empty:
            dup_ids = sorted(duplicated.astype(str).unique())
            raise ConstraintViolation(
                f"Duplicate {self.key_column} values: {dup_ids[:10]}"
                + (f" (+{len(dup_ids) - 10} more)" if len(dup_ids) > 10 else ""),
                order_ids=dup_ids
            )


class DimensionMetrics:
    """
    Calculates quality dimension metrics for the orders dataset.

    Dimensions:
    - Completeness: % of non-null values
    - Uniqueness: % of distinct order ids
    """

    def __init__(self, required_columns: Optional[List[str]] = None):
        self.required_columns = list(required_columns or DERIVED_COLUMNS)

    def calculate_completeness(self, df: pd.DataFrame) -> Dict:
        """Calculate completeness (non-null rate) for each column."""
        total_cells = len(df) * len(df.columns)
        null_cells = int(df.isna().sum().sum())

        completeness = {
            "score": round((1 - null_cells / total_cells) * 100, 2) if total_cells > 0 else 100,
            "total_cells": total_cells,
            "null_cells": null_cells,
            "columns": {}
        }

        for col in df.columns:
            null_count = int(df[col].isna().sum())
            completeness["columns"][col] = {
                "null_count": null_count,
                "null_rate": round(null_count / len(df) * 100, 2) if len(df) > 0 else 0,
                "complete_rate": round((1 - null_count / len(df)) * 100, 2) if len(df) > 0 else 100
            }

        return completeness

    def check_required_fields(self, df: pd.DataFrame, table_name: str = "raw_orders") -> Dict:
        """
        Post-cleaning data quality gate.

        Counts residual nulls in required derived fields. Non-fatal: a
        DataQualityWarning is emitted and the report returned so callers
        decide whether to proceed to reporting.

        Args:
            df: Cleaned orders, indexed by order_id
            table_name: Table name for reporting

        Returns:
            Dict with null counts and offending order ids per field
        """
        null_counts = {}
        offending = {}

        for col in self.required_columns:
            if col not in df.columns:
                null_counts[col] = len(df)
                offending[col] = [str(i) for i in df.index]
                continue
            mask = df[col].isna()
            null_counts[col] = int(mask.sum())
            offending[col] = [str(i) for i in df.index[mask.to_numpy()]]

        passed = not any(null_counts.values())
        report = {
            "table_name": table_name,
            "timestamp": datetime.now().isoformat(),
            "total_orders": len(df),
            "null_counts": null_counts,
            "offending_order_ids": offending,
            "passed": passed
        }

        if not passed:
            residual = {k: v for k, v in null_counts.items() if v}
            message = f"Residual nulls in {table_name} after cleaning: {residual}"
            logger.warning(message)
            warnings.warn(message, DataQualityWarning, stacklevel=2)
        else:
            logger.info(f"Data quality gate passed for {table_name} ({len(df)} orders)")

        return report

    def delivery_time_range(self, df: pd.DataFrame) -> Dict:
        """Min, max and average delivery duration, to spot outliers."""
        durations = df["delivery_duration"].dropna() if "delivery_duration" in df.columns else pd.Series(dtype="float64")

        if durations.empty:
            return {"min_time": None, "max_time": None, "avg_time": None}

        return {
            "min_time": int(durations.min()),
            "max_time": int(durations.max()),
            "avg_time": round(float(durations.astype("float64").mean()), 2)
        }

    def sanity_summary(self, df: pd.DataFrame) -> Dict:
        """Order count, SLA breaches and peak-hour volume after cleaning."""
        def flag_total(col: str) -> int:
            if col not in df.columns:
                return 0
            return int(df[col].astype("boolean").sum(skipna=True))

        return {
            "total_orders": len(df),
            "valid_delivery_times": int(df["delivery_duration"].notna().sum()) if "delivery_duration" in df.columns else 0,
            "valid_order_dates": int(df["clean_order_date"].notna().sum()) if "clean_order_date" in df.columns else 0,
            "sla_breaches": flag_total("sla_breach_flag"),
            "peak_orders": flag_total("peak_hour_flag")
        }

    def calculate_uniqueness(self, df: pd.DataFrame, key_column: str = KEY_COLUMN) -> Dict:
        """Distinct rate of the order key."""
        keys = df.index.to_series() if df.index.name == key_column else df[key_column]
        non_null = keys.dropna()
        total = len(non_null)
        distinct = int(non_null.nunique())

        return {
            "score": round(distinct / total * 100, 2) if total > 0 else 100,
            "total_values": total,
            "distinct_values": distinct,
            "duplicate_values": int(non_null.duplicated().sum())
        }

    def calculate_all_dimensions(self, df: pd.DataFrame, table_name: str, stage: str = "raw") -> Dict:
        """
        Calculate all quality dimension metrics for a DataFrame.

        Returns dict with dimension scores (0-100).
        """
        metrics = {
            "table_name": table_name,
            "stage": stage,
            "timestamp": datetime.now().isoformat(),
            "row_count": len(df),
            "column_count": len(df.columns),
            "dimensions": {
                "completeness": self.calculate_completeness(df),
                "uniqueness": self.calculate_uniqueness(df)
            }
        }

        weights = {"completeness": 0.5, "uniqueness": 0.5}
        overall = sum(
            metrics["dimensions"][dim]["score"] * weight
            for dim, weight in weights.items()
        )
        metrics["overall_quality_score"] = round(overall, 2)

        return metrics
