"""
Order Quality Framework
=======================

Quality controls around the order cleaning pipeline:
- Error taxonomy (ParseError, ConstraintViolation, DataQualityWarning)
- Raw schema contract and order identity constraint
- Dimension metrics and the post-cleaning data quality gate
- Rejection handling for unparseable raw values

Usage:
    from quality_framework import SchemaContract, DimensionMetrics, RejectionHandler

    # Identity constraint (raises ConstraintViolation)
    SchemaContract().enforce_unique_keys(df)

    # Rejections
    handler = RejectionHandler()
    handler.record(order_id, parse_error, stage="normalize_order_dates")
    summary = handler.summary(total_records=len(df))

    # Data quality gate (warns, never raises)
    report = DimensionMetrics().check_required_fields(cleaned_df)
"""

from .exceptions import (
    ParseError,
    ConstraintViolation,
    SchemaContractError,
    DataQualityWarning
)
from .schema_contract import SchemaContract, DimensionMetrics
from .rejection_handler import RejectionHandler

__version__ = "1.0.0"
__all__ = [
    "ParseError",
    "ConstraintViolation",
    "SchemaContractError",
    "DataQualityWarning",
    "SchemaContract",
    "DimensionMetrics",
    "RejectionHandler"
]
