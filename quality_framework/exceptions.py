"""
Quality Framework Exceptions
============================

Error taxonomy for the order cleaning pipeline.

- ParseError: a raw field does not match its expected textual pattern.
  Stages catch it, leave the derived field unset and record a rejection.
- ConstraintViolation: the record set breaks an identity constraint
  (duplicate or missing order_id). The pipeline refuses to run.
- SchemaContractError: required raw columns are missing.
- DataQualityWarning: residual nulls after cleaning. Non-fatal.
"""

from typing import List, Optional


class ParseError(ValueError):
    """Raised when a raw field cannot be parsed into its derived form."""

    def __init__(self, column: str, raw_value, reason: str):
        self.column = column
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"{column}: {reason} (value={raw_value!r})")


class ConstraintViolation(Exception):
    """Raised when order identities are not unique or missing."""

    def __init__(self, message: str, order_ids: Optional[List] = None):
        self.order_ids = list(order_ids or [])
        super().__init__(message)


class SchemaContractError(Exception):
    """Raised when the raw table lacks columns the pipeline needs."""

    def __init__(self, missing_columns: List[str]):
        self.missing_columns = list(missing_columns)
        super().__init__(f"Missing required columns: {self.missing_columns}")


class DataQualityWarning(UserWarning):
    """Residual nulls in required derived fields after cleaning."""
