"""
Staging Layer
=============

Cleaning stages and business flag derivation.
"""

from .cleaning import (
    normalize_order_dates,
    extract_delivery_durations,
    impute_numeric_means,
    impute_categorical_defaults
)
from .features import derive_sla_breach_flag, derive_peak_hour_flag

__all__ = [
    "normalize_order_dates",
    "extract_delivery_durations",
    "impute_numeric_means",
    "impute_categorical_defaults",
    "derive_sla_breach_flag",
    "derive_peak_hour_flag"
]
