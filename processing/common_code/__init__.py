"""
Common Code Module
==================

Shared parsers and settings for the order cleaning pipeline.
"""

from .settings import PipelineSettings
from .utils import (
    read_config,
    is_missing,
    parse_order_date,
    parse_duration_minutes,
    parse_hour_of_day,
    parse_numeric,
    round_half_up
)

__all__ = [
    "PipelineSettings",
    "read_config",
    "is_missing",
    "parse_order_date",
    "parse_duration_minutes",
    "parse_hour_of_day",
    "parse_numeric",
    "round_half_up"
]
