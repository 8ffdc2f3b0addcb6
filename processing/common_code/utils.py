"""
Common Utilities
================

Field parsers and helpers shared by the cleaning stages.
"""

import json
import math
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from numbers import Integral
from typing import Any, Dict, Union

import pandas as pd

from quality_framework.exceptions import ParseError
from .settings import DATE_FORMAT, DURATION_PREFIX

_DIGITS = re.compile(r"^\d+$")
_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")


def read_config(config_path: str) -> Dict:
    """
    Read JSON configuration file.

    Args:
        config_path: Path to config file

    Returns:
        Config dictionary
    """
    with open(config_path, 'r') as f:
        return json.load(f)


def is_missing(value: Any) -> bool:
    """True for None, NaN, NaT and pd.NA."""
    if value is None:
        return True
    if isinstance(value, str):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_order_date(value: Any, format: str = DATE_FORMAT) -> date:
    """
    Parse a day-month-year order date.

    Args:
        value: Raw order_date text (e.g. '19-03-2022')
        format: strptime pattern

    Returns:
        Calendar date

    Raises:
        ParseError: if the text is missing or does not match the pattern
    """
    if is_missing(value):
        raise ParseError("order_date", value, "missing value")

    try:
        return datetime.strptime(str(value), format).date()
    except ValueError:
        raise ParseError("order_date", value, f"does not match {format}")


def parse_duration_minutes(value: Any, prefix: str = DURATION_PREFIX) -> int:
    """
    Parse delivery duration text such as '(min) 24' into minutes.

    Args:
        value: Raw time_taken_min value
        prefix: Literal prefix stripped before parsing

    Returns:
        Non-negative integer minutes

    Raises:
        ParseError: if the remainder is not a non-negative integer
    """
    if is_missing(value):
        raise ParseError("time_taken_min", value, "missing value")

    if isinstance(value, Integral) and not isinstance(value, bool):
        if value < 0:
            raise ParseError("time_taken_min", value, "negative duration")
        return int(value)

    text = str(value)
    if prefix and text.startswith(prefix):
        text = text[len(prefix):]
    text = text.strip()

    if not _DIGITS.match(text):
        raise ParseError("time_taken_min", value, "not a non-negative integer")

    return int(text)


def parse_hour_of_day(value: Any) -> int:
    """
    Extract the hour from a time-of-day value.

    Accepts datetime.time, datetime.datetime, timedelta (MySQL TIME columns
    come back from pymysql as timedelta) and 'HH:MM[:SS]' text.

    Returns:
        Hour 0-23

    Raises:
        ParseError: if the value is missing or not a valid time of day
    """
    if is_missing(value):
        raise ParseError("time_ordered", value, "missing value")

    if isinstance(value, (datetime, time)):
        return value.hour

    if isinstance(value, timedelta):
        seconds = int(value.total_seconds())
        if seconds < 0 or seconds >= 24 * 3600:
            raise ParseError("time_ordered", value, "outside a single day")
        return seconds // 3600

    match = _TIME_OF_DAY.match(str(value).strip())
    if not match:
        raise ParseError("time_ordered", value, "not a HH:MM[:SS] time")

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ParseError("time_ordered", value, "not a valid time of day")

    return hour


def parse_numeric(value: Any, column: str) -> float:
    """
    Parse a raw numeric field (age, rating) that may arrive as text.

    Raises:
        ParseError: if the value is missing, not a number or not finite
    """
    if is_missing(value):
        raise ParseError(column, value, "missing value")
    if isinstance(value, bool):
        raise ParseError(column, value, "not a number")

    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise ParseError(column, value, "not a number")

    if not math.isfinite(number):
        raise ParseError(column, value, "not a finite number")
    return number


def round_half_up(value: float, ndigits: int = 0) -> Union[int, float]:
    """
    Round half away from zero, matching SQL ROUND().

    Returns an int when ndigits is 0.
    """
    quantum = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)
