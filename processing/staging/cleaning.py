"""
Cleaning Stages (Raw -> Cleaned)
================================

Turns raw, text-encoded order fields into typed columns and fills missing
values. Every stage works on an explicit OrderStore and only touches rows
whose target field is still unset, so re-running is safe.

Stages:
1. normalize_order_dates: order_date text (DD-MM-YYYY) -> clean_order_date
2. extract_delivery_durations: '(min) 24' -> delivery_duration = 24
3. impute_numeric_means: null or non-numeric age / rating -> rounded snapshot mean
4. impute_categorical_defaults: null weather / traffic / festival -> sentinels
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd

from processing.common_code.settings import (
    AGE_DECIMALS,
    DATE_FORMAT,
    DURATION_PREFIX,
    FESTIVAL_DEFAULT,
    RATING_DECIMALS,
    TRAFFIC_SENTINEL,
    WEATHER_SENTINEL
)
from processing.common_code.utils import (
    is_missing,
    parse_duration_minutes,
    parse_numeric,
    parse_order_date,
    round_half_up
)
from quality_framework.exceptions import ParseError

logger = logging.getLogger(__name__)

NUMERIC_IMPUTATION = {
    "delivery_person_age": AGE_DECIMALS,
    "delivery_person_ratings": RATING_DECIMALS,
}


def stage_result(stage: str, considered: int, updated: int, rejected: int = 0, **extra) -> Dict:
    result = {
        "stage": stage,
        "rows_considered": considered,
        "rows_updated": updated,
        "rows_rejected": rejected
    }
    result.update(extra)
    return result


def _parse_pending(store, source_col: str, target_col: str, parser, stage: str, rejections) -> Dict:
    """Parse source_col into target_col for rows where target_col is unset."""
    df = store.frame
    pending = df.index[df[target_col].isna().to_numpy()]

    parsed = {}
    rejected = 0
    for order_id, raw in df.loc[pending, source_col].items():
        try:
            parsed[order_id] = parser(raw)
        except ParseError as e:
            rejected += 1
            if rejections is not None:
                rejections.record(order_id, e, stage)

    if parsed:
        df.loc[list(parsed), target_col] = pd.Series(parsed, dtype=df[target_col].dtype)

    if rejected:
        logger.warning(f"  {stage}: {rejected} rows left unconverted")
    logger.info(f"  {stage}: {len(parsed)}/{len(pending)} pending rows converted")

    return stage_result(stage, len(pending), len(parsed), rejected)


def normalize_order_dates(store, rejections=None, date_format: str = DATE_FORMAT) -> Dict:
    """
    Parse order_date (day-month-year text) into clean_order_date.

    Rows whose text does not match the pattern stay unset and are recorded
    in the rejection handler.

    Args:
        store: OrderStore to mutate
        rejections: Optional RejectionHandler
        date_format: strptime pattern of the raw text

    Returns:
        Stage result dict
    """
    return _parse_pending(
        store,
        "order_date",
        "clean_order_date",
        lambda raw: parse_order_date(raw, date_format),
        "normalize_order_dates",
        rejections
    )


def extract_delivery_durations(store, rejections=None, prefix: str = DURATION_PREFIX) -> Dict:
    """
    Strip the '(min) ' prefix from time_taken_min and store whole minutes
    in delivery_duration. Negative or non-numeric remainders are rejected.

    Returns:
        Stage result dict
    """
    return _parse_pending(
        store,
        "time_taken_min",
        "delivery_duration",
        lambda raw: parse_duration_minutes(raw, prefix),
        "extract_delivery_durations",
        rejections
    )


def _parse_numeric_column(store, col: str, stage: str, rejections) -> int:
    """Convert a raw numeric column to float64; unparseable values become null."""
    df = store.frame
    if pd.api.types.is_numeric_dtype(df[col]) and not pd.api.types.is_bool_dtype(df[col]):
        df[col] = df[col].astype("float64")
        return 0

    values = []
    rejected = 0
    for order_id, raw in df[col].items():
        if is_missing(raw):
            values.append(np.nan)
            continue
        try:
            values.append(parse_numeric(raw, col))
        except ParseError as e:
            rejected += 1
            values.append(np.nan)
            if rejections is not None:
                rejections.record(order_id, e, stage)

    df[col] = pd.Series(values, index=df.index, dtype="float64")
    if rejected:
        logger.warning(f"  {col}: {rejected} non-numeric values treated as missing")
    return rejected


def impute_numeric_means(store, rejections=None, columns: Optional[Dict[str, int]] = None) -> Dict:
    """
    Fill null numeric fields with the rounded mean of the known values.

    Two passes: every mean is taken from the snapshot before any value is
    assigned, so rows filled in this pass never feed a mean. Raw values that
    are not numbers are recorded as rejections and imputed like nulls.

    Args:
        store: OrderStore to mutate
        rejections: Optional RejectionHandler
        columns: Column -> decimals for rounding (age to 0, rating to 2)

    Returns:
        Stage result dict with the fill value used per column
    """
    df = store.frame
    columns = columns or NUMERIC_IMPUTATION
    stage = "impute_numeric_means"

    rejected = sum(_parse_numeric_column(store, col, stage, rejections) for col in columns)

    # Pass 1: snapshot means
    fill_values = {}
    for col, decimals in columns.items():
        known = df[col].dropna()
        if known.empty:
            logger.warning(f"  {col}: no known values, imputation skipped")
            fill_values[col] = None
            continue
        fill_values[col] = round_half_up(float(known.mean()), decimals)

    # Pass 2: apply to nulls
    filled = {}
    for col, value in fill_values.items():
        mask = df[col].isna()
        if value is None or not mask.any():
            filled[col] = 0
            continue
        df.loc[mask, col] = value
        filled[col] = int(mask.sum())
        logger.info(f"  {col}: filled {filled[col]} nulls with {value}")

    return stage_result(
        stage,
        len(df),
        sum(filled.values()),
        rejected,
        fill_values=fill_values,
        filled=filled
    )


def impute_categorical_defaults(
    store,
    weather_sentinel: str = WEATHER_SENTINEL,
    traffic_sentinel: str = TRAFFIC_SENTINEL,
    festival_default: str = FESTIVAL_DEFAULT
) -> Dict:
    """
    Replace null categorical values with literal sentinels.

    The traffic sentinel defaults to 'Unkown', the literal downstream
    reports already group on.

    Returns:
        Stage result dict
    """
    df = store.frame
    defaults = {
        "weather_conditions": weather_sentinel,
        "road_traffic_density": traffic_sentinel,
        "festival": festival_default,
    }

    filled = {}
    for col, value in defaults.items():
        mask = df[col].isna()
        filled[col] = int(mask.sum())
        if filled[col]:
            df.loc[mask, col] = value
            logger.info(f"  {col}: filled {filled[col]} nulls with '{value}'")

    return stage_result(
        "impute_categorical_defaults",
        len(df),
        sum(filled.values()),
        filled=filled
    )
