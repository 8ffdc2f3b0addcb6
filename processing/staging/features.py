"""
Business Flags
==============

Boolean features derived from finalized durations and order times.
Must run after the cleaning stages.
"""

import logging
from typing import Dict

import pandas as pd

from processing.common_code.settings import PEAK_HOUR_END, PEAK_HOUR_START, SLA_THRESHOLD_MINUTES
from processing.common_code.utils import parse_hour_of_day
from quality_framework.exceptions import ParseError
from .cleaning import stage_result

logger = logging.getLogger(__name__)


def derive_sla_breach_flag(store, threshold: int = SLA_THRESHOLD_MINUTES) -> Dict:
    """
    sla_breach_flag = delivery_duration > threshold.

    Rows without a duration keep a null flag.
    """
    df = store.frame
    unset = df["sla_breach_flag"].isna()
    pending = unset & df["delivery_duration"].notna()

    if pending.any():
        df.loc[pending, "sla_breach_flag"] = df.loc[pending, "delivery_duration"] > threshold

    breaches = int(df.loc[pending, "sla_breach_flag"].sum())
    logger.info(f"  derive_sla_breach_flag: {int(pending.sum())} flagged, {breaches} over {threshold} min")

    return stage_result(
        "derive_sla_breach_flag",
        int(unset.sum()),
        int(pending.sum()),
        threshold_minutes=threshold
    )


def derive_peak_hour_flag(
    store,
    rejections=None,
    start_hour: int = PEAK_HOUR_START,
    end_hour: int = PEAK_HOUR_END
) -> Dict:
    """
    peak_hour_flag = start_hour <= hour(time_ordered) <= end_hour.

    Unreadable order times are rejected and keep a null flag.
    """
    df = store.frame
    stage = "derive_peak_hour_flag"
    pending = df.index[df["peak_hour_flag"].isna().to_numpy()]

    flags = {}
    rejected = 0
    for order_id, raw in df.loc[pending, "time_ordered"].items():
        try:
            hour = parse_hour_of_day(raw)
        except ParseError as e:
            rejected += 1
            if rejections is not None:
                rejections.record(order_id, e, stage)
            continue
        flags[order_id] = start_hour <= hour <= end_hour

    if flags:
        df.loc[list(flags), "peak_hour_flag"] = pd.Series(flags, dtype="boolean")

    logger.info(f"  {stage}: {len(flags)}/{len(pending)} flagged ({sum(flags.values())} peak)")

    return stage_result(
        stage,
        len(pending),
        len(flags),
        rejected,
        peak_window=[start_hour, end_hour]
    )
