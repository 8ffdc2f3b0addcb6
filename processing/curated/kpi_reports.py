"""
KPI Reports (Curated Layer)
===========================

Read-only delivery performance aggregates over cleaned orders.

Every grouped report returns a DataFrame with the group key followed by
total_orders, avg_delivery_time and sla_breach_percentage:
- total_orders: rows in the group
- avg_delivery_time: mean of non-null durations, 2 dp (NaN if none)
- sla_breach_percentage: 100 * breaches / total_orders, 2 dp (0 for an empty group)

Reports:
1. overall_performance: global totals
2. performance_by_city: breach rate desc
3. peak_vs_non_peak: peak first, both groups always present
4. daily_trend: by clean_order_date asc
5. performance_by_traffic: avg time desc
6. performance_by_weather: avg time desc
7. delivery_partner_performance: partners with >= 30 orders, avg time desc
8. delivery_partner_order_counts: busiest partners
"""

import json
import logging
import os
from typing import Dict, List, Optional, Union

import pandas as pd

from processing.common_code.settings import MIN_ORDERS_PER_PARTNER, PipelineSettings
from processing.common_code.utils import round_half_up

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ["total_orders", "avg_delivery_time", "sla_breach_percentage"]


def _frame_of(source) -> pd.DataFrame:
    """Accept an OrderStore, the analytics projection or any orders DataFrame."""
    if isinstance(source, pd.DataFrame):
        return source.reset_index() if source.index.name == "order_id" else source
    return source.to_frame()


def summarize_group(frame: pd.DataFrame) -> Dict:
    """Order count, average duration and SLA breach rate for one group."""
    total = len(frame)

    durations = frame["delivery_duration"].dropna().astype("float64")
    avg = round_half_up(float(durations.mean()), 2) if len(durations) else None

    flags = frame["sla_breach_flag"].dropna().astype(bool)
    breaches = int(flags.sum())
    pct = round_half_up(breaches * 100.0 / total, 2) if total else 0.0

    return {
        "total_orders": total,
        "avg_delivery_time": avg,
        "total_sla_breaches": breaches,
        "sla_breach_percentage": pct
    }


def _empty_report(key: str) -> pd.DataFrame:
    return pd.DataFrame(columns=[key] + METRIC_COLUMNS)


def _grouped_report(
    source,
    key: str,
    sort_by: str,
    ascending: bool,
    min_orders: Optional[int] = None
) -> pd.DataFrame:
    df = _frame_of(source)
    if key not in df.columns:
        raise KeyError(f"Report dimension not available: {key}")
    if df.empty:
        return _empty_report(key)

    rows = []
    for group_key, group in df.groupby(key, dropna=False, sort=False):
        if min_orders is not None and len(group) < min_orders:
            continue
        summary = summarize_group(group)
        rows.append({key: group_key, **{c: summary[c] for c in METRIC_COLUMNS}})

    if not rows:
        return _empty_report(key)

    report = pd.DataFrame(rows, columns=[key] + METRIC_COLUMNS)
    report = report.sort_values(key, kind="mergesort", na_position="last")
    report = report.sort_values(sort_by, ascending=ascending, kind="mergesort", na_position="last")
    return report.reset_index(drop=True)


def overall_performance(source) -> Dict:
    """
    Global KPIs: total orders, average delivery time, breaches, breach rate.

    An empty dataset gives zero counts and no average.
    """
    df = _frame_of(source)
    if df.empty:
        return {
            "total_orders": 0,
            "avg_delivery_time": None,
            "total_sla_breaches": 0,
            "sla_breach_percentage": 0.0
        }
    return summarize_group(df)


def performance_by_city(source) -> pd.DataFrame:
    """City-level performance, worst breach rate first."""
    return _grouped_report(source, "city", "sla_breach_percentage", ascending=False)


def peak_vs_non_peak(source) -> pd.DataFrame:
    """
    Peak (7-9 PM) versus non-peak performance.

    Both groups are always present; an empty group reports zero orders and
    a 0 breach rate. Rows without a peak flag form a trailing null group.
    """
    df = _frame_of(source)
    flags = df["peak_hour_flag"]

    groups = [(True, df[flags.eq(True).fillna(False).astype(bool)]),
              (False, df[flags.eq(False).fillna(False).astype(bool)])]
    unflagged = df[flags.isna().to_numpy()]
    if not unflagged.empty:
        groups.append((None, unflagged))

    rows = []
    for flag, group in groups:
        summary = summarize_group(group)
        rows.append({"peak_hour_flag": flag, **{c: summary[c] for c in METRIC_COLUMNS}})

    return pd.DataFrame(rows, columns=["peak_hour_flag"] + METRIC_COLUMNS)


def daily_trend(source) -> pd.DataFrame:
    """Daily performance, oldest day first."""
    return _grouped_report(source, "clean_order_date", "clean_order_date", ascending=True)


def performance_by_traffic(source) -> pd.DataFrame:
    """Performance per road traffic density, slowest first."""
    return _grouped_report(source, "road_traffic_density", "avg_delivery_time", ascending=False)


def performance_by_weather(source) -> pd.DataFrame:
    """Performance per weather condition, slowest first."""
    return _grouped_report(source, "weather_conditions", "avg_delivery_time", ascending=False)


def delivery_partner_performance(source, min_orders: int = MIN_ORDERS_PER_PARTNER) -> pd.DataFrame:
    """
    Performance per delivery person with at least min_orders orders,
    slowest first. Needs the full order store (the analytics projection
    does not carry delivery_person_id).
    """
    return _grouped_report(
        source,
        "delivery_person_id",
        "avg_delivery_time",
        ascending=False,
        min_orders=min_orders
    )


def delivery_partner_order_counts(source, limit: int = 10) -> pd.DataFrame:
    """Orders handled per delivery person, busiest first."""
    df = _frame_of(source)
    if df.empty:
        return pd.DataFrame(columns=["delivery_person_id", "total_orders"])

    counts = (
        df.groupby("delivery_person_id", dropna=False)
        .size()
        .rename("total_orders")
        .reset_index()
        .sort_values("total_orders", ascending=False, kind="mergesort")
    )
    return counts.head(limit).reset_index(drop=True)


def build_all_reports(source, settings: Optional[PipelineSettings] = None) -> Dict[str, Union[Dict, pd.DataFrame]]:
    """
    Run every KPI report.

    Args:
        source: Cleaned OrderStore (or DataFrame with delivery_person_id)
        settings: Pipeline settings (for the partner threshold)

    Returns:
        Report name -> result
    """
    settings = settings if settings is not None else PipelineSettings()
    df = _frame_of(source)

    reports = {
        "overall_performance": overall_performance(df),
        "performance_by_city": performance_by_city(df),
        "peak_vs_non_peak": peak_vs_non_peak(df),
        "daily_trend": daily_trend(df),
        "performance_by_traffic": performance_by_traffic(df),
        "performance_by_weather": performance_by_weather(df),
    }

    if "delivery_person_id" in df.columns:
        reports["delivery_partner_performance"] = delivery_partner_performance(
            df, min_orders=settings.min_orders_per_partner
        )
        reports["delivery_partner_order_counts"] = delivery_partner_order_counts(df)
    else:
        logger.warning("delivery_person_id not available, partner reports skipped")

    overall = reports["overall_performance"]
    logger.info(
        f"KPI reports built: {overall['total_orders']} orders, "
        f"avg {overall['avg_delivery_time']} min, "
        f"{overall['sla_breach_percentage']}% SLA breaches"
    )
    return reports


def export_reports(reports: Dict[str, Union[Dict, pd.DataFrame]], output_dir: str) -> List[str]:
    """
    Write reports to output_dir: DataFrames as CSV, dict reports as JSON.

    Returns:
        Paths written
    """
    os.makedirs(output_dir, exist_ok=True)
    written = []

    for name, report in reports.items():
        if isinstance(report, pd.DataFrame):
            path = os.path.join(output_dir, f"{name}.csv")
            report.to_csv(path, index=False)
        else:
            path = os.path.join(output_dir, f"{name}.json")
            with open(path, 'w') as f:
                json.dump(report, f, indent=2, default=str)
        written.append(path)
        logger.info(f"saved: {path}")

    return written
