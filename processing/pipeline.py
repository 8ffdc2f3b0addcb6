"""
Cleaning Pipeline
=================

Runs the cleaning and feature stages against one OrderStore in the
required order, applies the data quality gate and builds the analytics
projection last.

Order:
1. normalize_order_dates
2. extract_delivery_durations
3. impute_numeric_means
4. impute_categorical_defaults
5. derive_sla_breach_flag      (needs final delivery_duration)
6. derive_peak_hour_flag       (needs time_ordered)
7. data quality gate and completeness/uniqueness profile
8. analytics projection
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from processing.common_code.settings import PipelineSettings
from processing.curated.analytics import build_analytics_projection
from processing.staging.cleaning import (
    extract_delivery_durations,
    impute_categorical_defaults,
    impute_numeric_means,
    normalize_order_dates
)
from processing.staging.features import derive_peak_hour_flag, derive_sla_breach_flag
from quality_framework.rejection_handler import RejectionHandler
from quality_framework.schema_contract import DimensionMetrics

logger = logging.getLogger(__name__)


class CleaningPipeline:
    """Serial cleaning pipeline over an explicit order store."""

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        rejections: Optional[RejectionHandler] = None,
        metrics: Optional[DimensionMetrics] = None,
        events=None
    ):
        """
        Args:
            settings: Business rules and sentinels
            rejections: Collector for unparseable values
            metrics: Data quality gate
            events: Optional StructuredLogger for stage events
        """
        self.settings = settings if settings is not None else PipelineSettings()
        self.rejections = rejections if rejections is not None else RejectionHandler()
        self.metrics = metrics if metrics is not None else DimensionMetrics()
        self.events = events

    def stages(self) -> List[Tuple[str, Callable]]:
        s = self.settings
        r = self.rejections
        return [
            ("normalize_order_dates",
             lambda store: normalize_order_dates(store, r, date_format=s.date_format)),
            ("extract_delivery_durations",
             lambda store: extract_delivery_durations(store, r, prefix=s.duration_prefix)),
            ("impute_numeric_means",
             lambda store: impute_numeric_means(store, r)),
            ("impute_categorical_defaults",
             lambda store: impute_categorical_defaults(
                 store,
                 weather_sentinel=s.weather_sentinel,
                 traffic_sentinel=s.traffic_sentinel,
                 festival_default=s.festival_default
             )),
            ("derive_sla_breach_flag",
             lambda store: derive_sla_breach_flag(store, threshold=s.sla_threshold_minutes)),
            ("derive_peak_hour_flag",
             lambda store: derive_peak_hour_flag(
                 store, r, start_hour=s.peak_hour_start, end_hour=s.peak_hour_end
             )),
        ]

    def run(self, store) -> Tuple[pd.DataFrame, Dict]:
        """
        Execute every stage over the store.

        Args:
            store: OrderStore to clean in place

        Returns:
            Tuple of (analytics_projection, run_summary)
        """
        run_id = self.rejections.batch_id
        run_start = time.time()
        stages = self.stages()
        results = []

        logger.info("=" * 60)
        logger.info(f"CLEANING PIPELINE - {len(store)} orders (run {run_id})")
        logger.info("=" * 60)

        for i, (name, stage) in enumerate(stages, 1):
            logger.info(f"Stage {i}/{len(stages)}: {name}")
            if self.events:
                self.events.log_stage_start(name, run_id)

            stage_start = time.time()
            result = stage(store)
            result["duration_seconds"] = round(time.time() - stage_start, 3)
            results.append(result)

            if self.events:
                self.events.log_stage_end(name, run_id, "success", result["duration_seconds"])

        quality = self.metrics.check_required_fields(store.frame, store.table)
        if self.events:
            self.events.log_quality_check(
                "required_derived_fields",
                store.table,
                quality["passed"],
                details=quality["null_counts"]
            )

        profile = self.metrics.calculate_all_dimensions(store.frame, store.table, stage="cleaned")
        logger.info(f"Quality score after cleaning: {profile['overall_quality_score']}")
        if self.events:
            self.events.log_data_profile(
                store.table,
                profile["row_count"],
                profile["column_count"],
                quality_score=profile["overall_quality_score"]
            )

        projection = build_analytics_projection(store)

        summary = {
            "run_id": run_id,
            "status": "success" if quality["passed"] else "completed_with_warnings",
            "total_orders": len(store),
            "stages": results,
            "rejections": self.rejections.summary(len(store), store.table),
            "quality": quality,
            "profile": profile,
            "validation": {
                "delivery_time_range": self.metrics.delivery_time_range(store.frame),
                "sanity": self.metrics.sanity_summary(store.frame)
            },
            "duration_seconds": round(time.time() - run_start, 3)
        }

        logger.info(f"Pipeline finished: {summary['status']} in {summary['duration_seconds']}s")
        return projection, summary
