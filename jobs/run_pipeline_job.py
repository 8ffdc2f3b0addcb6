#!/usr/bin/env python3
"""
Pipeline Job Runner
===================

Main entry point for the food delivery KPI job.

Steps:
1. Connect to the store and inspect the raw orders table
2. Load orders into an OrderStore (schema contract + identity constraint)
3. Run the cleaning pipeline
4. Write derived columns back and materialize the analytics table
5. Quarantine rejected values
6. Build and export KPI reports
"""

import json
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ingestion.connectors.sql_connector import SQLConnector
from ingestion.order_store import OrderStore
from observability.logging.structured_logger import configure_logging, new_trace_id
from processing.common_code.settings import PipelineSettings
from processing.common_code.utils import read_config
from processing.curated.analytics import materialize_analytics_table
from processing.curated.kpi_reports import build_all_reports, export_reports
from processing.pipeline import CleaningPipeline
from quality_framework.rejection_handler import RejectionHandler

DEFAULT_SETTINGS_PATH = str(Path(__file__).parent / "job_settings.json")


def load_job_settings(settings_path: str = DEFAULT_SETTINGS_PATH) -> Dict:
    """Load job settings from JSON file."""
    return read_config(settings_path)


def run_pipeline_job(
    settings_path: str = DEFAULT_SETTINGS_PATH,
    output_dir: Optional[str] = None,
    skip_reports: bool = False
) -> Dict:
    """
    Run the cleaning pipeline and KPI reports once.

    Args:
        settings_path: Path to job_settings.json
        output_dir: Directory for reports and the run summary
            (defaults to 'output_dir' from the settings)
        skip_reports: Stop after the analytics table is materialized

    Returns:
        Job summary dict ('status' is success, completed_with_warnings or failed)
    """
    config = load_job_settings(settings_path)
    job_name = config.get("job_settings", {}).get("name", "food_delivery_kpi")
    output_dir = output_dir or config.get("output_dir", "reports")

    logger = configure_logging(config.get("logging"), job_name)
    settings = PipelineSettings.from_config(config)
    run_id = new_trace_id()
    rejections = RejectionHandler(batch_id=run_id)

    job_start = datetime.now()
    start = time.time()
    summary = {
        "job_name": job_name,
        "run_id": run_id,
        "start_time": job_start.isoformat(),
        "status": "running",
        "settings": settings.to_dict()
    }
    rows_processed = 0

    logger.info("=" * 60)
    logger.info("FOOD DELIVERY KPI JOB")
    logger.info("=" * 60)

    try:
        with logger.context(run_id=run_id):
            logger.log_pipeline_start(job_name, run_id, config=settings.to_dict())

            with SQLConnector(config["connections"]["store"]) as connector:
                # Inspection
                row_count = connector.get_row_count(settings.raw_table)
                schema = connector.get_table_schema(settings.raw_table)
                logger.log_data_profile(settings.raw_table, row_count, len(schema))

                store = OrderStore.from_connector(connector, settings.raw_table)
                rows_processed = len(store)

                pipeline = CleaningPipeline(settings, rejections=rejections, events=logger)
                projection, run_summary = pipeline.run(store)

                rows_written = store.save(connector)
                analytics_rows = materialize_analytics_table(
                    projection, connector, settings.analytics_table
                )
                quarantined = rejections.quarantine(connector, settings.rejected_table)

            summary.update({
                "status": run_summary["status"],
                "pipeline": run_summary,
                "rows_written": rows_written,
                "analytics_rows": analytics_rows,
                "quarantined_values": quarantined
            })

            if skip_reports:
                logger.info("Reports skipped")
            else:
                reports = build_all_reports(store, settings)
                summary["report_files"] = export_reports(reports, output_dir)
                summary["overall_performance"] = reports["overall_performance"]

    except Exception as e:
        logger.error(f"Pipeline job failed: {e}", extra={"run_id": run_id}, exception=e)
        summary["status"] = "failed"
        summary["error"] = str(e)

    duration = time.time() - start
    summary["end_time"] = datetime.now().isoformat()
    summary["duration_seconds"] = round(duration, 3)

    # Save results
    os.makedirs(output_dir, exist_ok=True)
    results_file = os.path.join(output_dir, f"run_summary_{run_id}.json")
    with open(results_file, 'w') as f:
        json.dump(summary, f, indent=2, default=str)
    summary["results_file"] = results_file

    logger.log_pipeline_end(job_name, run_id, summary["status"], duration, rows_processed)
    logger.info("=" * 60)
    logger.info("JOB COMPLETE")
    logger.info(f"Status: {summary['status']}")
    logger.info(f"Duration: {duration:.2f} seconds")
    logger.info(f"Orders: {rows_processed}")
    logger.info(f"Results saved to: {results_file}")
    logger.info("=" * 60)
    logger.close()

    return summary


def main(argv=None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Run Food Delivery KPI Job")
    parser.add_argument(
        "--settings",
        type=str,
        default=DEFAULT_SETTINGS_PATH,
        help="Path to job_settings.json"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for KPI reports and the run summary"
    )
    parser.add_argument(
        "--skip-reports",
        action="store_true",
        help="Clean and materialize only, do not export KPI reports"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when the data quality gate finds residual nulls"
    )

    args = parser.parse_args(argv)

    result = run_pipeline_job(args.settings, args.output_dir, args.skip_reports)

    if result["status"] == "failed":
        return 1
    if args.strict and result["status"] != "success":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
