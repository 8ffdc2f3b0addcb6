"""End-to-end job runs against a SQLite store."""

import json
import os

from jobs.run_pipeline_job import main, run_pipeline_job


def test_job_cleans_materializes_and_reports(sqlite_connector, job_settings_file, tmp_path):
    summary = run_pipeline_job(job_settings_file)

    assert summary["status"] == "success"
    assert summary["rows_written"] == 5
    assert summary["analytics_rows"] == 5
    assert summary["quarantined_values"] == 0
    assert summary["overall_performance"]["sla_breach_percentage"] == 40.0

    analytics = sqlite_connector.read_table("orders_analytics")
    assert len(analytics) == 5

    raw = sqlite_connector.read_table("raw_orders").set_index("order_id")
    assert raw.loc["0x70a2", "road_traffic_density"] == "Unkown"
    assert raw["delivery_duration"].tolist() == [10, 45, 40, 41, 5]

    reports_dir = tmp_path / "reports"
    assert (reports_dir / "performance_by_city.csv").exists()
    assert (reports_dir / "delivery_partner_performance.csv").exists()
    with open(summary["results_file"]) as f:
        saved = json.load(f)
    assert saved["run_id"] == summary["run_id"]
    assert saved["pipeline"]["quality"]["passed"] is True
    assert saved["pipeline"]["profile"]["dimensions"]["uniqueness"]["score"] == 100


def test_skip_reports(sqlite_connector, job_settings_file, tmp_path):
    output_dir = tmp_path / "out"

    summary = run_pipeline_job(job_settings_file, output_dir=str(output_dir), skip_reports=True)

    assert summary["status"] == "success"
    assert "report_files" not in summary
    assert os.listdir(output_dir) == [os.path.basename(summary["results_file"])]


def test_rejections_are_quarantined(sqlite_connector, job_settings_file):
    with sqlite_connector.engine.begin() as conn:
        conn.exec_driver_sql("UPDATE raw_orders SET order_date = 'bad-date' WHERE order_id = '0x4607'")

    summary = run_pipeline_job(job_settings_file)

    assert summary["status"] == "completed_with_warnings"
    assert summary["quarantined_values"] == 1
    rejected = sqlite_connector.read_table("rejected_orders")
    assert rejected["order_id"].tolist() == ["0x4607"]
    assert rejected["column"].tolist() == ["order_date"]


def test_missing_table_fails_the_job(job_settings_file):
    # no raw_orders table seeded
    summary = run_pipeline_job(job_settings_file)

    assert summary["status"] == "failed"
    assert summary["error"]


def test_main_exit_codes(sqlite_connector, job_settings_file, tmp_path):
    assert main(["--settings", job_settings_file, "--output-dir", str(tmp_path / "cli")]) == 0

    with sqlite_connector.engine.begin() as conn:
        conn.exec_driver_sql("UPDATE raw_orders SET peak_hour_flag = NULL, time_ordered = 'late' WHERE order_id = '0xb379'")

    assert main(["--settings", job_settings_file, "--skip-reports"]) == 0
    assert main(["--settings", job_settings_file, "--skip-reports", "--strict"]) == 1


def test_main_reports_failure(job_settings_file):
    assert main(["--settings", job_settings_file]) == 1
