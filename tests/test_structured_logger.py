"""Structured logging."""

import io
import json
import logging

from observability import StructuredLogger, JsonFormatter, configure_logging


def _capture(structured):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    structured._logger.addHandler(handler)
    structured.handlers.append(handler)
    return stream


def _lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_json_lines_with_context():
    logger = StructuredLogger("test.structured", enable_console=False)
    stream = _capture(logger)

    with logger.context(run_id="abc123", stage="normalize_order_dates"):
        logger.info("Processing data", extra={"rows": 5})
    logger.info("Outside context")
    logger.close()

    first, second = _lines(stream)
    assert first["message"] == "Processing data"
    assert first["level"] == "INFO"
    assert first["context"] == {"run_id": "abc123", "stage": "normalize_order_dates"}
    assert first["run_id"] == "abc123"
    assert first["rows"] == 5
    assert "context" not in second


def test_stage_and_quality_events():
    logger = StructuredLogger("test.events", enable_console=False)
    stream = _capture(logger)

    logger.log_stage_start("derive_sla_breach_flag", "r1")
    logger.log_stage_end("derive_sla_breach_flag", "r1", "success", 0.01)
    logger.log_quality_check("required_derived_fields", "raw_orders", False, details={"clean_order_date": 1})
    logger.close()

    start, end, quality = _lines(stream)
    assert start["event"] == "stage_start"
    assert end["status"] == "success"
    assert quality["level"] == "WARNING"
    assert quality["details"] == {"clean_order_date": 1}


def test_exception_is_serialized():
    logger = StructuredLogger("test.errors", enable_console=False)
    stream = _capture(logger)

    try:
        raise ValueError("boom")
    except ValueError as e:
        logger.error("Stage failed", exception=e)
    logger.close()

    (entry,) = _lines(stream)
    assert entry["exception"]["type"] == "ValueError"
    assert entry["exception"]["message"] == "boom"


def test_configure_logging_routes_module_loggers(tmp_path):
    log_path = tmp_path / "logs" / "job.log"
    structured = configure_logging(
        {"level": "INFO", "console": False, "log_to_file": True, "log_path": str(log_path)},
        "test.job"
    )

    logging.getLogger("processing.staging.cleaning").info("module message")
    structured.info("job message")
    structured.close()

    messages = [json.loads(line)["message"] for line in log_path.read_text().splitlines()]
    assert messages == ["module message", "job message"]
    assert not any(h in logging.getLogger().handlers for h in structured.handlers)


class FakeCursor:

    def __init__(self, statements):
        self.statements = statements

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.statements.append(("execute", sql))

    def executemany(self, sql, rows):
        self.statements.append(("executemany", sql, list(rows)))


class FakeConnection:

    def __init__(self):
        self.statements = []
        self.closed = 0
        self.commits = 0

    def cursor(self):
        return FakeCursor(self.statements)

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass

    def close(self):
        self.closed = 1


def test_postgres_handler_creates_table_and_batches_inserts(monkeypatch):
    from observability.logging import structured_logger

    conn = FakeConnection()
    connect_kwargs = {}

    def fake_connect(**kwargs):
        connect_kwargs.update(kwargs)
        return conn

    monkeypatch.setattr(structured_logger.psycopg2, "connect", fake_connect)

    logger = StructuredLogger(
        "test.postgres",
        enable_console=False,
        enable_postgres=True,
        postgres_config={"host": "localhost", "dbname": "logs", "table": "job_logs"}
    )
    logger.log_data_profile("raw_orders", 5, 12, quality_score=98.5)
    logger.info("second record")
    assert conn.statements == []

    logger.close()

    assert connect_kwargs == {"host": "localhost", "dbname": "logs"}
    (create, insert) = conn.statements
    assert create[0] == "execute"
    assert "CREATE TABLE IF NOT EXISTS job_logs" in create[1]
    assert insert[0] == "executemany"
    assert insert[1].startswith("INSERT INTO job_logs")
    rows = insert[2]
    assert [row[3] for row in rows] == ["Data profile: raw_orders", "second record"]
    assert rows[0][0] == "INFO"
    assert rows[0][5].adapted["quality_score"] == 98.5
    assert conn.closed


def test_data_profile_quality_score():
    logger = StructuredLogger("test.profile", enable_console=False)
    stream = _capture(logger)

    logger.log_data_profile("raw_orders", 5, 12)
    logger.log_data_profile("raw_orders", 5, 16, quality_score=100.0)
    logger.close()

    raw, cleaned = _lines(stream)
    assert raw["event"] == "data_profile"
    assert "quality_score" not in raw
    assert cleaned["quality_score"] == 100.0
    assert cleaned["column_count"] == 16
