"""
Structured Logger
=================

JSON logging for the order cleaning and KPI job.

- One JSON object per line on the console and in the job log file
- Thread-local context (run_id, stage) merged into every record
- Job events: pipeline start/end, stage start/end, quality checks, data profiles
- Optional persistence to PostgreSQL (PIPELINE_LOGS_DDL)
"""

import json
import logging
import os
import sys
import threading
import traceback
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

import psycopg2
from psycopg2.extras import Json

_context = threading.local()

# LogRecord attributes that are not user supplied "extra" fields
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

PIPELINE_LOGS_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    id           BIGSERIAL PRIMARY KEY,
    logged_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
    log_level    VARCHAR(10) NOT NULL,
    logger_name  VARCHAR(200) NOT NULL,
    source       VARCHAR(200),
    message      TEXT NOT NULL,
    exception    TEXT,
    log_metadata JSONB
)
"""


def _current_context() -> Dict:
    return dict(getattr(_context, "data", {}))


def _record_payload(record: logging.LogRecord) -> Dict:
    """Message, extra fields and active context of a record."""
    payload = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
        "module": record.module,
        "extra": {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS},
        "context": _current_context()
    }
    if record.exc_info:
        exc_type, exc_value, _ = record.exc_info
        payload["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "traceback": traceback.format_exception(*record.exc_info)
        }
    return payload


class JsonFormatter(logging.Formatter):
    """Formats records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = _record_payload(record)
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": payload["level"],
            "logger": payload["logger"],
            "message": payload["message"],
            "module": payload["module"],
            "function": record.funcName,
            "line": record.lineno
        }
        if "exception" in payload:
            entry["exception"] = payload["exception"]
        if payload["context"]:
            entry["context"] = payload["context"]
        entry.update(payload["extra"])
        return json.dumps(entry, default=str)


class PostgresLogHandler(logging.Handler):
    """
    Buffers records and writes them to a PostgreSQL table.

    The table is created with PIPELINE_LOGS_DDL on the first flush if it
    does not exist yet. Connection failures fall back to stderr so logging
    never stops the job.
    """

    def __init__(self, postgres_config: Dict, table: str = "pipeline_logs", batch_size: int = 100):
        super().__init__()
        self.postgres_config = postgres_config
        self.table = table
        self.batch_size = batch_size
        self._rows: List[tuple] = []
        self._lock = threading.Lock()
        self._conn = None

    def _connection(self):
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(**self.postgres_config)
            with self._conn.cursor() as cur:
                cur.execute(PIPELINE_LOGS_DDL.format(table=self.table))
            self._conn.commit()
        return self._conn

    def emit(self, record: logging.LogRecord):
        try:
            payload = _record_payload(record)
            metadata = dict(payload["extra"])
            if payload["context"]:
                metadata["context"] = payload["context"]
            exception = "".join(payload["exception"]["traceback"]) if "exception" in payload else None

            with self._lock:
                self._rows.append((
                    payload["level"],
                    payload["logger"],
                    payload["module"],
                    payload["message"],
                    exception,
                    Json(metadata, dumps=lambda o: json.dumps(o, default=str)) if metadata else None
                ))
                if len(self._rows) >= self.batch_size:
                    self._write()
        except Exception:
            self.handleError(record)

    def _write(self):
        if not self._rows:
            return
        try:
            conn = self._connection()
            with conn.cursor() as cur:
                cur.executemany(
                    f"INSERT INTO {self.table} "
                    "(log_level, logger_name, source, message, exception, log_metadata) "
                    "VALUES (%s, %s, %s, %s, %s, %s)",
                    self._rows
                )
            conn.commit()
            self._rows = []
        except psycopg2.Error as e:
            sys.stderr.write(f"Failed to write {len(self._rows)} log records to PostgreSQL: {e}\n")
            if self._conn is not None and not self._conn.closed:
                self._conn.rollback()

    def flush(self):
        with self._lock:
            self._write()

    def close(self):
        self.flush()
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        super().close()


class StructuredLogger:
    """
    Job logger with context management and JSON output.

    Usage:
        logger = StructuredLogger("food_delivery_kpi")
        with logger.context(run_id="abc123"):
            logger.log_stage_start("normalize_order_dates", "abc123")
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        enable_console: bool = True,
        enable_postgres: bool = False,
        postgres_config: Optional[Dict] = None,
        json_format: bool = True,
        log_path: Optional[str] = None
    ):
        """
        Args:
            name: Logger name
            level: Log level
            enable_console: Write to stdout
            enable_postgres: Persist records with PostgresLogHandler
            postgres_config: psycopg2 connection kwargs, plus optional 'table'
            json_format: JSON lines (otherwise plain text) for console and file
            log_path: Optional log file
        """
        self.name = name
        self.level = level
        self.handlers: List[logging.Handler] = []
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.handlers = []

        formatter = JsonFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)
        if enable_console:
            self.handlers.append(logging.StreamHandler(sys.stdout))
        if log_path:
            os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
            self.handlers.append(logging.FileHandler(log_path))
        for handler in self.handlers:
            handler.setFormatter(formatter)

        if enable_postgres:
            pg_config = dict(postgres_config or {})
            table = pg_config.pop("table", "pipeline_logs")
            self.handlers.append(PostgresLogHandler(pg_config, table=table))

        for handler in self.handlers:
            handler.setLevel(level)
            self._logger.addHandler(handler)

    @contextmanager
    def context(self, **kwargs):
        """Add fields (run_id, stage, ...) to every record logged in scope."""
        previous = _current_context()
        _context.data = {**previous, **kwargs}
        try:
            yield
        finally:
            _context.data = previous

    def close(self):
        """Detach handlers (including any installed on the root logger) and close them."""
        root = logging.getLogger()
        for handler in self.handlers:
            self._logger.removeHandler(handler)
            if handler in root.handlers:
                root.removeHandler(handler)
            handler.close()
        self.handlers = []

    def _log(self, level: int, message: str, extra: Optional[Dict] = None, exception: Optional[Exception] = None):
        extra = dict(extra or {})
        context = _current_context()
        if "run_id" in context:
            extra.setdefault("run_id", context["run_id"])
        self._logger.log(level, message, extra=extra, exc_info=exception)

    def info(self, message: str, extra: Optional[Dict] = None):
        self._log(logging.INFO, message, extra)

    def error(self, message: str, extra: Optional[Dict] = None, exception: Optional[Exception] = None):
        self._log(logging.ERROR, message, extra, exception)

    def log_pipeline_start(self, pipeline_name: str, run_id: str, config: Optional[Dict] = None):
        self.info(
            f"Pipeline started: {pipeline_name}",
            extra={"event": "pipeline_start", "pipeline_name": pipeline_name, "run_id": run_id, "config": config}
        )

    def log_pipeline_end(
        self,
        pipeline_name: str,
        run_id: str,
        status: str,
        duration_seconds: float,
        rows_processed: int = 0
    ):
        self._log(
            logging.ERROR if status == "failed" else logging.INFO,
            f"Pipeline completed: {pipeline_name} ({status})",
            extra={
                "event": "pipeline_end",
                "pipeline_name": pipeline_name,
                "run_id": run_id,
                "status": status,
                "duration_seconds": duration_seconds,
                "rows_processed": rows_processed
            }
        )

    def log_stage_start(self, stage_name: str, run_id: str):
        self.info(
            f"Stage started: {stage_name}",
            extra={"event": "stage_start", "stage_name": stage_name, "run_id": run_id}
        )

    def log_stage_end(self, stage_name: str, run_id: str, status: str, duration_seconds: float):
        self._log(
            logging.INFO if status == "success" else logging.ERROR,
            f"Stage completed: {stage_name} ({status})",
            extra={
                "event": "stage_end",
                "stage_name": stage_name,
                "run_id": run_id,
                "status": status,
                "duration_seconds": duration_seconds
            }
        )

    def log_quality_check(self, check_name: str, table_name: str, passed: bool, details: Optional[Dict] = None):
        """Quality checks that fail are logged as warnings."""
        self._log(
            logging.INFO if passed else logging.WARNING,
            f"Quality check {'passed' if passed else 'failed'}: {check_name}",
            extra={
                "event": "quality_check",
                "check_name": check_name,
                "table_name": table_name,
                "passed": passed,
                "details": details
            }
        )

    def log_data_profile(
        self,
        table_name: str,
        row_count: int,
        column_count: int,
        quality_score: Optional[float] = None
    ):
        extra = {
            "event": "data_profile",
            "table_name": table_name,
            "row_count": row_count,
            "column_count": column_count
        }
        if quality_score is not None:
            extra["quality_score"] = quality_score
        self.info(f"Data profile: {table_name}", extra=extra)


def configure_logging(log_settings: Optional[Dict], name: str) -> StructuredLogger:
    """
    Build the job logger from the 'logging' section of job_settings.json
    and route module loggers (logging.getLogger(__name__)) through the
    same handlers.

    Returns:
        StructuredLogger for job events
    """
    log_settings = log_settings or {}
    level = getattr(logging, str(log_settings.get("level", "INFO")).upper(), logging.INFO)
    postgres = log_settings.get("postgres", {})

    structured = StructuredLogger(
        name,
        level=level,
        enable_console=log_settings.get("console", True),
        enable_postgres=postgres.get("enabled", False),
        postgres_config=postgres.get("connection"),
        json_format=log_settings.get("json_format", True),
        log_path=log_settings.get("log_path") if log_settings.get("log_to_file") else None
    )

    root = logging.getLogger()
    root.setLevel(level)
    for handler in structured.handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    structured._logger.propagate = False

    return structured


def new_trace_id() -> str:
    """Short random id for one job run."""
    return uuid.uuid4().hex[:8]
