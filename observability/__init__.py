"""
Observability Module
====================

Structured logging for the order cleaning and KPI job.

Usage:
    from observability import StructuredLogger

    logger = StructuredLogger("food_delivery_kpi", enable_postgres=False)
    with logger.context(run_id="abc123"):
        logger.info("Pipeline started", extra={"table": "raw_orders"})
"""

from .logging.structured_logger import StructuredLogger, JsonFormatter, configure_logging

__version__ = "1.0.0"
__all__ = ["StructuredLogger", "JsonFormatter", "configure_logging"]
