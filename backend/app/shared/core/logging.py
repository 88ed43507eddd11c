"""
Logging Configuration with Correlation ID Support

This module provides:
1. A context variable holding the correlation ID of the current request or scheduler tick
2. A logging filter that stamps the correlation ID on every record
3. setup_logging(), called once from app startup and from CLI scripts
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable to store the correlation ID for the current unit of work.
# Works across awaits, and each asyncio task gets its own copy.
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None, prefix: str = "req") -> str:
    """
    Set the correlation ID for the current unit of work.
    If not provided, generates one like "req-1a2b3c4d" (or "tick-..." for the scheduler).

    Returns the correlation ID that was set.
    """
    if correlation_id is None:
        correlation_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
    correlation_id_var.set(correlation_id)
    return correlation_id


class CorrelationIdFilter(logging.Filter):
    """Adds correlation_id to log records so the formatter can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-request"
        return True


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger with correlation ID support.

    Format: timestamp | [correlation id] | logger name | level | message
    """
    log_format = "%(asctime)s | [%(correlation_id)s] | %(name)s | %(levelname)s | %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)

    # Route uvicorn logs through the same handler
    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False

    # httpx logs every request at INFO; container polling would flood the log
    logging.getLogger("httpx").setLevel(logging.WARNING)
