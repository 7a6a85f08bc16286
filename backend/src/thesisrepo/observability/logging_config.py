"""Structured JSON logging configuration.

Provides centralized logging setup with request ID correlation and JSON formatting.
Storage and workflow modules attach structured context through ``extra=``;
the formatter copies the known keys into the JSON payload.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .request_id import get_actor_id, get_request_id

# Keys passed through ``extra=`` that end up in the JSON payload
CONTEXT_FIELDS = (
    "user_id",
    "thesis_id",
    "backend",
    "stage",
    "storage_key",
    "from_status",
    "to_status",
    "audit",
)


class RequestContextFilter(logging.Filter):
    """Stamp records with the request ID and, unless given via extra=, the acting user."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        actor_id = get_actor_id()
        if actor_id and not hasattr(record, "user_id"):
            record.user_id = actor_id
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "no-request-id"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                log_data[field] = value if isinstance(value, (dict, list, int, float, bool)) else str(value)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise use simple format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(request_id)s - %(name)s.%(funcName)s - %(message)s'
        )

    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically called with __name__)."""
    return logging.getLogger(name)
