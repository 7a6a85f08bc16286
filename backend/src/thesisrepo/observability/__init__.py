"""Observability module for the thesis repository.

Provides structured logging, metrics, request correlation and health checks.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    documents_resolved_total,
    documents_uploaded_total,
    http_request_duration_seconds,
    staging_cleanup_failures_total,
    storage_fallbacks_total,
    thesis_transitions_total,
    upload_duration_seconds,
)
from .middleware import RequestIDMiddleware
from .request_id import (
    bind_request_context,
    generate_request_id,
    get_actor_id,
    get_request_id,
    request_id_var,
    set_request_id,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "documents_resolved_total",
    "documents_uploaded_total",
    "staging_cleanup_failures_total",
    "storage_fallbacks_total",
    "thesis_transitions_total",
    "upload_duration_seconds",
    "http_request_duration_seconds",
    # Request context
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    "bind_request_context",
    "get_actor_id",
    # Middleware
    "RequestIDMiddleware",
]
