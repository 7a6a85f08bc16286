"""HTTP middleware: request correlation, access logging and latency metrics."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .metrics import http_request_duration_seconds
from .request_id import bind_request_context, generate_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
USER_ID_HEADER = "X-User-Id"


def route_template(request: Request) -> str:
    """Matched route path (``/api/v1/theses/{thesis_id}/download``), not the raw URL."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind request context, log the request and observe its latency.

    An incoming ``X-Request-ID`` is reused so gateway and backend logs share
    one ID; otherwise a new one is generated. The ID is echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        bind_request_context(request_id, request.headers.get(USER_ID_HEADER))

        start_time = time.perf_counter()
        logger.info(f"{request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            http_request_duration_seconds.labels(
                method=request.method, route=route_template(request), status_code="500"
            ).observe(duration)
            logger.error(f"Request failed after {duration * 1000:.2f}ms: {e}", exc_info=True)
            raise

        duration = time.perf_counter() - start_time
        http_request_duration_seconds.labels(
            method=request.method, route=route_template(request), status_code=str(response.status_code)
        ).observe(duration)
        logger.info(f"Request completed: {response.status_code} in {duration * 1000:.2f}ms")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
