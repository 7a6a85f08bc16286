"""Per-request correlation context.

The request ID and the gateway user ID live in ContextVars so that every log
line emitted while serving a request, including lines from storage adapters
running in worker threads, can be tied back to the request and its actor.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
actor_id_var: ContextVar[Optional[str]] = ContextVar("actor_id", default=None)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Current request ID, or "no-request-id" outside a request."""
    return request_id_var.get() or "no-request-id"


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_actor_id() -> Optional[str]:
    """User ID forwarded by the gateway for the current request, if any."""
    return actor_id_var.get()


def bind_request_context(request_id: str, actor_id: Optional[str]) -> None:
    """Bind both correlation values for the current request."""
    request_id_var.set(request_id)
    actor_id_var.set(actor_id)
