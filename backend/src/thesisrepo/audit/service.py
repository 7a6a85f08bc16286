"""Audit event recording for document and workflow actions.

Audit Events:
- THESIS_CREATED, THESIS_DELETED
- DOCUMENT_UPLOADED, DOCUMENT_DELETED
- THESIS_TRANSITION (success and failure), THESIS_REOPENED
- CALENDAR_EVENT_CREATED, CALENDAR_EVENT_UPDATED

Persistence of audit entries belongs to an external collaborator; this
service only hands events to an AuditSink. A failing sink never fails the
action being audited.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    """One audited action.

    Attributes:
        actor_id: Principal who performed the action (None for system events)
        action: Event action (e.g., "DOCUMENT_UPLOADED")
        resource_type: Type of entity affected (e.g., "thesis")
        resource_id: Id of the affected entity
        status: "success" or "failure"
        error_message: Failure description, if any
        metadata: Additional context as JSON
    """
    actor_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    status: str = "success"
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data


class AuditSink(ABC):
    """Destination for audit events."""

    @abstractmethod
    def record(self, event: AuditEvent) -> None:
        """Persist or forward one event. May raise."""


class LoggingAuditSink(AuditSink):
    """Writes each event as a structured line on the ``thesisrepo.audit`` logger."""

    def __init__(self, audit_logger: Optional[logging.Logger] = None):
        self.logger = audit_logger or logging.getLogger("thesisrepo.audit")

    def record(self, event: AuditEvent) -> None:
        self.logger.info(
            f"{event.action} {event.resource_type}:{event.resource_id} {event.status}",
            extra={"audit": event.to_dict(), "user_id": event.actor_id},
        )


_default_sink: AuditSink = LoggingAuditSink()


def get_audit_sink() -> AuditSink:
    return _default_sink


def set_audit_sink(sink: AuditSink) -> None:
    """Replace the process-wide sink (used by tests and alternative deployments)."""
    global _default_sink
    _default_sink = sink


def record_audit_event(
    action: str,
    resource_type: str,
    actor_id: Optional[str] = None,
    resource_id: Optional[Any] = None,
    status: str = "success",
    error_message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    sink: Optional[AuditSink] = None,
) -> Optional[AuditEvent]:
    """Record an audit event without ever raising.

    Returns:
        AuditEvent: The recorded event, or None if the sink failed

    Example:
        record_audit_event(
            action="DOCUMENT_UPLOADED",
            resource_type="thesis",
            actor_id=principal.user_id,
            resource_id=thesis.id,
            metadata={"storage_key": record.storage_key, "backend": record.backend},
        )
    """
    event = AuditEvent(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        status=status,
        error_message=error_message,
        metadata=metadata or {},
    )
    try:
        (sink or _default_sink).record(event)
    except Exception as e:
        logger.error(f"Audit sink failed for {action}: {type(e).__name__}: {e}")
        return None
    return event
