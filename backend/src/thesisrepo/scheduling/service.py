"""Calendar event service.

Conflict detection is advisory: creates and updates always succeed and
report the overlapping SCHEDULED events of the same department.
"""

import logging
from typing import List, Sequence, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..audit.service import record_audit_event
from ..auth.roles import PermissionDeniedError, Principal
from ..domain.documents.document_record import DocumentRecord
from ..domain.documents.errors import DocumentValidationError, StorageError
from ..domain.documents.ports.object_storage_port import UploadPayload
from ..domain.documents.validation import UploadField
from ..infrastructure.storage.router import StorageRouter
from ..infrastructure.storage.staging import discard_staging_file
from ..models.calendar_event import CalendarEvent, EventStatus
from .conflicts import find_overlaps
from .schemas import CalendarEventCreate, CalendarEventUpdate

logger = logging.getLogger(__name__)


def scheduled_events(db: Session, department: str) -> List[CalendarEvent]:
    stmt = (
        select(CalendarEvent)
        .where(CalendarEvent.department == department, CalendarEvent.status == EventStatus.SCHEDULED)
        .order_by(CalendarEvent.start_time)
    )
    return list(db.execute(stmt).scalars())


def create_event(
    db: Session,
    principal: Principal,
    data: CalendarEventCreate,
) -> Tuple[CalendarEvent, List[CalendarEvent]]:
    """Create an event and return it with its conflicts.

    Raises:
        HTTPException 400: If no department can be determined
        PermissionDeniedError: If a non-admin schedules for another department
    """
    department = data.department or principal.department
    if not department:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Department is required")
    if not principal.is_admin and principal.department and department != principal.department:
        raise PermissionDeniedError("Events can only be scheduled for your own department", principal.user_id)

    event = CalendarEvent(
        title=data.title,
        description=data.description,
        event_type=data.event_type,
        start_time=data.start_time,
        end_time=data.end_time,
        location=data.location,
        department=department,
        status=EventStatus.SCHEDULED,
        thesis_id=data.thesis_id,
        created_by_id=principal.user_id,
    )
    conflicts = find_overlaps(event, scheduled_events(db, department))

    db.add(event)
    db.flush()

    _log_conflicts(event, conflicts)
    record_audit_event(
        action="CALENDAR_EVENT_CREATED",
        resource_type="calendar_event",
        actor_id=principal.user_id,
        resource_id=event.id,
        metadata={"department": department, "conflicts": [str(c.id) for c in conflicts]},
    )
    return event, conflicts


def update_event(
    db: Session,
    event_id: UUID,
    principal: Principal,
    data: CalendarEventUpdate,
) -> Tuple[CalendarEvent, List[CalendarEvent]]:
    """Update an event and return it with its conflicts (excluding itself)."""
    event = get_event(db, event_id)
    if not principal.is_admin and event.department != principal.department:
        raise PermissionDeniedError("Events of other departments cannot be changed", principal.user_id)

    changes = data.model_dump(exclude_unset=True)
    for required in ("title", "start_time", "event_type", "status"):
        if changes.get(required, "") is None:
            del changes[required]
    start_time = changes.get("start_time", event.start_time)
    end_time = changes.get("end_time", event.end_time)
    if end_time is not None and end_time < start_time:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must not be before start_time",
        )

    for name, value in changes.items():
        setattr(event, name, value)

    conflicts = find_overlaps(event, scheduled_events(db, event.department), exclude_id=event.id)
    db.flush()

    _log_conflicts(event, conflicts)
    record_audit_event(
        action="CALENDAR_EVENT_UPDATED",
        resource_type="calendar_event",
        actor_id=principal.user_id,
        resource_id=event.id,
        metadata={"fields": sorted(changes), "conflicts": [str(c.id) for c in conflicts]},
    )
    return event, conflicts


def get_event(db: Session, event_id: UUID) -> CalendarEvent:
    event = db.get(CalendarEvent, event_id)
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Event {event_id} not found")
    return event


async def add_attachments(
    db: Session,
    event_id: UUID,
    principal: Principal,
    payloads: Sequence[UploadPayload],
    storage: StorageRouter,
    max_files: int,
) -> Tuple[CalendarEvent, List[DocumentRecord]]:
    """Store files and attach them to an event, all or nothing.

    Only the event's creator or an admin may attach files.

    Raises:
        HTTPException 404: If the event does not exist
        PermissionDeniedError: If the principal may not attach files
        DocumentValidationError: If no files, or more than ``max_files``, are given
        StorageError: If the backend rejects an upload
    """
    records: List[DocumentRecord] = []
    try:
        event = get_event(db, event_id)
        if not principal.is_admin and event.created_by_id != principal.user_id:
            raise PermissionDeniedError(
                "Only the event creator or an admin can upload attachments", principal.user_id
            )
        if not payloads:
            raise DocumentValidationError("No files uploaded")
        if len(payloads) > max_files:
            raise DocumentValidationError(f"At most {max_files} attachments can be uploaded at once")
        for payload in payloads:
            records.append(await storage.upload(payload, UploadField.CALENDAR_ATTACHMENT.value))
    except (StorageError, DocumentValidationError):
        for record in records:
            await _delete_quietly(storage, record, event_id)
        raise
    finally:
        for payload in payloads:
            discard_staging_file(payload, storage.backend_name)

    for record in records:
        event.append_attachment(record)
    db.flush()

    record_audit_event(
        action="CALENDAR_ATTACHMENTS_UPLOADED",
        resource_type="calendar_event",
        actor_id=principal.user_id,
        resource_id=event.id,
        metadata={"storage_keys": [r.storage_key for r in records], "backend": storage.backend_name},
    )
    return event, records


async def _delete_quietly(storage: StorageRouter, record: DocumentRecord, event_id: UUID) -> None:
    try:
        await storage.delete_record(record)
    except StorageError as e:
        logger.warning(
            f"Could not delete attachment of event {event_id}: {e.message}",
            extra={"backend": e.backend, "storage_key": record.storage_key},
        )


def _log_conflicts(event: CalendarEvent, conflicts: List[CalendarEvent]) -> None:
    if conflicts:
        logger.info(
            f"Calendar event {event.id} overlaps {len(conflicts)} scheduled event(s) in {event.department}"
        )
