"""Calendar API endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_principal, require_role
from ..auth.roles import CALENDAR_ROLES, Principal
from ..config import Settings
from ..database import get_db
from ..dependencies import get_app_settings, get_storage_router
from ..documents.schemas import DocumentRecordSchema
from ..documents.staging import stage_uploads
from ..domain.documents.validation import UploadField
from ..infrastructure.storage.router import StorageRouter
from .schemas import CalendarAttachmentResult, CalendarEventCreate, CalendarEventResult, CalendarEventUpdate
from .service import add_attachments, create_event, update_event

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _result(event, conflicts) -> CalendarEventResult:
    return CalendarEventResult(event=event.to_dict(), conflicts=[c.to_dict() for c in conflicts])


@router.post("/events", status_code=status.HTTP_201_CREATED, response_model=CalendarEventResult)
def create_calendar_event(
    data: CalendarEventCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role(*CALENDAR_ROLES)),
):
    """Create an event; overlapping scheduled events are returned, not rejected."""
    event, conflicts = create_event(db, principal, data)
    db.commit()
    return _result(event, conflicts)


@router.put("/events/{event_id}", response_model=CalendarEventResult)
def update_calendar_event(
    event_id: UUID,
    data: CalendarEventUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role(*CALENDAR_ROLES)),
):
    event, conflicts = update_event(db, event_id, principal, data)
    db.commit()
    return _result(event, conflicts)


@router.post(
    "/events/{event_id}/attachments",
    status_code=status.HTTP_201_CREATED,
    response_model=CalendarAttachmentResult,
)
async def upload_event_attachments(
    event_id: UUID,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    storage: StorageRouter = Depends(get_storage_router),
    settings: Settings = Depends(get_app_settings),
):
    """Attach files to an event (creator or admin)."""
    payloads = await stage_uploads(
        files, UploadField.CALENDAR_ATTACHMENT, storage.config.staging_dir, settings.MAX_UPLOAD_SIZE_BYTES
    )
    event, records = await add_attachments(
        db, event_id, principal, payloads, storage, settings.MAX_CALENDAR_ATTACHMENTS
    )
    db.commit()
    return CalendarAttachmentResult(
        files=[DocumentRecordSchema.from_record(r) for r in records],
        total=len(event.attachments or []),
    )
