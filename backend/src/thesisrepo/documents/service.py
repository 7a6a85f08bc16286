"""Thesis document service - attach, replace and retrieve thesis documents.

Records are replaced, never mutated: a re-upload stores a new object, points
the thesis at the new record and then deletes the previous object on a
best-effort basis.
"""

import logging
from typing import List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..audit.service import record_audit_event
from ..auth.roles import PermissionDeniedError, Principal
from ..domain.documents.document_record import DocumentIntent, DocumentRecord
from ..domain.documents.errors import DocumentValidationError, StorageError
from ..domain.documents.ports.object_storage_port import UploadPayload
from ..domain.documents.validation import UploadField
from ..infrastructure.storage.router import StorageRouter
from ..infrastructure.storage.staging import discard_staging_file
from ..models.thesis import Thesis
from ..theses.service import ensure_can_read
from ..theses.status import ThesisStatus
from ..theses.workflow import ConcurrentTransitionError
from .resolver import DocumentResolver, ResolvedDocument

logger = logging.getLogger(__name__)

# Counter column per retrieval intent
USAGE_COUNTERS = {
    DocumentIntent.VIEW: "view_count",
    DocumentIntent.DOWNLOAD: "download_count",
}


def ensure_can_upload(thesis: Thesis, principal: Principal) -> None:
    """Authors may change documents while DRAFT; admins at any time.

    Raises:
        PermissionDeniedError: Otherwise
    """
    if principal.is_admin:
        return
    if not thesis.has_author(principal.user_id):
        raise PermissionDeniedError("Only authors or admins can upload thesis documents", principal.user_id)
    if thesis.status != ThesisStatus.DRAFT:
        raise PermissionDeniedError(
            f"Documents cannot be changed while the thesis is {thesis.status.value}", principal.user_id
        )


async def upload_main_document(
    db: Session,
    thesis: Thesis,
    principal: Principal,
    payload: UploadPayload,
    storage: StorageRouter,
) -> DocumentRecord:
    """Store ``payload`` and make it the thesis' main document.

    Raises:
        PermissionDeniedError: If the principal may not change documents
        StorageError: If the backend rejects the upload
        ConcurrentTransitionError: If the thesis changed while uploading
    """
    try:
        ensure_can_upload(thesis, principal)
        record = await storage.upload(payload, UploadField.THESIS_DOCUMENT.value)
    finally:
        discard_staging_file(payload, storage.backend_name)

    previous = thesis.get_main_document()
    thesis.set_main_document(record)
    await _flush_or_discard(db, thesis, [record], storage)

    if previous is not None:
        await _delete_quietly(storage, previous, thesis.id)

    record_audit_event(
        action="DOCUMENT_UPLOADED",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis.id,
        metadata={
            "field": "main_document",
            "storage_key": record.storage_key,
            "backend": record.backend,
            "replaced": previous.storage_key if previous else None,
        },
    )
    return record


async def add_supplementary_files(
    db: Session,
    thesis: Thesis,
    principal: Principal,
    payloads: Sequence[UploadPayload],
    storage: StorageRouter,
    max_files: int,
) -> List[DocumentRecord]:
    """Append supplementary files, all or nothing.

    Raises:
        DocumentValidationError: If the thesis would exceed ``max_files``
    """
    records: List[DocumentRecord] = []
    try:
        ensure_can_upload(thesis, principal)
        existing = len(thesis.supplementary_files or [])
        if existing + len(payloads) > max_files:
            raise DocumentValidationError(
                f"A thesis can have at most {max_files} supplementary files ({existing} already attached)"
            )
        for payload in payloads:
            records.append(await storage.upload(payload, UploadField.SUPPLEMENTARY.value))
    except (StorageError, DocumentValidationError):
        for record in records:
            await _delete_quietly(storage, record, thesis.id)
        raise
    finally:
        for payload in payloads:
            discard_staging_file(payload, storage.backend_name)

    for record in records:
        thesis.append_supplementary(record)
    await _flush_or_discard(db, thesis, records, storage)

    record_audit_event(
        action="DOCUMENT_UPLOADED",
        resource_type="thesis",
        actor_id=principal.user_id,
        resource_id=thesis.id,
        metadata={"field": "supplementary_files", "storage_keys": [r.storage_key for r in records]},
    )
    return records


def resolve_thesis_document(
    db: Session,
    thesis: Thesis,
    principal: Optional[Principal],
    intent: DocumentIntent,
    resolver: DocumentResolver,
    supplementary_index: Optional[int] = None,
) -> ResolvedDocument:
    """Resolve a thesis document and count the retrieval.

    The usage counter is incremented with a single SQL UPDATE after a
    successful resolution, so concurrent readers never lose increments.

    Raises:
        PermissionDeniedError: If the thesis is not readable by the principal
        HTTPException 404: If the thesis has no such document
        DocumentNotFoundError: If the bytes are gone
        IntegrityFailure: If the bytes do not match the checksum
    """
    ensure_can_read(thesis, principal)
    record = _select_record(thesis, supplementary_index)

    resolved = resolver.resolve(record, intent)

    counter = USAGE_COUNTERS[DocumentIntent(intent)]
    db.execute(
        update(Thesis)
        .where(Thesis.id == thesis.id)
        .values({counter: getattr(Thesis, counter) + 1})
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return resolved


def _select_record(thesis: Thesis, supplementary_index: Optional[int]) -> DocumentRecord:
    if supplementary_index is None:
        record = thesis.get_main_document()
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thesis has no main document")
        return record

    records = thesis.get_supplementary_records()
    if not 0 <= supplementary_index < len(records):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Supplementary file {supplementary_index} not found",
        )
    return records[supplementary_index]


async def _flush_or_discard(
    db: Session,
    thesis: Thesis,
    records: List[DocumentRecord],
    storage: StorageRouter,
) -> None:
    """Flush the thesis; if that fails, the just-uploaded objects are orphans."""
    thesis_id = thesis.id
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        for record in records:
            await _delete_quietly(storage, record, thesis_id)
        raise ConcurrentTransitionError(thesis_id)


async def _delete_quietly(storage: StorageRouter, record: DocumentRecord, thesis_id) -> None:
    try:
        await storage.delete_record(record)
    except StorageError as e:
        logger.warning(
            f"Could not delete document: {e.message}",
            extra={"thesis_id": str(thesis_id), "backend": e.backend, "storage_key": record.storage_key},
        )
