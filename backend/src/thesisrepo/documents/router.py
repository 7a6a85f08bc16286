"""Thesis document endpoints: upload, replace, view and download."""

from typing import List, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_principal, get_optional_principal
from ..auth.roles import Principal
from ..config import Settings
from ..database import get_db
from ..dependencies import get_app_settings, get_document_resolver, get_storage_router
from ..domain.documents.document_record import DocumentIntent
from ..domain.documents.validation import UploadField
from ..infrastructure.storage.router import StorageRouter
from ..theses.service import get_thesis
from .resolver import DocumentResolver, ResolvedDocument
from .schemas import DocumentRecordSchema, SupplementaryUploadResult
from .service import add_supplementary_files, resolve_thesis_document, upload_main_document
from .staging import stage_upload, stage_uploads

router = APIRouter(prefix="/theses", tags=["documents"])


@router.post("/{thesis_id}/document", status_code=status.HTTP_201_CREATED, response_model=DocumentRecordSchema)
async def upload_document(
    thesis_id: UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    storage: StorageRouter = Depends(get_storage_router),
    settings: Settings = Depends(get_app_settings),
):
    """Upload or replace the main thesis document (PDF or Word)."""
    thesis = get_thesis(db, thesis_id)
    payload = await stage_upload(
        file, UploadField.THESIS_DOCUMENT, storage.config.staging_dir, settings.MAX_UPLOAD_SIZE_BYTES
    )
    record = await upload_main_document(db, thesis, principal, payload, storage)
    db.commit()
    return DocumentRecordSchema.from_record(record)


@router.post(
    "/{thesis_id}/supplementary",
    status_code=status.HTTP_201_CREATED,
    response_model=SupplementaryUploadResult,
)
async def upload_supplementary(
    thesis_id: UUID,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    storage: StorageRouter = Depends(get_storage_router),
    settings: Settings = Depends(get_app_settings),
):
    thesis = get_thesis(db, thesis_id)
    payloads = await stage_uploads(
        files, UploadField.SUPPLEMENTARY, storage.config.staging_dir, settings.MAX_UPLOAD_SIZE_BYTES
    )

    records = await add_supplementary_files(
        db, thesis, principal, payloads, storage, settings.MAX_SUPPLEMENTARY_FILES
    )
    db.commit()
    return SupplementaryUploadResult(
        files=[DocumentRecordSchema.from_record(r) for r in records],
        total=len(thesis.supplementary_files or []),
    )


@router.get("/{thesis_id}/download")
def download_document(
    thesis_id: UUID,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
    resolver: DocumentResolver = Depends(get_document_resolver),
):
    thesis = get_thesis(db, thesis_id)
    resolved = resolve_thesis_document(db, thesis, principal, DocumentIntent.DOWNLOAD, resolver)
    return _respond(resolved, disposition="attachment")


@router.get("/{thesis_id}/view")
def view_document(
    thesis_id: UUID,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
    resolver: DocumentResolver = Depends(get_document_resolver),
):
    thesis = get_thesis(db, thesis_id)
    resolved = resolve_thesis_document(db, thesis, principal, DocumentIntent.VIEW, resolver)
    return _respond(resolved, disposition="inline")


@router.get("/{thesis_id}/supplementary/{index}/download")
def download_supplementary(
    thesis_id: UUID,
    index: int,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
    resolver: DocumentResolver = Depends(get_document_resolver),
):
    thesis = get_thesis(db, thesis_id)
    resolved = resolve_thesis_document(
        db, thesis, principal, DocumentIntent.DOWNLOAD, resolver, supplementary_index=index
    )
    return _respond(resolved, disposition="attachment")


def _respond(resolved: ResolvedDocument, disposition: str) -> Response:
    if resolved.is_redirect:
        return RedirectResponse(resolved.redirect_url, status_code=status.HTTP_302_FOUND)

    record = resolved.record
    return Response(
        content=resolved.content,
        media_type=record.mime_type,
        headers={
            "Content-Disposition": f"{disposition}; filename*=UTF-8''{quote(record.original_name)}",
            "X-Content-Type-Options": "nosniff",
        },
    )
