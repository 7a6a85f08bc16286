"""Pydantic schemas for thesis document endpoints"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..domain.documents.document_record import DocumentRecord, LocationKind


class DocumentRecordSchema(BaseModel):
    """Schema for a stored document record"""
    storage_key: str = Field(..., description="Backend-specific key")
    original_name: str = Field(..., description="Filename as uploaded")
    mime_type: str
    size_bytes: int = Field(..., ge=0)
    location_kind: LocationKind
    backend: str = Field(..., description="Backend that wrote the document")
    url: Optional[str] = None
    checksum: Optional[str] = Field(None, description="SHA256 hex digest (local documents only)")
    uploaded_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentRecordSchema":
        return cls(**record.to_dict())


class SupplementaryUploadResult(BaseModel):
    files: list[DocumentRecordSchema] = Field(default_factory=list)
    total: int = Field(..., description="Supplementary files now attached")
