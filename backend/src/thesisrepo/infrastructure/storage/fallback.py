"""Local fallback for remote backends that may fail softly.

When the primary backend cannot take an upload (missing bucket, bad
credentials, provider outage) the document is written to local disk instead
and the record is marked with FALLBACK_BACKEND, so retrieval can explain a
later loss of the file.
"""

import logging
from dataclasses import replace
from typing import Optional

from ...domain.documents.document_record import DocumentRecord
from ...domain.documents.errors import ConfigurationError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...observability.metrics import storage_fallbacks_total
from .local_storage_adapter import LocalStorageAdapter
from .supabase_storage_adapter import SupabaseStorageAdapter

logger = logging.getLogger(__name__)

FALLBACK_BACKEND = "local-fallback"


class LocalFallbackStorage(StorageBackendPort):
    """Wrap a soft-failing primary backend with a local adapter."""

    def __init__(self, primary: SupabaseStorageAdapter, local: LocalStorageAdapter):
        self.primary = primary
        self.local = local
        self.name = primary.name

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        attempt = await self.primary.attempt_upload(payload, folder)
        if attempt.succeeded:
            return attempt.record

        error = attempt.error
        reason = "unconfigured" if isinstance(error, ConfigurationError) else "remote_failure"
        storage_fallbacks_total.labels(primary_backend=self.primary.name, reason=reason).inc()
        logger.warning(
            f"{self.primary.name} upload failed ({error.message}); storing locally instead",
            extra={"backend": self.primary.name, "stage": error.stage},
        )

        record = await self.local.upload(payload, folder)
        return replace(record, backend=FALLBACK_BACKEND)

    async def delete(self, storage_key: str) -> bool:
        if self.local.exists(storage_key):
            return await self.local.delete(storage_key)
        return await self.primary.delete(storage_key)

    def resolve_url(self, storage_key: str) -> Optional[str]:
        if self.local.exists(storage_key):
            return self.local.resolve_url(storage_key)
        return self.primary.resolve_url(storage_key)

    def describe(self) -> dict:
        return {**self.primary.describe(), "fallback": self.local.describe()}
