"""Supabase Storage Adapter - Supabase Storage implementation of StorageBackendPort.

Unlike the other remote backends, Supabase uploads are allowed to fail softly:
attempt_upload() reports failure as a value so LocalFallbackStorage can keep
the document on local disk instead.
"""

import logging
from typing import Any, Optional

import httpx
from storage3.utils import StorageException
from supabase import Client, create_client
from supabase.client import ClientOptions

from ...domain.documents.document_record import DocumentRecord, LocationKind
from ...domain.documents.errors import BackendError, ConfigurationError, DocumentValidationError, StorageError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadAttempt, UploadPayload
from ...domain.documents.storage_keys import build_storage_key
from ...observability.metrics import upload_duration_seconds
from .staging import discard_staging_file
from .storage_config import SupabaseCredentials

logger = logging.getLogger(__name__)


class SupabaseStorageAdapter(StorageBackendPort):
    """Supabase Storage adapter.

    Example:
        storage = SupabaseStorageAdapter(
            SupabaseCredentials(url="https://xyz.supabase.co", key="...", bucket="thesis-documents")
        )
        attempt = await storage.attempt_upload(payload, folder="thesis/documents")
        if attempt.succeeded:
            attempt.record.url
    """

    name = "supabase"

    def __init__(
        self,
        credentials: SupabaseCredentials,
        timeout_seconds: float = 10.0,
        client: Optional[Client] = None,
    ):
        self.credentials = credentials
        self.bucket = credentials.bucket
        self.client = client

        if self.client is None and credentials.url and credentials.key:
            self.client = create_client(
                credentials.url,
                credentials.key,
                options=ClientOptions(storage_client_timeout=int(timeout_seconds)),
            )
        if self.client is None:
            logger.warning("Supabase storage adapter NOT configured (missing SUPABASE_URL or SUPABASE_KEY)")

    @property
    def configured(self) -> bool:
        return self.client is not None and bool(self.bucket)

    async def attempt_upload(self, payload: UploadPayload, folder: str) -> UploadAttempt:
        """Upload a document, reporting storage failures as a value.

        Validation errors still raise; only configuration and provider
        failures are returned in ``UploadAttempt.error``.
        """
        if not self.configured:
            return UploadAttempt(error=self._unconfigured("upload"))

        storage_key = build_storage_key(folder, payload.original_name)
        data = payload.read_bytes()
        if not data:
            raise DocumentValidationError("Cannot store empty file")

        try:
            with upload_duration_seconds.labels(backend=self.name).time():
                self._bucket().upload(
                    storage_key,
                    data,
                    file_options={"content-type": payload.mime_type, "upsert": "false"},
                )
        except StorageException as e:
            return UploadAttempt(error=self._translate(e, "upload"))
        except httpx.HTTPError as e:
            logger.error(f"Supabase upload request failed: {type(e).__name__}")
            return UploadAttempt(
                error=BackendError(f"Supabase unreachable: {type(e).__name__}", backend=self.name, stage="upload")
            )

        logger.info(
            f"Uploaded file: storage_key={storage_key}, size={len(data)}",
            extra={"backend": self.name, "storage_key": storage_key},
        )
        discard_staging_file(payload, self.name)

        return UploadAttempt(
            record=DocumentRecord(
                storage_key=storage_key,
                original_name=payload.original_name,
                mime_type=payload.mime_type,
                size_bytes=len(data),
                location_kind=LocationKind.REMOTE_URL,
                backend=self.name,
                url=self.resolve_url(storage_key),
            )
        )

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        attempt = await self.attempt_upload(payload, folder)
        if not attempt.succeeded:
            raise attempt.error
        return attempt.record

    async def delete(self, storage_key: str) -> bool:
        """Remove an object. Returns False if nothing was removed."""
        if not self.configured:
            raise self._unconfigured("delete")

        try:
            removed = self._bucket().remove([storage_key])
        except StorageException as e:
            raise self._translate(e, "delete")
        except httpx.HTTPError as e:
            raise BackendError(f"Supabase unreachable: {type(e).__name__}", backend=self.name, stage="delete")

        if not removed:
            logger.info(f"File not found for deletion: storage_key={storage_key}")
            return False

        logger.info(f"Deleted file: storage_key={storage_key}")
        return True

    def resolve_url(self, storage_key: str) -> Optional[str]:
        if not self.configured:
            return None
        return self._bucket().get_public_url(storage_key)

    def describe(self) -> dict:
        return {"backend": self.name, "bucket": self.bucket, "configured": self.configured}

    def _bucket(self) -> Any:
        return self.client.storage.from_(self.bucket)

    def _unconfigured(self, stage: str) -> ConfigurationError:
        return ConfigurationError(
            "Supabase storage is not configured. Set SUPABASE_URL, SUPABASE_KEY and "
            "SUPABASE_STORAGE_BUCKET.",
            backend=self.name,
            stage=stage,
        )

    def _translate(self, error: StorageException, stage: str) -> StorageError:
        message = str(getattr(error, "message", None) or error)
        logger.error(
            f"Supabase {stage} failed: {message}",
            extra={"backend": self.name, "stage": stage},
        )
        if "bucket not found" in message.lower():
            return ConfigurationError(
                f"Supabase bucket '{self.bucket}' does not exist. Create it or fix SUPABASE_STORAGE_BUCKET.",
                backend=self.name,
                stage=stage,
            )
        status = str(getattr(error, "status", "") or "")
        if status in ("401", "403"):
            return ConfigurationError(
                "Supabase rejected the credentials; check SUPABASE_KEY",
                backend=self.name,
                stage=stage,
            )
        return BackendError(f"Failed to {stage} file: {message}", backend=self.name, stage=stage)
