"""Storage router - one entry point over the configured storage backend.

The backend is chosen once from StorageConfig at startup. Callers never branch
on the backend type; they upload, delete and resolve through the router.
"""

import logging
from typing import Optional

from ...domain.documents.document_record import DocumentRecord
from ...domain.documents.errors import StorageError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...observability.metrics import documents_uploaded_total
from .blob_storage_adapter import BlobStorageAdapter
from .cloudinary_storage_adapter import CloudinaryStorageAdapter
from .fallback import LocalFallbackStorage
from .local_storage_adapter import LocalStorageAdapter
from .s3_storage_adapter import S3StorageAdapter
from .storage_config import StorageBackendType, StorageConfig, missing_credentials, validate_storage_config
from .supabase_storage_adapter import SupabaseStorageAdapter

logger = logging.getLogger(__name__)


def create_storage_backend(config: StorageConfig, local: Optional[LocalStorageAdapter] = None) -> StorageBackendPort:
    """Build the adapter for ``config.backend_type``.

    Supabase is always wrapped in LocalFallbackStorage.

    Raises:
        ValueError: If the configuration is invalid
    """
    validate_storage_config(config)
    local = local or LocalStorageAdapter(root=config.uploads_root)
    backend_type = config.backend_type

    if backend_type == StorageBackendType.LOCAL:
        return local
    if backend_type == StorageBackendType.S3:
        return S3StorageAdapter(config.s3, timeout_seconds=config.timeout_seconds)
    if backend_type == StorageBackendType.CLOUDINARY:
        return CloudinaryStorageAdapter(config.cloudinary, timeout_seconds=config.timeout_seconds)
    if backend_type == StorageBackendType.BLOB:
        return BlobStorageAdapter(config.blob, timeout_seconds=config.timeout_seconds)
    if backend_type == StorageBackendType.SUPABASE:
        primary = SupabaseStorageAdapter(config.supabase, timeout_seconds=config.timeout_seconds)
        return LocalFallbackStorage(primary, local)

    raise ValueError(f"Unsupported storage type: {backend_type}")


class StorageRouter:
    """Routes document operations to the active backend.

    Attributes:
        config: Storage configuration the router was built from
        backend: Active storage backend
        local: Local adapter, used for LOCAL records regardless of backend
    """

    def __init__(self, config: StorageConfig, backend: Optional[StorageBackendPort] = None):
        self.config = config
        self.local = LocalStorageAdapter(root=config.uploads_root)
        self.backend = backend or create_storage_backend(config, local=self.local)

        missing = missing_credentials(config)
        if missing:
            logger.warning(
                f"Storage backend '{config.backend_type.value}' is missing settings: {', '.join(missing)}",
                extra={"backend": config.backend_type.value, "stage": "init"},
            )
        logger.info(f"Storage router ready: {self.backend.describe()}")

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """Upload through the active backend.

        Raises:
            StorageError: Subclass naming the backend and failed stage
            DocumentValidationError: If the payload is empty
        """
        try:
            record = await self.backend.upload(payload, folder)
        except StorageError as e:
            documents_uploaded_total.labels(backend=e.backend, status="error").inc()
            raise
        documents_uploaded_total.labels(backend=record.backend, status="success").inc()
        return record

    async def delete(self, storage_key: str) -> bool:
        return await self.backend.delete(storage_key)

    async def delete_record(self, record: DocumentRecord) -> bool:
        """Delete the bytes behind a record, wherever they were written."""
        if record.is_local:
            return await self.local.delete(record.storage_key)
        return await self.backend.delete(record.storage_key)

    def resolve_url(self, storage_key: str) -> Optional[str]:
        return self.backend.resolve_url(storage_key)

    def describe(self) -> dict:
        return {
            **self.backend.describe(),
            "ephemeral": self.config.ephemeral,
            "missing_settings": missing_credentials(self.config),
        }
