"""Blob Storage Adapter - Vercel Blob implementation of StorageBackendPort.

Talks to the Vercel Blob REST API with httpx. The storage key is the blob
pathname; the public URL is derived from the store id embedded in the
read/write token, so resolve_url() needs no network call.
"""

import logging
from typing import Optional

import httpx

from ...domain.documents.document_record import DocumentRecord, LocationKind
from ...domain.documents.errors import BackendError, ConfigurationError, DocumentValidationError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...domain.documents.storage_keys import build_storage_key
from ...observability.metrics import upload_duration_seconds
from .staging import discard_staging_file
from .storage_config import BlobCredentials

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"


class BlobStorageAdapter(StorageBackendPort):
    """Vercel Blob storage adapter.

    Example:
        storage = BlobStorageAdapter(BlobCredentials(token="vercel_blob_rw_abc123_secret"))
        record = await storage.upload(payload, folder="thesis/documents")
        record.url   # 'https://abc123.public.blob.vercel-storage.com/thesis/documents/...'
    """

    name = "blob"

    def __init__(
        self,
        credentials: BlobCredentials,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        if not credentials.token:
            logger.warning("Blob storage adapter NOT configured (missing BLOB_READ_WRITE_TOKEN)")

    @property
    def configured(self) -> bool:
        return bool(self.credentials.token)

    @property
    def store_id(self) -> Optional[str]:
        """Store id from a token shaped ``vercel_blob_rw_<store_id>_<secret>``."""
        token = self.credentials.token or ""
        parts = token.split("_")
        if len(parts) >= 5 and parts[:3] == ["vercel", "blob", "rw"]:
            return parts[3].lower()
        return None

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """PUT a document to the blob store.

        Raises:
            ConfigurationError: If the token is missing or rejected
            BackendError: If the blob API rejects the upload or times out
        """
        self._require_token("upload")
        storage_key = build_storage_key(folder, payload.original_name)

        data = payload.read_bytes()
        if not data:
            raise DocumentValidationError("Cannot store empty file")

        headers = {
            **self._headers(),
            "x-content-type": payload.mime_type,
            "x-add-random-suffix": "0",
        }

        with upload_duration_seconds.labels(backend=self.name).time():
            response = await self._request("PUT", f"/{storage_key}", "upload", content=data, headers=headers)

        body = response.json()
        logger.info(
            f"Uploaded file: storage_key={storage_key}, size={len(data)}",
            extra={"backend": self.name, "storage_key": storage_key},
        )
        discard_staging_file(payload, self.name)

        return DocumentRecord(
            storage_key=body.get("pathname", storage_key),
            original_name=payload.original_name,
            mime_type=payload.mime_type,
            size_bytes=len(data),
            location_kind=LocationKind.REMOTE_URL,
            backend=self.name,
            url=body.get("url") or self.resolve_url(storage_key),
        )

    async def delete(self, storage_key: str) -> bool:
        """Delete a blob. Returns False if the blob did not exist."""
        self._require_token("delete")

        head = await self._request(
            "GET", "", "head", params={"url": storage_key}, headers=self._headers(), allow_not_found=True
        )
        if head.status_code == 404:
            logger.info(f"File not found for deletion: storage_key={storage_key}")
            return False

        await self._request(
            "POST", "/delete", "delete", json={"urls": [storage_key]}, headers=self._headers()
        )
        logger.info(f"Deleted file: storage_key={storage_key}")
        return True

    def resolve_url(self, storage_key: str) -> Optional[str]:
        store_id = self.store_id
        if not store_id:
            return None
        return f"https://{store_id}.public.blob.vercel-storage.com/{storage_key}"

    def describe(self) -> dict:
        return {"backend": self.name, "store_id": self.store_id, "configured": self.configured}

    def _headers(self) -> dict:
        return {
            "authorization": f"Bearer {self.credentials.token}",
            "x-api-version": BLOB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        stage: str,
        allow_not_found: bool = False,
        **kwargs,
    ) -> httpx.Response:
        url = f"{self.credentials.api_url.rstrip('/')}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Blob {stage} request failed: {type(e).__name__}")
            raise BackendError(f"Blob store unreachable: {type(e).__name__}", backend=self.name, stage=stage)

        if allow_not_found and response.status_code == 404:
            return response
        if response.status_code in (401, 403):
            raise ConfigurationError(
                "Blob store rejected the token; check BLOB_READ_WRITE_TOKEN",
                backend=self.name,
                stage=stage,
            )
        if response.is_error:
            logger.error(f"Blob {stage} failed: status={response.status_code}")
            raise BackendError(
                f"Blob store returned HTTP {response.status_code}", backend=self.name, stage=stage
            )
        return response

    def _require_token(self, stage: str) -> None:
        if not self.configured:
            raise ConfigurationError(
                "Blob storage is not configured. Set BLOB_READ_WRITE_TOKEN.",
                backend=self.name,
                stage=stage,
            )
