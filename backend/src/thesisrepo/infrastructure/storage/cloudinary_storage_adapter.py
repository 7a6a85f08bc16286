"""Cloudinary Storage Adapter - media CDN implementation of StorageBackendPort.

Talks to the Cloudinary upload API with signed httpx requests. The storage key
is the Cloudinary public id. Uploads are sent as multipart form data straight
from the payload stream rather than read fully into memory.
"""

import hashlib
import logging
import time
from pathlib import PurePosixPath
from typing import Optional

import httpx

from ...domain.documents.document_record import DocumentRecord, LocationKind
from ...domain.documents.errors import BackendError, ConfigurationError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...domain.documents.storage_keys import normalize_folder, unique_filename
from ...observability.metrics import upload_duration_seconds
from .staging import discard_staging_file
from .storage_config import CloudinaryCredentials

logger = logging.getLogger(__name__)

CLOUDINARY_API_URL = "https://api.cloudinary.com/v1_1"
CLOUDINARY_DELIVERY_URL = "https://res.cloudinary.com"

# resource_type "auto" may file a document under any of these
RESOURCE_TYPES = ("image", "raw", "video")


def sign_params(params: dict, api_secret: str) -> str:
    """Cloudinary request signature: SHA1 over sorted ``key=value`` pairs plus the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryStorageAdapter(StorageBackendPort):
    """Cloudinary storage adapter.

    Example:
        storage = CloudinaryStorageAdapter(
            CloudinaryCredentials(cloud_name="demo", api_key="...", api_secret="...")
        )
        record = await storage.upload(payload, folder="thesis/documents")
        record.storage_key   # 'thesis/documents/thesis-1736500000000-3f9a...'
    """

    name = "cloudinary"

    def __init__(
        self,
        credentials: CloudinaryCredentials,
        timeout_seconds: float = 10.0,
        api_url: str = CLOUDINARY_API_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds
        self.api_url = api_url.rstrip("/")
        self._transport = transport
        if not self.configured:
            logger.warning(
                "Cloudinary storage adapter NOT configured (missing CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY or CLOUDINARY_API_SECRET)"
            )

    @property
    def configured(self) -> bool:
        c = self.credentials
        return bool(c.cloud_name and c.api_key and c.api_secret)

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """Send a document to Cloudinary.

        Raises:
            ConfigurationError: If credentials are missing or rejected
            BackendError: If Cloudinary rejects the upload or times out
        """
        self._require_credentials("upload")

        folder = normalize_folder(folder) or "uploads"
        public_id = PurePosixPath(unique_filename(payload.original_name)).stem
        data = self._signed({"folder": folder, "public_id": public_id})

        with upload_duration_seconds.labels(backend=self.name).time():
            with payload.open() as stream:
                response = await self._request(
                    "auto/upload",
                    "upload",
                    data=data,
                    files={"file": (payload.original_name, stream, payload.mime_type)},
                )

        result = response.json()
        storage_key = result["public_id"]
        logger.info(
            f"Uploaded file: storage_key={storage_key}, size={result.get('bytes')}",
            extra={"backend": self.name, "storage_key": storage_key},
        )
        discard_staging_file(payload, self.name)

        return DocumentRecord(
            storage_key=storage_key,
            original_name=payload.original_name,
            mime_type=payload.mime_type,
            size_bytes=int(result.get("bytes") or 0),
            location_kind=LocationKind.REMOTE_URL,
            backend=self.name,
            url=result.get("secure_url") or result.get("url"),
        )

    async def delete(self, storage_key: str) -> bool:
        """Destroy a Cloudinary asset.

        The resource type is not part of the public id, so each type is tried
        until Cloudinary reports a deletion.

        Returns:
            bool: True if deleted, False if no asset had this public id
        """
        self._require_credentials("delete")

        for resource_type in RESOURCE_TYPES:
            data = self._signed({"public_id": storage_key, "invalidate": "true"})
            response = await self._request(f"{resource_type}/destroy", "delete", data=data)
            if response.json().get("result") == "ok":
                logger.info(f"Deleted file: storage_key={storage_key}, resource_type={resource_type}")
                return True

        logger.info(f"File not found for deletion: storage_key={storage_key}")
        return False

    def resolve_url(self, storage_key: str) -> Optional[str]:
        """Delivery URL for a public id, assuming the default image resource type."""
        if not self.credentials.cloud_name:
            return None
        return f"{CLOUDINARY_DELIVERY_URL}/{self.credentials.cloud_name}/image/upload/{storage_key}"

    def describe(self) -> dict:
        return {
            "backend": self.name,
            "cloud_name": self.credentials.cloud_name,
            "configured": self.configured,
        }

    def _signed(self, params: dict) -> dict:
        params = {**params, "timestamp": str(int(time.time()))}
        return {
            **params,
            "api_key": self.credentials.api_key,
            "signature": sign_params(params, self.credentials.api_secret),
        }

    async def _request(self, path: str, stage: str, **kwargs) -> httpx.Response:
        url = f"{self.api_url}/{self.credentials.cloud_name}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Cloudinary {stage} request failed: {type(e).__name__}")
            raise BackendError(f"Cloudinary unreachable: {type(e).__name__}", backend=self.name, stage=stage)

        if response.status_code in (401, 403):
            raise ConfigurationError(
                "Cloudinary rejected the credentials; check CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET",
                backend=self.name,
                stage=stage,
            )
        if response.is_error:
            logger.error(f"Cloudinary {stage} failed: status={response.status_code}")
            raise BackendError(
                f"Cloudinary returned HTTP {response.status_code}", backend=self.name, stage=stage
            )
        return response

    def _require_credentials(self, stage: str) -> None:
        if not self.configured:
            raise ConfigurationError(
                "Cloudinary storage is not configured. Set CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET.",
                backend=self.name,
                stage=stage,
            )
