"""S3 Storage Adapter - Implementation of StorageBackendPort using boto3.

Provides S3-compatible storage for AWS S3, MinIO, and other S3-compatible services.
The bucket key is the storage key; the S3 object URL is recorded on the document.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...domain.documents.document_record import DocumentRecord, LocationKind
from ...domain.documents.errors import BackendError, ConfigurationError, DocumentValidationError
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...domain.documents.storage_keys import build_storage_key
from ...observability.metrics import upload_duration_seconds
from .staging import discard_staging_file
from .storage_config import S3Credentials

logger = logging.getLogger(__name__)

# Error codes that mean the deployment is wrong rather than the provider flaky
CONFIGURATION_ERROR_CODES = {"NoSuchBucket", "InvalidAccessKeyId", "SignatureDoesNotMatch", "AccessDenied"}


class S3StorageAdapter(StorageBackendPort):
    """S3-compatible storage adapter using boto3.

    Features:
    - Unique keys per upload: {folder}/{stem}-{epoch_ms}-{random}.{ext}
    - Bounded connect/read timeouts
    - Staging file removed only after S3 confirms the write

    Example:
        storage = S3StorageAdapter(
            credentials=S3Credentials(
                access_key="...",
                secret_key="...",
                bucket_name="thesis-documents",
                region="eu-central-1",
            ),
        )
        record = await storage.upload(payload, folder="thesis/documents")
    """

    name = "s3"

    def __init__(self, credentials: S3Credentials, timeout_seconds: float = 10.0):
        """Initialize S3 storage adapter.

        Missing credentials do not raise here; upload() and delete() raise
        ConfigurationError so the process can still start and report health.

        Raises:
            ConfigurationError: If the boto3 client cannot be created
        """
        self.bucket_name = credentials.bucket_name
        self.region = credentials.region
        self.endpoint_url = credentials.endpoint_url
        self.s3_client = None

        if not (credentials.access_key and credentials.secret_key and credentials.bucket_name):
            logger.warning(
                "S3 storage adapter NOT configured (missing AWS_ACCESS_KEY_ID, "
                "AWS_SECRET_ACCESS_KEY or AWS_S3_BUCKET)"
            )
            return

        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=credentials.endpoint_url,
                aws_access_key_id=credentials.access_key,
                aws_secret_access_key=credentials.secret_key,
                region_name=credentials.region,
                config=Config(
                    connect_timeout=timeout_seconds,
                    read_timeout=timeout_seconds,
                    retries={"max_attempts": 1},
                ),
            )
        except BotoCoreError as e:
            raise ConfigurationError(f"Failed to initialize S3 client: {e}", backend=self.name, stage="init")

        logger.info(
            f"Initialized S3 storage adapter: bucket={self.bucket_name}, "
            f"endpoint={credentials.endpoint_url or 'AWS S3'}, region={self.region}"
        )

    @property
    def configured(self) -> bool:
        return self.s3_client is not None

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """Upload a document to S3.

        Raises:
            ConfigurationError: If credentials or bucket are missing
            BackendError: If S3 rejects the upload
        """
        self._require_client("upload")
        storage_key = build_storage_key(folder, payload.original_name)

        data = payload.read_bytes()
        if not data:
            raise DocumentValidationError("Cannot store empty file")

        try:
            with upload_duration_seconds.labels(backend=self.name).time():
                self.s3_client.put_object(
                    Bucket=self.bucket_name,
                    Key=storage_key,
                    Body=data,
                    ContentType=payload.mime_type,
                    Metadata={"original_filename": payload.original_name.encode("ascii", "ignore").decode()},
                )
        except ClientError as e:
            raise self._translate(e, storage_key, "upload")
        except BotoCoreError as e:
            logger.error(f"S3 upload failed: storage_key={storage_key}, error={e}")
            raise BackendError(f"Failed to upload file: {e}", backend=self.name, stage="upload")

        logger.info(
            f"Uploaded file: storage_key={storage_key}, size={len(data)}, mime_type={payload.mime_type}",
            extra={"backend": self.name, "storage_key": storage_key},
        )
        discard_staging_file(payload, self.name)

        return DocumentRecord(
            storage_key=storage_key,
            original_name=payload.original_name,
            mime_type=payload.mime_type,
            size_bytes=len(data),
            location_kind=LocationKind.REMOTE_URL,
            backend=self.name,
            url=self.resolve_url(storage_key),
        )

    async def delete(self, storage_key: str) -> bool:
        """Delete a file from S3.

        Returns:
            bool: True if deleted, False if it didn't exist

        Raises:
            BackendError: If deletion fails
        """
        self._require_client("delete")

        if not await self.file_exists(storage_key):
            logger.info(f"File not found for deletion: storage_key={storage_key}")
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            raise self._translate(e, storage_key, "delete")
        except BotoCoreError as e:
            raise BackendError(f"Failed to delete file: {e}", backend=self.name, stage="delete")

        logger.info(f"Deleted file: storage_key={storage_key}")
        return True

    async def file_exists(self, storage_key: str) -> bool:
        """Check if a file exists in S3 (HEAD request).

        Raises:
            BackendError: If S3 fails for a reason other than absence
        """
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=storage_key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise self._translate(e, storage_key, "head")
        except BotoCoreError as e:
            raise BackendError(f"Failed to check file: {e}", backend=self.name, stage="head")

    def resolve_url(self, storage_key: str) -> Optional[str]:
        if not self.bucket_name:
            return None
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{storage_key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{storage_key}"

    def describe(self) -> dict:
        return {
            "backend": self.name,
            "bucket": self.bucket_name,
            "region": self.region,
            "configured": self.configured,
        }

    def _require_client(self, stage: str) -> None:
        if self.s3_client is None:
            raise ConfigurationError(
                "S3 storage is not configured. Set AWS_ACCESS_KEY_ID, "
                "AWS_SECRET_ACCESS_KEY and AWS_S3_BUCKET.",
                backend=self.name,
                stage=stage,
            )

    def _translate(self, error: ClientError, storage_key: str, stage: str):
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        logger.error(
            f"S3 {stage} failed: storage_key={storage_key}, error={error_code}",
            extra={"backend": self.name, "stage": stage},
        )
        if error_code in CONFIGURATION_ERROR_CODES:
            return ConfigurationError(
                f"S3 rejected the request ({error_code}); check bucket and credentials",
                backend=self.name,
                stage=stage,
            )
        return BackendError(f"Failed to {stage} file: {error_code}", backend=self.name, stage=stage)
