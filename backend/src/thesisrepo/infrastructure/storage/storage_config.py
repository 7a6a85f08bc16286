"""Storage configuration for the document storage backends.

Turns application Settings into a typed, immutable StorageConfig that is built
once at startup and injected into the storage router. Credentials that are not
set stay None; adapters report them as ConfigurationError on first use.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ...config import Settings


class StorageBackendType(str, Enum):
    """Supported storage backends (value matches STORAGE_TYPE)."""
    LOCAL = "local"
    S3 = "s3"
    CLOUDINARY = "cloudinary"
    BLOB = "blob"
    SUPABASE = "supabase"


@dataclass(frozen=True)
class S3Credentials:
    """AWS S3 or S3-compatible (MinIO) settings.

    Attributes:
        access_key: S3 access key ID
        secret_key: S3 secret access key
        bucket_name: Bucket for thesis documents
        region: AWS region
        endpoint_url: Custom endpoint (None for AWS regional endpoints)
    """
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    bucket_name: Optional[str] = None
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None


@dataclass(frozen=True)
class CloudinaryCredentials:
    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None


@dataclass(frozen=True)
class BlobCredentials:
    token: Optional[str] = None
    api_url: str = "https://blob.vercel-storage.com"


@dataclass(frozen=True)
class SupabaseCredentials:
    url: Optional[str] = None
    key: Optional[str] = None
    bucket: Optional[str] = None


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for the active storage backend.

    Attributes:
        backend_type: Which backend serves this deployment
        uploads_root: Managed root for local documents
        staging_dir: Where the HTTP layer stages uploads
        ephemeral: Local disk does not survive redeploys
        timeout_seconds: Bound for remote storage calls
    """
    backend_type: StorageBackendType = StorageBackendType.LOCAL
    uploads_root: Path = Path("uploads")
    staging_dir: Path = Path("uploads/.staging")
    ephemeral: bool = False
    timeout_seconds: float = 10.0
    s3: S3Credentials = field(default_factory=S3Credentials)
    cloudinary: CloudinaryCredentials = field(default_factory=CloudinaryCredentials)
    blob: BlobCredentials = field(default_factory=BlobCredentials)
    supabase: SupabaseCredentials = field(default_factory=SupabaseCredentials)


def load_storage_config(settings: Settings) -> StorageConfig:
    """Build StorageConfig from application settings.

    Raises:
        ValueError: If STORAGE_TYPE names an unknown backend
    """
    try:
        backend_type = StorageBackendType(settings.STORAGE_TYPE.strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in StorageBackendType)
        raise ValueError(f"Unknown storage type: {settings.STORAGE_TYPE}. Expected one of: {valid}")

    return StorageConfig(
        backend_type=backend_type,
        uploads_root=Path(settings.UPLOADS_ROOT),
        staging_dir=Path(settings.STAGING_DIR),
        ephemeral=settings.EPHEMERAL_STORAGE,
        timeout_seconds=settings.STORAGE_TIMEOUT_SECONDS,
        s3=S3Credentials(
            access_key=settings.AWS_ACCESS_KEY_ID,
            secret_key=settings.AWS_SECRET_ACCESS_KEY,
            bucket_name=settings.AWS_S3_BUCKET,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
        ),
        cloudinary=CloudinaryCredentials(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
        ),
        blob=BlobCredentials(
            token=settings.BLOB_READ_WRITE_TOKEN,
            api_url=settings.BLOB_API_URL.rstrip("/"),
        ),
        supabase=SupabaseCredentials(
            url=settings.SUPABASE_URL,
            key=settings.SUPABASE_KEY,
            bucket=settings.SUPABASE_STORAGE_BUCKET,
        ),
    )


def missing_credentials(config: StorageConfig) -> List[str]:
    """List the settings the active backend needs but does not have.

    Returns:
        List of environment variable names (empty when fully configured)
    """
    required = {
        StorageBackendType.LOCAL: [],
        StorageBackendType.S3: [
            ("AWS_ACCESS_KEY_ID", config.s3.access_key),
            ("AWS_SECRET_ACCESS_KEY", config.s3.secret_key),
            ("AWS_S3_BUCKET", config.s3.bucket_name),
        ],
        StorageBackendType.CLOUDINARY: [
            ("CLOUDINARY_CLOUD_NAME", config.cloudinary.cloud_name),
            ("CLOUDINARY_API_KEY", config.cloudinary.api_key),
            ("CLOUDINARY_API_SECRET", config.cloudinary.api_secret),
        ],
        StorageBackendType.BLOB: [
            ("BLOB_READ_WRITE_TOKEN", config.blob.token),
        ],
        StorageBackendType.SUPABASE: [
            ("SUPABASE_URL", config.supabase.url),
            ("SUPABASE_KEY", config.supabase.key),
            ("SUPABASE_STORAGE_BUCKET", config.supabase.bucket),
        ],
    }
    return [name for name, value in required[config.backend_type] if not value]


def validate_storage_config(config: StorageConfig) -> None:
    """Validate values that are wrong regardless of which credentials are set.

    Raises:
        ValueError: If configuration is invalid
    """
    if config.timeout_seconds <= 0:
        raise ValueError("STORAGE_TIMEOUT_SECONDS must be positive")

    if config.s3.endpoint_url and not config.s3.endpoint_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid S3 endpoint_url: {config.s3.endpoint_url}. "
            "Must start with http:// or https://"
        )

    if config.supabase.url and not config.supabase.url.startswith(("http://", "https://")):
        raise ValueError("SUPABASE_URL must start with http:// or https://")
