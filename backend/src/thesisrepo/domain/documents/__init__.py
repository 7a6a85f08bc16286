"""Documents domain module - stored document records, integrity, validation."""

from .document_record import DocumentRecord, DocumentIntent, LocationKind
from .errors import (
    BackendError,
    ConfigurationError,
    DocumentNotFoundError,
    DocumentValidationError,
    IntegrityFailure,
    NotFoundReason,
    StorageError,
    StorageIOError,
)
from .integrity import IntegrityVerifier
from .storage_keys import build_storage_key, unique_filename
from .validation import (
    MAX_FILE_SIZE,
    UploadField,
    is_supported_mime_type,
    sanitize_filename,
    validate_file_size,
    validate_filename,
)

__all__ = [
    "DocumentRecord",
    "DocumentIntent",
    "LocationKind",
    "BackendError",
    "ConfigurationError",
    "DocumentNotFoundError",
    "DocumentValidationError",
    "IntegrityFailure",
    "NotFoundReason",
    "StorageError",
    "StorageIOError",
    "IntegrityVerifier",
    "build_storage_key",
    "unique_filename",
    "MAX_FILE_SIZE",
    "UploadField",
    "is_supported_mime_type",
    "sanitize_filename",
    "validate_file_size",
    "validate_filename",
]
