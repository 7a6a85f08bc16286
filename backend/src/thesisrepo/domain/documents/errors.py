"""Error taxonomy for the document lifecycle.

Every storage error names the backend and the stage that failed so operators
can tell a misconfigured deployment from a provider outage. Messages never
include credentials.
"""

from enum import Enum
from typing import Any, Dict, Optional


class StorageError(Exception):
    """Base exception for storage operations."""

    code = "storage_error"

    def __init__(self, message: str, backend: str, stage: str):
        super().__init__(message)
        self.message = message
        self.backend = backend
        self.stage = stage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "detail": self.message,
            "backend": self.backend,
            "stage": self.stage,
        }


class ConfigurationError(StorageError):
    """Backend credentials or bucket are missing. Not retryable."""

    code = "storage_unconfigured"


class BackendError(StorageError):
    """The provider rejected the request or could not be reached.

    Retrying is left to the caller's policy.
    """

    code = "storage_backend_error"


class StorageIOError(StorageError):
    """Local filesystem failure while staging or writing a document."""

    code = "storage_io_error"


class NotFoundReason(str, Enum):
    """Why a local document could not be found."""
    EPHEMERAL_STORAGE = "EPHEMERAL_STORAGE"
    MISSING_UPLOAD = "MISSING_UPLOAD"


NOT_FOUND_HINTS = {
    NotFoundReason.EPHEMERAL_STORAGE: (
        "The file was written to ephemeral local storage and did not survive a "
        "redeploy. Re-upload the document or configure a persistent storage backend."
    ),
    NotFoundReason.MISSING_UPLOAD: (
        "The file is missing from the uploads directory. The document must be re-uploaded."
    ),
}


class DocumentNotFoundError(Exception):
    """A document reference has no corresponding bytes."""

    code = "document_not_found"

    def __init__(self, storage_key: str, reason: NotFoundReason, backend: str = "local"):
        self.storage_key = storage_key
        self.reason = reason
        self.backend = backend
        self.hint = NOT_FOUND_HINTS[reason]
        super().__init__(f"Document not found: {storage_key} ({reason.value})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "detail": str(self),
            "reason": self.reason.value,
            "hint": self.hint,
            "backend": self.backend,
        }


class IntegrityFailure(Exception):
    """Stored bytes do not match the recorded checksum. Never served."""

    code = "integrity_failure"

    def __init__(self, storage_key: str, expected: str, actual: Optional[str] = None):
        self.storage_key = storage_key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch for {storage_key}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "detail": str(self),
            "storage_key": self.storage_key,
        }


class DocumentValidationError(ValueError):
    """Uploaded file failed type, size or filename validation."""

    code = "invalid_document"
