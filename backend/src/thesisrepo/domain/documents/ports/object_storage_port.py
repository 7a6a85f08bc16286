"""Storage Backend Port - Domain interface for document storage.

This port defines the contract every storage backend implements: local
filesystem, S3-compatible, Cloudinary, Vercel Blob and Supabase Storage.
Adapters live in the infrastructure layer and are chosen once at startup.

Architecture: Hexagonal - Port interface in domain layer
"""

import io
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ..document_record import DocumentRecord
from ..errors import StorageError


@dataclass
class UploadPayload:
    """The bytes of an upload plus what the user told us about them.

    Exactly one of ``data``, ``stream`` or ``staged_path`` is set. A staged
    path points to a temporary file the HTTP layer wrote to disk; remote
    backends delete it after a confirmed write, the local backend moves it
    into place.

    Attributes:
        original_name: Filename as submitted
        mime_type: MIME type as submitted
        data: In-memory content
        stream: Readable binary file handle
        staged_path: Temporary file on local disk
    """
    original_name: str
    mime_type: str
    data: Optional[bytes] = None
    stream: Optional[BinaryIO] = None
    staged_path: Optional[Path] = None

    def __post_init__(self):
        sources = [s for s in (self.data, self.stream, self.staged_path) if s is not None]
        if len(sources) != 1:
            raise ValueError("UploadPayload needs exactly one of data, stream or staged_path")

    @classmethod
    def from_bytes(cls, data: bytes, original_name: str, mime_type: str) -> "UploadPayload":
        return cls(original_name=original_name, mime_type=mime_type, data=data)

    @classmethod
    def from_staged_file(cls, path: Path, original_name: str, mime_type: str) -> "UploadPayload":
        return cls(original_name=original_name, mime_type=mime_type, staged_path=Path(path))

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        """Yield a readable stream positioned at the start of the content."""
        if self.staged_path is not None:
            with open(self.staged_path, "rb") as f:
                yield f
        elif self.stream is not None:
            if self.stream.seekable():
                self.stream.seek(0)
            yield self.stream
        else:
            yield io.BytesIO(self.data)

    def read_bytes(self) -> bytes:
        with self.open() as f:
            return f.read()


@dataclass(frozen=True)
class UploadAttempt:
    """Outcome of a remote upload that is allowed to fail.

    Used by backends that support falling back to local storage. Exactly one
    of ``record`` and ``error`` is set.
    """
    record: Optional[DocumentRecord] = None
    error: Optional[StorageError] = None

    @property
    def succeeded(self) -> bool:
        return self.record is not None


class StorageBackendPort(ABC):
    """Port interface for document storage backends.

    Key Design Principles:
    - Storage keys are unique per upload (time + random suffix), never derived
      from content, so re-uploads never overwrite an existing object
    - delete() is idempotent: absent objects return False, not an error
    - resolve_url() is pure and never performs network I/O
    - Only the local backend records checksums

    Example Usage:
        storage = LocalStorageAdapter(root=Path("uploads"), ...)

        record = await storage.upload(
            UploadPayload.from_bytes(b"%PDF-1.4...", "thesis.pdf", "application/pdf"),
            folder="thesis/documents",
        )
        await storage.delete(record.storage_key)
    """

    #: Short backend name used in records, logs and error payloads
    name: str = "abstract"

    @abstractmethod
    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """Store a document and return its record.

        Args:
            payload: Content and user-supplied metadata
            folder: Logical folder (e.g., 'thesis/documents')

        Returns:
            DocumentRecord: Metadata about the stored document

        Raises:
            ConfigurationError: If the backend is missing credentials
            BackendError: If the provider rejects the write
            StorageIOError: If local staging or writing fails
        """

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """Delete a document.

        Returns:
            bool: True if the object was deleted, False if it was already absent

        Raises:
            ConfigurationError: If the backend is missing credentials
            BackendError: If the provider fails for a reason other than absence
        """

    @abstractmethod
    def resolve_url(self, storage_key: str) -> Optional[str]:
        """Return the public URL for a storage key, or None if it has none."""

    def describe(self) -> dict:
        """Non-secret description of the backend for health endpoints."""
        return {"backend": self.name}
