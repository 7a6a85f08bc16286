"""DocumentRecord - metadata for one stored thesis artifact.

A record is immutable: re-uploading produces a new record that replaces the
old reference on the thesis. Records are persisted as JSON on the thesis row,
so ``to_dict``/``from_dict`` define the stored shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class LocationKind(str, Enum):
    """Where the bytes of a document live.

    LOCAL: storage_key is a path under the managed uploads root
    REMOTE_URL: the document is fetched from a provider URL
    """
    LOCAL = "LOCAL"
    REMOTE_URL = "REMOTE_URL"


class DocumentIntent(str, Enum):
    """Why a document is being retrieved (drives the usage counter)."""
    VIEW = "view"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class DocumentRecord:
    """Metadata for a document written by a storage backend.

    Attributes:
        storage_key: Backend-specific key (relative path, bucket key, public id)
        original_name: Filename as submitted by the user
        mime_type: MIME type of the file
        size_bytes: File size in bytes
        location_kind: LOCAL or REMOTE_URL
        backend: Name of the backend that wrote the file
        url: Public URL; None for local files
        checksum: SHA256 hex digest, present for LOCAL documents
        uploaded_at: Upload timestamp (UTC)
    """
    storage_key: str
    original_name: str
    mime_type: str
    size_bytes: int
    location_kind: LocationKind
    backend: str
    url: Optional[str] = None
    checksum: Optional[str] = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_local(self) -> bool:
        return self.location_kind == LocationKind.LOCAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to its JSON column representation."""
        return {
            "storage_key": self.storage_key,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "location_kind": self.location_kind.value,
            "backend": self.backend,
            "url": self.url,
            "checksum": self.checksum,
            "uploaded_at": self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRecord":
        """Rebuild a record from its JSON column representation."""
        uploaded_at = data.get("uploaded_at")
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)
        return cls(
            storage_key=data["storage_key"],
            original_name=data["original_name"],
            mime_type=data["mime_type"],
            size_bytes=int(data["size_bytes"]),
            location_kind=LocationKind(data["location_kind"]),
            backend=data.get("backend", "local"),
            url=data.get("url"),
            checksum=data.get("checksum"),
            uploaded_at=uploaded_at or datetime.now(timezone.utc),
        )
