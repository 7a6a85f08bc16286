"""Local Storage Adapter - filesystem implementation of StorageBackendPort.

Documents live under a managed uploads root; the storage key is the path
relative to that root. This is the only backend that records checksums, and
it verifies every file it writes before returning the record. Local files
have no public URL; they are served only through the download endpoints.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Optional

from ...domain.documents.document_record import DocumentRecord, LocationKind
from ...domain.documents.errors import DocumentValidationError, StorageIOError
from ...domain.documents.integrity import CHUNK_SIZE, IntegrityVerifier
from ...domain.documents.ports.object_storage_port import StorageBackendPort, UploadPayload
from ...domain.documents.storage_keys import build_storage_key

logger = logging.getLogger(__name__)

# Attempts at reserving a fresh key before giving up
MAX_KEY_ATTEMPTS = 3


class LocalStorageAdapter(StorageBackendPort):
    """Filesystem storage under a managed root.

    Destination files are created with exclusive-create semantics, so two
    uploads can never end up sharing a path even if their generated keys
    were to collide.

    Example:
        storage = LocalStorageAdapter(root=Path("uploads"))
        record = await storage.upload(payload, folder="thesis/documents")
        record.storage_key   # 'thesis/documents/thesis-1736500000000-3f9a....pdf'
    """

    name = "local"

    def __init__(
        self,
        root: Path,
        verifier: Optional[IntegrityVerifier] = None,
    ):
        self.root = Path(root)
        self.verifier = verifier or IntegrityVerifier()

    async def upload(self, payload: UploadPayload, folder: str) -> DocumentRecord:
        """Write a document under the uploads root.

        Staged files are moved into place; bytes and streams are copied while
        the SHA256 is computed, then the written file is re-verified.

        Raises:
            DocumentValidationError: If the payload is empty
            StorageIOError: If the filesystem write or verification fails
        """
        storage_key, destination = self._reserve_destination(folder, payload.original_name)

        try:
            if payload.staged_path is not None:
                # Overwrites our own placeholder; copies when staging is on another filesystem
                shutil.move(str(payload.staged_path), str(destination))
                with open(destination, "rb") as f:
                    checksum = self.verifier.checksum_stream(f)
            else:
                checksum = self._write_stream(payload, destination)
                if not self.verifier.verify(destination, checksum):
                    raise StorageIOError(
                        f"Written file failed verification: {storage_key}",
                        backend=self.name,
                        stage="verify",
                    )
            size_bytes = destination.stat().st_size
        except StorageIOError:
            destination.unlink(missing_ok=True)
            raise
        except OSError as e:
            destination.unlink(missing_ok=True)
            logger.error(
                f"Local write failed: storage_key={storage_key}, error={e}",
                extra={"backend": self.name, "stage": "write"},
            )
            raise StorageIOError(f"Failed to write file: {e.strerror or e}", backend=self.name, stage="write")

        if size_bytes == 0:
            destination.unlink(missing_ok=True)
            raise DocumentValidationError("Cannot store empty file")

        logger.info(
            f"Stored local file: storage_key={storage_key}, sha256={checksum}, size={size_bytes}",
            extra={"backend": self.name, "storage_key": storage_key},
        )

        return DocumentRecord(
            storage_key=storage_key,
            original_name=payload.original_name,
            mime_type=payload.mime_type,
            size_bytes=size_bytes,
            location_kind=LocationKind.LOCAL,
            backend=self.name,
            url=self.resolve_url(storage_key),
            checksum=checksum,
        )

    async def delete(self, storage_key: str) -> bool:
        """Delete a local file. Returns False if it did not exist."""
        try:
            path = self.path_for(storage_key)
        except ValueError:
            logger.warning(f"Refusing to delete outside uploads root: {storage_key}")
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            logger.info(f"File not found for deletion: storage_key={storage_key}")
            return False
        except OSError as e:
            logger.error(f"Local deletion failed: storage_key={storage_key}, error={e}")
            raise StorageIOError(f"Failed to delete file: {e.strerror or e}", backend=self.name, stage="delete")

        logger.info(f"Deleted local file: storage_key={storage_key}")
        return True

    def resolve_url(self, storage_key: str) -> Optional[str]:
        return None

    def exists(self, storage_key: str) -> bool:
        try:
            return self.path_for(storage_key).is_file()
        except ValueError:
            return False

    def path_for(self, storage_key: str) -> Path:
        """Map a storage key to a filesystem path.

        Absolute keys (recorded by older releases) are returned unchanged;
        relative keys must stay inside the uploads root.

        Raises:
            ValueError: If a relative key escapes the uploads root
        """
        key_path = Path(storage_key)
        if key_path.is_absolute():
            return key_path

        root = self.root.resolve()
        candidate = (root / key_path).resolve()
        if candidate != root and root not in candidate.parents:
            raise ValueError(f"Storage key escapes uploads root: {storage_key}")
        return candidate

    def describe(self) -> dict:
        return {"backend": self.name, "root": str(self.root)}

    def _reserve_destination(self, folder: str, original_name: str):
        """Create an empty placeholder at a fresh key and return (key, path)."""
        for _ in range(MAX_KEY_ATTEMPTS):
            storage_key = build_storage_key(folder, original_name)
            destination = self.path_for(storage_key)
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(destination, "xb"):
                    pass
                return storage_key, destination
            except FileExistsError:
                continue
            except OSError as e:
                raise StorageIOError(
                    f"Cannot create upload directory: {e.strerror or e}",
                    backend=self.name,
                    stage="stage",
                )
        raise StorageIOError("Could not allocate a unique storage key", backend=self.name, stage="stage")

    @staticmethod
    def _write_stream(payload: UploadPayload, destination: Path) -> str:
        sha256_hash = hashlib.sha256()
        with payload.open() as source, open(destination, "wb") as target:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                sha256_hash.update(chunk)
                target.write(chunk)
        return sha256_hash.hexdigest()
