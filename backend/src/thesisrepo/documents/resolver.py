"""Document resolver - turns a DocumentRecord into servable bytes or a redirect.

Resolution order:
1. REMOTE_URL records redirect to the provider URL; no local I/O.
2. LOCAL records are read from the uploads root. If the file is not at its
   recorded key, the uploads root is searched once for a file with the same
   base name (files moved by older releases); the record is not rewritten.
3. If the bytes are still missing, DocumentNotFoundError explains why.
4. Records with a checksum are verified against the exact bytes about to be
   served; a mismatch raises IntegrityFailure and nothing is served.
"""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from ..domain.documents.document_record import DocumentIntent, DocumentRecord
from ..domain.documents.errors import DocumentNotFoundError, IntegrityFailure, NotFoundReason
from ..domain.documents.integrity import IntegrityVerifier
from ..infrastructure.storage.fallback import FALLBACK_BACKEND
from ..infrastructure.storage.router import StorageRouter
from ..observability.metrics import documents_resolved_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedDocument:
    """Result of resolving a record: either bytes or a redirect URL."""
    record: DocumentRecord
    content: Optional[bytes] = None
    redirect_url: Optional[str] = None
    recovered_from: Optional[Path] = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_url is not None


class DocumentResolver:
    """Resolves stored documents for viewing and download.

    Example:
        resolver = DocumentResolver(storage_router)
        resolved = resolver.resolve(thesis.get_main_document(), DocumentIntent.DOWNLOAD)
        if resolved.is_redirect:
            return RedirectResponse(resolved.redirect_url)
    """

    def __init__(self, router: StorageRouter, verifier: Optional[IntegrityVerifier] = None):
        self.router = router
        self.verifier = verifier or IntegrityVerifier()

    def resolve(self, record: DocumentRecord, intent: DocumentIntent) -> ResolvedDocument:
        """Resolve a record.

        Raises:
            DocumentNotFoundError: If the bytes cannot be found
            IntegrityFailure: If the bytes do not match the recorded checksum
        """
        intent = DocumentIntent(intent)
        if not record.is_local:
            return self._redirect(record, intent)
        return self._read_local(record, intent)

    def _redirect(self, record: DocumentRecord, intent: DocumentIntent) -> ResolvedDocument:
        url = record.url or self.router.resolve_url(record.storage_key)
        if not url:
            documents_resolved_total.labels(intent=intent.value, outcome="not_found").inc()
            raise DocumentNotFoundError(record.storage_key, NotFoundReason.MISSING_UPLOAD, backend=record.backend)
        documents_resolved_total.labels(intent=intent.value, outcome="redirected").inc()
        return ResolvedDocument(record=record, redirect_url=url)

    def _read_local(self, record: DocumentRecord, intent: DocumentIntent) -> ResolvedDocument:
        path = self._recorded_path(record)
        recovered_from = None

        if path is None or not path.is_file():
            path = self._find_by_basename(record.storage_key)
            recovered_from = path

        if path is None:
            raise self._not_found(record, intent)

        try:
            content = path.read_bytes()
        except OSError as e:
            logger.warning(
                f"Could not read local document {record.storage_key}: {e}",
                extra={"backend": record.backend, "storage_key": record.storage_key},
            )
            raise self._not_found(record, intent)

        if record.checksum and not self.verifier.verify_bytes(content, record.checksum):
            actual = self.verifier.checksum(content)
            documents_resolved_total.labels(intent=intent.value, outcome="integrity_failure").inc()
            logger.error(
                f"Integrity failure: storage_key={record.storage_key}, expected={record.checksum}, actual={actual}",
                extra={"backend": record.backend, "storage_key": record.storage_key},
            )
            raise IntegrityFailure(record.storage_key, record.checksum, actual)

        if recovered_from is not None:
            logger.warning(
                f"Served {record.storage_key} from recovered path {recovered_from}",
                extra={"backend": record.backend, "storage_key": record.storage_key},
            )
            documents_resolved_total.labels(intent=intent.value, outcome="recovered").inc()
        else:
            documents_resolved_total.labels(intent=intent.value, outcome="served").inc()

        return ResolvedDocument(record=record, content=content, recovered_from=recovered_from)

    def _recorded_path(self, record: DocumentRecord) -> Optional[Path]:
        try:
            return self.router.local.path_for(record.storage_key)
        except ValueError:
            logger.warning(f"Ignoring storage key outside uploads root: {record.storage_key}")
            return None

    def _find_by_basename(self, storage_key: str) -> Optional[Path]:
        """First file (in sorted order) under the uploads root with the key's base name."""
        name = PurePosixPath(storage_key.replace("\\", "/")).name
        root = self.router.local.root
        if not name or not root.is_dir():
            return None
        staging_dir = self.router.config.staging_dir.resolve()
        for candidate in sorted(root.rglob(name)):
            if staging_dir in candidate.resolve().parents:
                continue
            if candidate.is_file():
                return candidate
        return None

    def _not_found(self, record: DocumentRecord, intent: DocumentIntent) -> DocumentNotFoundError:
        if self.router.config.ephemeral or record.backend == FALLBACK_BACKEND:
            reason = NotFoundReason.EPHEMERAL_STORAGE
        else:
            reason = NotFoundReason.MISSING_UPLOAD
        documents_resolved_total.labels(intent=intent.value, outcome="not_found").inc()
        logger.warning(
            f"Local document missing: storage_key={record.storage_key}, reason={reason.value}",
            extra={"backend": record.backend, "storage_key": record.storage_key},
        )
        return DocumentNotFoundError(record.storage_key, reason, backend=record.backend)
