"""IntegrityVerifier - SHA256 checksums for locally stored documents.

Only LOCAL documents carry a checksum. Remote providers are the authority for
their own bytes, so remote documents are never verified here.
"""

import hashlib
import hmac
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192  # 8KB chunks


class IntegrityVerifier:
    """Computes and checks SHA256 digests."""

    @staticmethod
    def checksum(data: bytes) -> str:
        """Return the SHA256 hex digest of ``data``."""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def checksum_stream(stream: BinaryIO) -> str:
        """Return the SHA256 hex digest of a readable stream, read in chunks."""
        sha256_hash = hashlib.sha256()
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            sha256_hash.update(chunk)
        return sha256_hash.hexdigest()

    def verify(self, path: Union[str, Path], expected_checksum: Optional[str]) -> bool:
        """Recompute the digest of the file at ``path`` and compare.

        Any IO failure counts as a failed verification: the caller can only
        decide not to serve the file.

        Args:
            path: File to check
            expected_checksum: Recorded SHA256 hex digest

        Returns:
            bool: True if the file exists and matches
        """
        if not expected_checksum:
            return False
        try:
            with open(path, "rb") as f:
                actual = self.checksum_stream(f)
        except OSError as e:
            logger.warning(f"Integrity check could not read {path}: {e}")
            return False
        return hmac.compare_digest(actual, expected_checksum.lower())

    def verify_bytes(self, data: bytes, expected_checksum: Optional[str]) -> bool:
        """Compare the digest of in-memory bytes against the recorded one."""
        if not expected_checksum:
            return False
        return hmac.compare_digest(self.checksum(data), expected_checksum.lower())
