"""Staging file cleanup after a confirmed remote write.

Once a remote backend holds the authoritative copy, the staged temporary file
is only clutter. Deleting it is fire-and-forget: failures are logged and
counted but never fail the upload.
"""

import logging

from ...domain.documents.ports.object_storage_port import UploadPayload
from ...observability.metrics import staging_cleanup_failures_total

logger = logging.getLogger(__name__)


def discard_staging_file(payload: UploadPayload, backend: str) -> bool:
    """Delete the payload's staged file if it has one.

    Returns:
        bool: True if a staged file was removed
    """
    if payload.staged_path is None:
        return False
    try:
        payload.staged_path.unlink(missing_ok=True)
        return True
    except OSError as e:
        staging_cleanup_failures_total.labels(backend=backend).inc()
        logger.warning(
            f"Could not delete staging file {payload.staged_path} after upload: {e}",
            extra={"backend": backend, "stage": "cleanup"},
        )
        return False
