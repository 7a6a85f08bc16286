"""Stage HTTP uploads on local disk before they reach a storage backend."""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from fastapi import UploadFile

from ..domain.documents.errors import DocumentValidationError, StorageIOError
from ..domain.documents.ports.object_storage_port import UploadPayload
from ..domain.documents.validation import UploadField, is_supported_mime_type, validate_filename

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


async def stage_upload(file: UploadFile, field: UploadField, staging_dir: Path, max_size: int) -> UploadPayload:
    """Validate an UploadFile and copy it into ``staging_dir``.

    The size limit is enforced while copying, so an oversized upload never
    lands on disk in full.

    Raises:
        DocumentValidationError: If name, type or size are not acceptable
        StorageIOError: If the staging directory cannot be written
    """
    original_name = file.filename or ""
    valid, error = validate_filename(original_name)
    if not valid:
        raise DocumentValidationError(error)

    mime_type = file.content_type or "application/octet-stream"
    if not is_supported_mime_type(mime_type, field):
        raise DocumentValidationError(f"Unsupported file type for {field.name.lower()}: {mime_type}")

    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
        fd, staged_name = tempfile.mkstemp(dir=staging_dir, suffix=".upload")
    except OSError as e:
        raise StorageIOError(f"Cannot stage upload: {e.strerror or e}", backend="local", stage="stage")

    staged_path = Path(staged_name)
    size = 0
    try:
        with os.fdopen(fd, "wb") as target:
            while True:
                chunk = await file.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise DocumentValidationError(f"File exceeds maximum size of {max_size} bytes")
                target.write(chunk)
        if size == 0:
            raise DocumentValidationError("File is empty (0 bytes)")
    except DocumentValidationError:
        staged_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        staged_path.unlink(missing_ok=True)
        raise StorageIOError(f"Cannot stage upload: {e.strerror or e}", backend="local", stage="stage")

    logger.debug(f"Staged upload {original_name} ({size} bytes) at {staged_path}")
    return UploadPayload.from_staged_file(staged_path, original_name, mime_type)


async def stage_uploads(
    files: List[UploadFile], field: UploadField, staging_dir: Path, max_size: int
) -> List[UploadPayload]:
    """Stage several uploads, all or nothing.

    If any file is rejected, the files already staged are removed before the
    error propagates.
    """
    payloads: List[UploadPayload] = []
    try:
        for file in files:
            payloads.append(await stage_upload(file, field, staging_dir, max_size))
    except (DocumentValidationError, StorageIOError):
        for payload in payloads:
            payload.staged_path.unlink(missing_ok=True)
        raise
    return payloads
