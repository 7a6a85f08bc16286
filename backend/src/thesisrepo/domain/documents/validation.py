"""File validation utilities for thesis document uploads.

MIME whitelists are per upload field: the main thesis document accepts only
PDF and Word files, supplementary files accept office documents, images,
plain text and archives, calendar attachments accept PDF, Word, images and
plain text.
"""

import os
import re
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class UploadField(str, Enum):
    """Upload slot a file is submitted to. Value doubles as storage folder."""
    THESIS_DOCUMENT = "thesis/documents"
    SUPPLEMENTARY = "thesis/supplementary"
    CALENDAR_ATTACHMENT = "calendar/attachments"


WORD_MIME_TYPES = {
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}

ALLOWED_MIME_TYPES: dict = {
    UploadField.THESIS_DOCUMENT: frozenset({'application/pdf', *WORD_MIME_TYPES}),
    UploadField.SUPPLEMENTARY: frozenset({
        'application/pdf',
        *WORD_MIME_TYPES,
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'application/vnd.ms-powerpoint',
        'application/vnd.openxmlformats-officedocument.presentationml.presentation',
        'image/jpeg',
        'image/jpg',
        'image/png',
        'image/gif',
        'text/plain',
        'application/zip',
        'application/x-rar-compressed',
    }),
    UploadField.CALENDAR_ATTACHMENT: frozenset({
        'application/pdf',
        *WORD_MIME_TYPES,
        'image/jpeg',
        'image/jpg',
        'image/png',
        'image/gif',
        'text/plain',
    }),
}

# File size limit (default 10MB)
MAX_FILE_SIZE = 10 * 1024 * 1024


def allowed_mime_types(field: UploadField) -> FrozenSet[str]:
    return ALLOWED_MIME_TYPES[field]


def is_supported_mime_type(mime_type: str, field: UploadField = UploadField.THESIS_DOCUMENT) -> bool:
    """Check if MIME type is accepted for the given upload field

    Example:
        >>> is_supported_mime_type('application/pdf')
        True
        >>> is_supported_mime_type('image/png')
        False
        >>> is_supported_mime_type('image/png', UploadField.SUPPLEMENTARY)
        True
    """
    return mime_type in ALLOWED_MIME_TYPES[field]


def validate_file_size(size_bytes: int, max_size: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """Validate file size is within limits

    Args:
        size_bytes: File size in bytes
        max_size: Maximum allowed size (defaults to MAX_FILE_SIZE)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if max_size is None:
        max_size = MAX_FILE_SIZE

    if size_bytes == 0:
        return False, "File is empty (0 bytes)"

    if size_bytes > max_size:
        return False, f"File exceeds maximum size of {max_size} bytes (got {size_bytes} bytes)"

    return True, None


def validate_filename(filename: str) -> Tuple[bool, Optional[str]]:
    """Validate a user-supplied filename

    Validation rules:
    - Not empty
    - Max 255 characters
    - No path traversal (../, ..\\)
    - No null bytes or control characters

    Example:
        >>> validate_filename('thesis.pdf')
        (True, None)
        >>> validate_filename('')
        (False, 'Filename cannot be empty')
    """
    if not filename or len(filename.strip()) == 0:
        return False, "Filename cannot be empty"

    if len(filename) > 255:
        return False, f"Filename exceeds 255 characters (got {len(filename)})"

    if '..' in filename or '/' in filename or '\\' in filename:
        return False, "Filename contains path traversal or directory separators"

    if '\x00' in filename:
        return False, "Filename contains null bytes"

    if any(ord(c) < 32 for c in filename):
        return False, "Filename contains control characters"

    return True, None


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage

    Example:
        >>> sanitize_filename('../../thesis.pdf')
        'thesis.pdf'
        >>> sanitize_filename('final thesis (v2).pdf')
        'final_thesis_v2_.pdf'
    """
    # Remove path components
    filename = os.path.basename(filename.replace('\\', '/'))

    # Replace problematic characters with underscore
    filename = re.sub(r'[^\w\s.-]', '_', filename)

    # Collapse multiple spaces/underscores
    filename = re.sub(r'[\s_]+', '_', filename)

    # Leading dots would make hidden files
    filename = filename.lstrip('.')

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:255 - len(ext)] + ext

    return filename
