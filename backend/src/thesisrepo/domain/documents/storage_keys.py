"""Storage key generation.

Keys are ``{folder}/{stem}-{epoch_ms}-{random}{ext}``. The random component
comes from ``secrets`` so concurrent uploads of the same filename to the same
folder within one millisecond still get distinct keys.
"""

import secrets
import time
from pathlib import PurePosixPath

from .validation import sanitize_filename


def unique_filename(original_name: str) -> str:
    """Build a collision-resistant filename from the user's filename.

    Example:
        >>> unique_filename("My Thesis.pdf")
        'My_Thesis-1736500000000-3f9a0c12b7d4e5a6.pdf'
    """
    safe_name = sanitize_filename(original_name) or "document"
    path = PurePosixPath(safe_name)
    ext = path.suffix
    stem = path.stem or "document"
    suffix = f"{int(time.time() * 1000)}-{secrets.token_hex(8)}"
    return f"{stem}-{suffix}{ext}"


def normalize_folder(folder: str) -> str:
    """Strip separators and reject traversal in a folder path segment."""
    parts = [p for p in folder.replace("\\", "/").split("/") if p and p != "."]
    if any(p == ".." for p in parts):
        raise ValueError(f"Folder contains path traversal: {folder}")
    return "/".join(parts)


def build_storage_key(folder: str, original_name: str) -> str:
    """Generate a unique storage key under ``folder``."""
    filename = unique_filename(original_name)
    folder = normalize_folder(folder)
    return f"{folder}/{filename}" if folder else filename
