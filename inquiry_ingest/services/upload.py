from __future__ import annotations

import mimetypes
from collections.abc import Iterable
from pathlib import Path

from ..models.schema import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES
from ..models.upload import UploadedFile

"""Upload source: selection-level checks before any parse attempt.

Files that are too large or have an unsupported extension are returned with
``error`` set and no content. The controller turns those into the ERRORED
state without starting an engine.
"""

__all__ = [
    "format_bytes",
    "select_file",
    "select_bytes",
]

_MIME_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".csv": "text/csv",
}


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable size (1024 base), e.g. ``5 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


def _mime_type(name: str) -> str:
    suffix = Path(name).suffix.lower()
    return _MIME_TYPES.get(suffix) or mimetypes.guess_type(name)[0] or "application/octet-stream"


def _rejection_reason(
    name: str, size: int, max_bytes: int, allowed_extensions: Iterable[str]
) -> str | None:
    suffix = Path(name).suffix.lower()
    if suffix not in {ext.lower() for ext in allowed_extensions}:
        return "Invalid file type. Please upload .xlsx, .xls, or .csv files."
    if size > max_bytes:
        return f"File is too large. Max size is {format_bytes(max_bytes)}."
    return None


def select_bytes(
    name: str,
    content: bytes,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
    allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS,
) -> UploadedFile:
    """Apply upload checks to an in-memory file."""
    size = len(content)
    mime_type = _mime_type(name)
    reason = _rejection_reason(name, size, max_bytes, allowed_extensions)
    if reason is not None:
        return UploadedFile(name=name, size=size, mime_type=mime_type, error=reason)
    return UploadedFile(name=name, size=size, mime_type=mime_type, content=content)


def select_file(
    path: Path,
    *,
    max_bytes: int = MAX_UPLOAD_BYTES,
    allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS,
) -> UploadedFile:
    """Apply upload checks to a file on disk.

    The size check runs before reading so oversized files are never loaded.

    Raises:
        FileNotFoundError: path does not exist
    """
    size = path.stat().st_size
    reason = _rejection_reason(path.name, size, max_bytes, allowed_extensions)
    if reason is not None:
        return UploadedFile(name=path.name, size=size, mime_type=_mime_type(path.name), error=reason)
    return select_bytes(
        path.name,
        path.read_bytes(),
        max_bytes=max_bytes,
        allowed_extensions=allowed_extensions,
    )
