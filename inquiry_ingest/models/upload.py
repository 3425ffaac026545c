from __future__ import annotations

from dataclasses import dataclass

"""Upload models: the file handed over by the upload source.

The upload source either accepts a file (content available) or rejects it with
a reason (oversize / wrong type). Rejected files never reach the parser engine.
"""

__all__ = [
    "FileIdentity",
    "UploadedFile",
]


@dataclass(frozen=True)
class FileIdentity:
    """Lightweight fingerprint of a selected file (name + byte size)."""
    name: str
    size: int

    def __str__(self) -> str:
        return f"{self.name} ({self.size} bytes)"


@dataclass(frozen=True)
class UploadedFile:
    """A file selected by the user.

    ``error`` is set when the upload source rejected the file; ``content`` is
    then usually None.
    """
    name: str
    size: int
    mime_type: str
    content: bytes | None = None
    error: str | None = None  # 受付拒否理由

    @property
    def identity(self) -> FileIdentity:
        return FileIdentity(name=self.name, size=self.size)

    @property
    def rejected(self) -> bool:
        return self.error is not None

    def __repr__(self) -> str:  # content はログに出さない
        return (
            f"UploadedFile(name={self.name!r}, size={self.size}, "
            f"mime_type={self.mime_type!r}, error={self.error!r})"
        )
