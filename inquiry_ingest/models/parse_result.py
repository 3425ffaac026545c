from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from .inquiry_row import InquiryRow

"""ParseResult model and the ingestion error taxonomy.

A ParseResult is built once per submitted file by the parser engine (or
synthesized by the controller for timeout / creation / engine faults) and is
never mutated afterwards.

Wire format between engine process and controller:
    {"kind": "result", "success": ..., "error": ..., ...}
"""

__all__ = [
    "ErrorCategory",
    "ParseResult",
]


class ErrorCategory(Enum):
    """Mutually exclusive failure categories.

    Each category carries a stable, non-technical message for display.
    The descriptive ``ParseResult.error`` text and raw ``error_detail`` are kept
    separately for diagnostics.
    """
    SELECTION_REJECTED = "selection_rejected"
    EMPTY_FILE = "empty_file"
    HEADER_MISMATCH = "header_mismatch"
    NO_DATA_ROWS = "no_data_rows"
    DECODE_FAILURE = "decode_failure"
    CREATION_FAILURE = "creation_failure"
    TIMEOUT = "timeout"
    ENGINE_FAULT = "engine_fault"

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES[self]


_USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.SELECTION_REJECTED: "The file was rejected before it could be read.",
    ErrorCategory.EMPTY_FILE: "The file has no data.",
    ErrorCategory.HEADER_MISMATCH: "The file does not use the expected column layout.",
    ErrorCategory.NO_DATA_ROWS: "The file has headers but no data rows.",
    ErrorCategory.DECODE_FAILURE: "The file could not be read as a spreadsheet.",
    ErrorCategory.CREATION_FAILURE: "The file could not be processed right now.",
    ErrorCategory.TIMEOUT: "Reading the file took too long.",
    ErrorCategory.ENGINE_FAULT: "Something went wrong while reading the file.",
}


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one spreadsheet file.

    Invariants:
        - full_rows is not None only when headers_valid
        - success implies headers_valid and data_exists and error is None
        - total_row_count == len(full_rows or [])
    """
    success: bool
    error: str | None
    headers_valid: bool
    data_exists: bool
    preview_rows: list[list[str]] | None  # ヘッダ行 + 先頭 PREVIEW_LIMIT 行
    full_rows: list[InquiryRow] | None  # 全有効行 (ヘッダ有効時のみ)
    total_row_count: int
    file_size: int = 0
    processing_time_ms: float = 0.0
    is_large_file: bool = False
    error_category: ErrorCategory | None = None
    error_detail: str | None = None  # 生の例外メッセージ等 (ログ用)

    @property
    def user_message(self) -> str | None:
        if self.error_category is None:
            return None
        return self.error_category.user_message

    @classmethod
    def failure(
        cls,
        category: ErrorCategory,
        error: str,
        *,
        detail: str | None = None,
        preview_rows: list[list[str]] | None = None,
        file_size: int = 0,
        processing_time_ms: float = 0.0,
        is_large_file: bool = False,
    ) -> ParseResult:
        """Build a failed result with no usable rows."""
        return cls(
            success=False,
            error=error,
            headers_valid=False,
            data_exists=False,
            preview_rows=preview_rows,
            full_rows=None,
            total_row_count=0,
            file_size=file_size,
            processing_time_ms=processing_time_ms,
            is_large_file=is_large_file,
            error_category=category,
            error_detail=detail,
        )

    def to_message(self) -> dict[str, Any]:
        """Serialize to the engine -> controller result message."""
        message: dict[str, Any] = {"kind": "result"}
        for f in fields(self):
            message[f.name] = getattr(self, f.name)
        message["error_category"] = self.error_category.value if self.error_category else None
        if self.full_rows is not None:
            message["full_rows"] = [tuple(row) for row in self.full_rows]
        return message

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> ParseResult:
        """Rebuild a ParseResult from a result message (extra keys are ignored)."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in message.items() if k in known}
        category = values.get("error_category")
        values["error_category"] = ErrorCategory(category) if category else None
        rows = values.get("full_rows")
        if rows is not None:
            values["full_rows"] = [InquiryRow(*row) for row in rows]
        return cls(**values)
