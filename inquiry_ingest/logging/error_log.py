from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..models.parse_result import ParseResult

"""Structured error log (JSON Lines) for rejected / failed inquiry files.

- 固定スキーマ (追加キー禁止, error_log_schema.json)
- 起動ごとに ``<log_dir>/errors-YYYYMMDD-HHMMSS.log`` (UTC) を生成 (必要時)
- バッファリングして flush 時に一括追記
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "ERROR_LOG_SCHEMA_PATH",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"
ERROR_LOG_SCHEMA_PATH = Path(__file__).parent / "error_log_schema.json"


@dataclass(frozen=True)
class ErrorRecord:
    """One failed file.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        category: ErrorCategory value (e.g. ``header_mismatch``)
        message: descriptive message shown with the result
        detail: raw diagnostic text (decoder message etc.), may be None
    """
    timestamp: str
    file: str
    category: str
    message: str
    detail: str | None

    @staticmethod
    def create(file: str, category: str, message: str, detail: str | None = None) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(timestamp=ts, file=file, category=category, message=message, detail=detail)

    @staticmethod
    def from_result(file: str, result: ParseResult) -> ErrorRecord:
        category = result.error_category.value if result.error_category else "unknown"
        return ErrorRecord.create(
            file=file,
            category=category,
            message=result.error or "",
            detail=result.error_detail,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - ファイルパスは初回アクセスで決定
    - スレッド安全性不要 (CLI からのみ使用)
    """

    def __init__(self, logs_dir: Path = DEFAULT_LOGS_DIR) -> None:
        self._logs_dir = logs_dir
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file. Returns None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
