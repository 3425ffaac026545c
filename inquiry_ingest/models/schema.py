from __future__ import annotations

"""Fixed inquiry sheet schema and ingestion limits.

These values must match the template file distributed to users
(`inquiry_template.xlsx`). Files produced from older templates are validated
against the same header labels, so the labels and their order never change.
"""

__all__ = [
    "EXPECTED_HEADERS",
    "HEADER_COUNT",
    "PREVIEW_LIMIT",
    "LARGE_FILE_THRESHOLD_BYTES",
    "TASK_TIMEOUT_MS",
    "MAX_UPLOAD_BYTES",
    "ALLOWED_EXTENSIONS",
]

EXPECTED_HEADERS: tuple[str, ...] = (
    "캠페인 키",
    "캠페인 명",
    "ADID / IDFA",
    "이름",
    "연락처",
    "비고",
)
HEADER_COUNT = len(EXPECTED_HEADERS)

PREVIEW_LIMIT = 20  # プレビュー用データ行数 (ヘッダ除く)
LARGE_FILE_THRESHOLD_BYTES = 5 * 1024 * 1024
TASK_TIMEOUT_MS = 5000

# アップロード元の受付条件
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_EXTENSIONS: tuple[str, ...] = (".xlsx", ".xls", ".csv")
