from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.inquiry_row import InquiryRow
from ..models.parse_result import ErrorCategory, ParseResult
from ..models.schema import (
    EXPECTED_HEADERS,
    HEADER_COUNT,
    LARGE_FILE_THRESHOLD_BYTES,
    PREVIEW_LIMIT,
)

"""Inquiry spreadsheet reader (parser engine core).

Flow:
1. 先頭シートのみを文字列として生読み (header=None, 数式評価・日付変換なし)
2. 行ごとに末尾の空セルを除去し、完全な空行は捨てる
3. 1行目を固定 6 列ヘッダと位置で比較
4. 2行目以降を 6 列に正規化し、意味のある行のみ残す

The engine is stateless. ``parse_workbook`` always returns a ParseResult; it
never raises for bad input.
"""

__all__ = [
    "ProgressCallback",
    "read_sheet_rows",
    "validate_rows",
    "parse_workbook",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

EMPTY_FILE_MESSAGE = "The spreadsheet is empty or could not be read."
NO_DATA_MESSAGE = "The spreadsheet has valid headers but contains no data rows."
DECODE_FAILURE_MESSAGE = (
    "Error parsing spreadsheet file. Please check that it is a valid .xlsx, .xls or .csv file."
)


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dt.datetime):
        # 日付セルは時刻 00:00:00 を付けずに表示値に近い形で残す
        if pd.isna(value):
            return ""
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    if pd.isna(value):
        return ""
    return str(value)


def _trim_trailing_blanks(cells: list[str]) -> list[str]:
    end = len(cells)
    while end > 0 and cells[end - 1] == "":
        end -= 1
    return cells[:end]


def read_sheet_rows(data: bytes, file_name: str | None = None) -> list[list[str]]:
    """Decode the first sheet of a workbook into rows of strings.

    Parameters
    ----------
    data: ファイル内容 (全体をメモリに読み込み済み)
    file_name: 拡張子判定用。``.csv`` の場合のみ CSV として読む

    Row 0 is returned as data (header detection is done by the caller).
    Blank rows are dropped and trailing empty cells are removed so that every
    row keeps its own length.
    """
    if file_name is not None and Path(file_name).suffix.lower() == ".csv":
        text = data.decode("utf-8-sig")
        # 行ごとに列数が異なる CSV は最長行の列数で読む (短い行は空セルで埋まる)
        width = max((len(r) for r in csv.reader(io.StringIO(text))), default=0)
        if width == 0:
            return []
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
        )
    else:
        # xlsx / xls はバイト列から形式を自動判定 (openpyxl / xlrd)
        # dtype=object: セル値をそのまま受け取り、日付の文字列化は _cell_to_str で行う
        df = pd.read_excel(
            io.BytesIO(data),
            sheet_name=0,
            header=None,
            dtype=object,
            keep_default_na=False,
            na_filter=False,
        )

    rows: list[list[str]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = _trim_trailing_blanks([_cell_to_str(v) for v in raw])
        if not cells:
            continue
        rows.append(cells)
    return rows


def _headers_match(header: Sequence[str]) -> bool:
    if len(header) != HEADER_COUNT:
        return False
    return all(
        found.strip() == expected.strip()
        for found, expected in zip(header, EXPECTED_HEADERS, strict=True)
    )


def _raw_preview(rows: list[list[str]]) -> list[list[str]]:
    """Header as given plus the first data rows, padded to a common width."""
    preview = rows[: PREVIEW_LIMIT + 1]
    width = max(len(r) for r in preview)
    return [r + [""] * (width - len(r)) for r in preview]


def validate_rows(
    rows: list[list[str]],
    on_progress: ProgressCallback | None = None,
) -> ParseResult:
    """Validate extracted rows against the fixed header schema.

    Returns a ParseResult without file metadata (size / timing); see
    ``parse_workbook`` for the annotated version.
    """
    if not rows:
        return ParseResult.failure(
            ErrorCategory.EMPTY_FILE,
            EMPTY_FILE_MESSAGE,
            preview_rows=[list(EXPECTED_HEADERS)],
        )

    if on_progress is not None:
        on_progress("validating", 70)

    header = rows[0]
    if not _headers_match(header):
        expected = ", ".join(EXPECTED_HEADERS)
        found = ", ".join(header)
        return ParseResult.failure(
            ErrorCategory.HEADER_MISMATCH,
            f'Invalid headers. Expected: "{expected}". Found: "{found}". '
            "Please use the provided template.",
            preview_rows=_raw_preview(rows),
        )

    if on_progress is not None:
        on_progress("normalizing", 90)

    full_rows: list[InquiryRow] = []
    for cells in rows[1:]:
        row = InquiryRow.from_cells(cells)
        if row.is_meaningful():
            full_rows.append(row)

    data_exists = len(full_rows) > 0
    error = None if data_exists else NO_DATA_MESSAGE
    preview = [list(EXPECTED_HEADERS)] + [list(r) for r in full_rows[:PREVIEW_LIMIT]]
    return ParseResult(
        success=data_exists and error is None,
        error=error,
        headers_valid=True,
        data_exists=data_exists,
        preview_rows=preview,
        full_rows=full_rows,
        total_row_count=len(full_rows),
        error_category=None if data_exists else ErrorCategory.NO_DATA_ROWS,
    )


def parse_workbook(
    data: bytes,
    file_name: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> ParseResult:
    """Parse one spreadsheet payload into a ParseResult.

    Decoder failures (corrupt or non-spreadsheet content) are reported as
    DECODE_FAILURE results. The result is always annotated with the file size,
    elapsed time and the large-file flag.
    """
    started = time.perf_counter()
    file_size = len(data)
    is_large = file_size > LARGE_FILE_THRESHOLD_BYTES

    if on_progress is not None:
        on_progress("decoding", 40)
    try:
        rows = read_sheet_rows(data, file_name)
    except Exception as e:
        # デコード段階ではプレビュー未構築のため preview_rows=None
        logger.warning(f"decode failed file={file_name} size={file_size}: {e}")
        result = ParseResult.failure(
            ErrorCategory.DECODE_FAILURE,
            DECODE_FAILURE_MESSAGE,
            detail=f"{type(e).__name__}: {e}",
        )
    else:
        result = validate_rows(rows, on_progress)

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.debug(
        f"parsed file={file_name} success={result.success} rows={result.total_row_count} "
        f"elapsed_ms={elapsed_ms:.1f}"
    )
    return replace(
        result,
        file_size=file_size,
        processing_time_ms=elapsed_ms,
        is_large_file=is_large,
    )
