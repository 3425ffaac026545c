from __future__ import annotations

import datetime
from pathlib import Path

import pytest

from inquiry_ingest.excel.reader import parse_workbook, read_sheet_rows, validate_rows
from inquiry_ingest.models.inquiry_row import InquiryRow
from inquiry_ingest.models.parse_result import ErrorCategory
from inquiry_ingest.models.schema import EXPECTED_HEADERS, PREVIEW_LIMIT

HEADERS = list(EXPECTED_HEADERS)


def _data_row(i: int) -> list[str]:
    return [f"CMP-{i}", f"캠페인 {i}", f"ID-{i}", f"사용자{i}", f"010-0000-{i:04d}", ""]


def _parse_file(path: Path):
    return parse_workbook(path.read_bytes(), path.name)


# ---------------------------------------------------------------------------
# validate_rows (decoded rows -> result)
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("k", [1, 5, 20, 21])
def test_valid_headers_and_rows_succeed(k: int):
    rows = [HEADERS] + [_data_row(i) for i in range(k)]
    result = validate_rows(rows)
    assert result.success is True
    assert result.error is None
    assert result.error_category is None
    assert result.headers_valid is True
    assert result.data_exists is True
    assert result.total_row_count == k
    assert len(result.full_rows) == k
    assert len(result.preview_rows) == min(k, PREVIEW_LIMIT) + 1
    assert result.preview_rows[0] == HEADERS


def test_swapped_headers_are_rejected():
    swapped = HEADERS.copy()
    swapped[0], swapped[1] = swapped[1], swapped[0]
    result = validate_rows([swapped, _data_row(1)])
    assert result.headers_valid is False
    assert result.success is False
    assert result.full_rows is None
    assert result.total_row_count == 0
    assert result.data_exists is False
    assert result.error_category is ErrorCategory.HEADER_MISMATCH
    # 期待値と実際のヘッダが両方メッセージに含まれる
    assert ", ".join(HEADERS) in result.error
    assert ", ".join(swapped) in result.error


def test_header_count_mismatch_is_rejected():
    result = validate_rows([HEADERS[:5], _data_row(1)])
    assert result.headers_valid is False
    assert result.error_category is ErrorCategory.HEADER_MISMATCH


def test_header_labels_are_compared_after_trim():
    padded = [f"  {h} " for h in HEADERS]
    result = validate_rows([padded, _data_row(1)])
    assert result.headers_valid is True
    assert result.success is True


def test_header_mismatch_preview_uses_raw_rows_padded():
    rows = [["a", "b"], ["1"], ["1", "2", "3"]]
    result = validate_rows(rows)
    assert result.preview_rows == [["a", "b", ""], ["1", "", ""], ["1", "2", "3"]]


def test_header_mismatch_preview_is_bounded():
    rows = [["wrong"]] + [[str(i)] for i in range(50)]
    result = validate_rows(rows)
    assert len(result.preview_rows) == PREVIEW_LIMIT + 1
    assert result.preview_rows[0] == ["wrong"]


def test_blank_rows_are_not_counted():
    blank = [""] * 6
    rows = [HEADERS, blank, ["   ", "", " "], blank, _data_row(1), _data_row(2)]
    result = validate_rows(rows)
    assert result.total_row_count == 2
    assert [r.campaign_key for r in result.full_rows] == ["CMP-1", "CMP-2"]


def test_short_rows_are_padded_and_long_rows_truncated():
    rows = [HEADERS, ["k", "n", "id", "u"], ["1", "2", "3", "4", "5", "6", "7", "8"]]
    result = validate_rows(rows)
    assert result.full_rows[0] == InquiryRow("k", "n", "id", "u", "", "")
    assert result.full_rows[1] == InquiryRow("1", "2", "3", "4", "5", "6")


def test_headers_only_is_no_data_rows():
    result = validate_rows([HEADERS])
    assert result.headers_valid is True
    assert result.data_exists is False
    assert result.success is False
    assert result.error_category is ErrorCategory.NO_DATA_ROWS
    assert result.full_rows == []
    assert result.total_row_count == 0
    assert result.preview_rows == [HEADERS]


def test_no_rows_is_empty_file():
    result = validate_rows([])
    assert result.error_category is ErrorCategory.EMPTY_FILE
    assert result.preview_rows == [HEADERS]
    assert result.success is False
    assert result.full_rows is None


def test_preview_bound_with_fifty_rows():
    rows = [HEADERS] + [_data_row(i) for i in range(50)]
    result = validate_rows(rows)
    assert len(result.preview_rows) == 21
    assert len(result.full_rows) == 50
    assert result.preview_rows[-1] == _data_row(19)


def test_progress_stages_reported_in_order():
    stages: list[tuple[str, int]] = []
    validate_rows([HEADERS, _data_row(1)], on_progress=lambda s, p: stages.append((s, p)))
    assert stages == [("validating", 70), ("normalizing", 90)]


# ---------------------------------------------------------------------------
# parse_workbook (real xlsx / csv payloads)
# ---------------------------------------------------------------------------

def test_parse_xlsx_success(make_xlsx, sample_rows):
    path = make_xlsx(sample_rows)
    result = _parse_file(path)
    assert result.success is True
    assert result.total_row_count == 2
    assert result.full_rows[1] == InquiryRow(
        "CMP-1002", "리워드 캠페인", "BBBB-2222", "이서연", "010-2222-3333", "재확인 필요"
    )
    assert result.file_size == path.stat().st_size
    assert result.processing_time_ms >= 0
    assert result.is_large_file is False


def test_parse_xlsx_skips_blank_rows(make_xlsx):
    rows = [HEADERS, [None] * 6, [None] * 6, [None] * 6, _data_row(1), _data_row(2)]
    result = _parse_file(make_xlsx(rows))
    assert result.total_row_count == 2


def test_parse_xlsx_ragged_rows(make_xlsx):
    rows = [
        HEADERS,
        ["k", "n", "id", "u"],
        ["1", "2", "3", "4", "5", "6", "7", "8"],
    ]
    result = _parse_file(make_xlsx(rows))
    # 8 列の行があってもヘッダ行は 6 列として比較される
    assert result.headers_valid is True
    assert result.full_rows[0] == InquiryRow("k", "n", "id", "u", "", "")
    assert result.full_rows[1] == InquiryRow("1", "2", "3", "4", "5", "6")


def test_parse_xlsx_header_order(make_xlsx):
    swapped = HEADERS.copy()
    swapped[2], swapped[3] = swapped[3], swapped[2]
    result = _parse_file(make_xlsx([swapped, _data_row(1)]))
    assert result.headers_valid is False
    assert result.full_rows is None
    assert result.preview_rows[0] == swapped


def test_parse_xlsx_empty_sheet(make_xlsx):
    result = _parse_file(make_xlsx([]))
    assert result.error_category is ErrorCategory.EMPTY_FILE
    assert result.preview_rows == [HEADERS]


def test_parse_csv():
    text = ",".join(HEADERS) + "\nCMP-1,봄,ID-1,김,010,\n,,,,,\n\nCMP-2,여름,ID-2,이,011,메모\n"
    result = parse_workbook(text.encode("utf-8"), "inquiry.csv")
    assert result.success is True
    assert result.total_row_count == 2
    assert result.full_rows[1].remarks == "메모"


def test_parse_csv_long_data_row_is_truncated():
    text = ",".join(HEADERS) + "\nk1,c1,a1,u1,010,r1,extra7,extra8\nk2,c2\n"
    result = parse_workbook(text.encode("utf-8"), "inquiry.csv")
    assert result.success is True
    assert result.error_category is None
    assert result.full_rows == [
        InquiryRow("k1", "c1", "a1", "u1", "010", "r1"),
        InquiryRow("k2", "c2", "", "", "", ""),
    ]


def test_parse_csv_short_header_is_header_mismatch():
    result = parse_workbook(b"only,three,cols\nk1,c1,a1,u1,010,r1\n", "inquiry.csv")
    assert result.error_category is ErrorCategory.HEADER_MISMATCH
    assert result.headers_valid is False
    assert result.preview_rows == [
        ["only", "three", "cols", "", "", ""],
        ["k1", "c1", "a1", "u1", "010", "r1"],
    ]


def test_parse_csv_quoted_commas_keep_width():
    text = ",".join(HEADERS) + '\nk1,"Seoul, Korea",a1,u1,010,"a, b, c"\n'
    result = parse_workbook(text.encode("utf-8"), "inquiry.csv")
    assert result.full_rows == [InquiryRow("k1", "Seoul, Korea", "a1", "u1", "010", "a, b, c")]


def test_parse_xlsx_date_cells_keep_calendar_date(make_xlsx):
    rows = [
        HEADERS,
        ["k1", "c1", "a1", "u1", datetime.date(2024, 1, 2), ""],
        ["k2", "c2", "a2", "u2", datetime.datetime(2024, 1, 2, 9, 30), 1001],
    ]
    result = _parse_file(make_xlsx(rows))
    assert result.success is True
    assert result.full_rows[0].contact == "2024-01-02"
    assert result.full_rows[1].contact == "2024-01-02 09:30:00"
    assert result.full_rows[1].remarks == "1001"


def test_parse_empty_csv():
    result = parse_workbook(b"", "inquiry.csv")
    assert result.error_category is ErrorCategory.EMPTY_FILE


def test_parse_renamed_text_file_is_decode_failure():
    progress: list[str] = []
    result = parse_workbook(b"this is not a spreadsheet", "inquiry.xlsx", lambda s, p: progress.append(s))
    assert result.error_category is ErrorCategory.DECODE_FAILURE
    assert result.success is False
    assert result.full_rows is None
    assert result.data_exists is False
    assert result.total_row_count == 0
    assert result.error_detail  # 生メッセージは detail 側
    assert result.error_detail not in result.error
    assert result.file_size == len(b"this is not a spreadsheet")
    assert progress == ["decoding"]


def test_large_file_flag(monkeypatch):
    import inquiry_ingest.excel.reader as reader
    monkeypatch.setattr(reader, "LARGE_FILE_THRESHOLD_BYTES", 10)
    result = parse_workbook(b"x" * 11, "inquiry.xlsx")
    assert result.is_large_file is True


def test_read_sheet_rows_trims_trailing_cells(make_xlsx):
    path = make_xlsx([["a", "b", None, None], [None, "x"], [None, None]])
    assert read_sheet_rows(path.read_bytes(), path.name) == [["a", "b"], ["", "x"]]
