from __future__ import annotations

import pytest

from inquiry_ingest.models.inquiry_row import InquiryRow
from inquiry_ingest.models.parse_result import ErrorCategory, ParseResult
from inquiry_ingest.models.schema import EXPECTED_HEADERS


def _success(rows: int = 2) -> ParseResult:
    full = [InquiryRow(f"K{i}", "캠페인", "ID", "이름", "010", "") for i in range(rows)]
    return ParseResult(
        success=True,
        error=None,
        headers_valid=True,
        data_exists=True,
        preview_rows=[list(EXPECTED_HEADERS)] + [list(r) for r in full],
        full_rows=full,
        total_row_count=rows,
        file_size=1234,
        processing_time_ms=12.5,
    )


def test_failure_has_no_rows():
    r = ParseResult.failure(ErrorCategory.HEADER_MISMATCH, "bad headers", preview_rows=[["a"]])
    assert r.success is False
    assert r.headers_valid is False
    assert r.data_exists is False
    assert r.full_rows is None
    assert r.total_row_count == 0
    assert r.preview_rows == [["a"]]
    assert r.error == "bad headers"
    assert r.error_detail is None


@pytest.mark.parametrize("category", list(ErrorCategory))
def test_every_category_has_user_message(category: ErrorCategory):
    assert category.user_message
    r = ParseResult.failure(category, "descriptive")
    assert r.user_message == category.user_message
    assert r.user_message != r.error


def test_user_messages_are_distinct():
    messages = [c.user_message for c in ErrorCategory]
    assert len(set(messages)) == len(messages)


def test_success_has_no_user_message():
    assert _success().user_message is None


def test_result_is_frozen():
    r = _success()
    with pytest.raises(AttributeError):
        r.success = False  # type: ignore[misc]


def test_message_round_trip_success():
    original = _success(rows=3)
    message = original.to_message()
    assert message["kind"] == "result"
    assert message["error_category"] is None
    assert message["full_rows"][0] == ("K0", "캠페인", "ID", "이름", "010", "")
    restored = ParseResult.from_message(message)
    assert restored == original
    assert isinstance(restored.full_rows[0], InquiryRow)


def test_message_round_trip_failure_keeps_category_and_detail():
    original = ParseResult.failure(
        ErrorCategory.DECODE_FAILURE, "unreadable", detail="BadZipFile: File is not a zip file", file_size=9
    )
    restored = ParseResult.from_message(original.to_message())
    assert restored.error_category is ErrorCategory.DECODE_FAILURE
    assert restored.error_detail == "BadZipFile: File is not a zip file"
    assert restored.full_rows is None
    assert restored.file_size == 9


def test_from_message_ignores_unknown_keys():
    message = _success().to_message()
    message["fileSize"] = 1234
    message["stage"] = "done"
    assert ParseResult.from_message(message).total_row_count == 2


def test_inquiry_row_helpers():
    row = InquiryRow.from_cells(["k", "n"])
    assert row == InquiryRow("k", "n", "", "", "", "")
    assert row.is_meaningful() is True
    assert InquiryRow.from_cells(["", " ", "\t"]).is_meaningful() is False
    assert InquiryRow.from_cells(["1", "2", "3", "4", "5", "6", "7"]).remarks == "6"
    assert InquiryRow("a", "b", "c", "d", "e", "f").to_record() == {
        "campaignKey": "a",
        "campaignName": "b",
        "adidOrIdfa": "c",
        "userName": "d",
        "contact": "e",
        "remarks": "f",
    }
