from __future__ import annotations

from collections.abc import Iterable

from ..models.controller_state import ControllerState, SlotStatus
from ..models.inquiry_row import InquiryRow
from ..models.submission import InquirySource, InquirySubmission

"""Hand-off of parsed rows to the inquiry store.

Only a RESOLVED state whose result succeeded may be submitted. The manual grid
entry source builds the same payload through ``submission_from_rows``.
"""

__all__ = [
    "SubmissionError",
    "build_submission",
    "submission_from_rows",
]


class SubmissionError(Exception):
    """Raised when there is nothing valid to submit."""


def submission_from_rows(
    rows: Iterable[InquiryRow],
    *,
    user_id: str,
    source: InquirySource,
    file_name: str | None = None,
) -> InquirySubmission:
    """Build a submission from normalized rows, skipping blank ones."""
    data = [row.to_record() for row in rows if row.is_meaningful()]
    if not data:
        raise SubmissionError("no rows to submit")
    return InquirySubmission(
        user_id=user_id,
        source=source,
        data=data,
        file_name=file_name if source == "excel" else None,
    )


def build_submission(state: ControllerState, *, user_id: str) -> InquirySubmission:
    """Build the excel submission from the controller's resolved state.

    Raises:
        SubmissionError: state is not RESOLVED with a successful result
    """
    if state.status is not SlotStatus.RESOLVED or state.result is None:
        raise SubmissionError(f"cannot submit while slot is {state.status.value}")
    result = state.result
    if not result.success or result.full_rows is None:
        reason = result.user_message or "file is not valid"
        raise SubmissionError(f"cannot submit invalid file: {reason}")
    return submission_from_rows(
        result.full_rows,
        user_id=user_id,
        source="excel",
        file_name=state.file.name if state.file is not None else None,
    )
