"""Domain models for the inquiry spreadsheet ingestion pipeline.

This package contains the row / result / upload / controller-state types shared
by the parser engine, the ingestion controller and the submission layer.
"""

from .controller_state import ControllerState, SlotStatus, TaskToken
from .inquiry_row import InquiryRow
from .parse_result import ErrorCategory, ParseResult
from .submission import InquirySubmission
from .upload import FileIdentity, UploadedFile

__all__ = [
    # Sheet data
    "InquiryRow",
    "ParseResult",
    "ErrorCategory",
    # Upload slot
    "FileIdentity",
    "UploadedFile",
    "ControllerState",
    "SlotStatus",
    "TaskToken",
    # Downstream
    "InquirySubmission",
]
