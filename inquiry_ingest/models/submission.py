from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

"""InquirySubmission model handed to the inquiry store.

Rows are already mapped to store field names (see InquiryRow.to_record).
"""

__all__ = [
    "InquirySource",
    "InquirySubmission",
]

InquirySource = Literal["excel", "direct"]


@dataclass(frozen=True)
class InquirySubmission:
    """Payload for one inquiry write.

    ``file_name`` is only present for excel uploads.
    """
    user_id: str
    source: InquirySource
    data: list[dict[str, str]] = field(default_factory=list)
    file_name: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.data)
