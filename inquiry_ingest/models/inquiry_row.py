from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from .schema import HEADER_COUNT

"""InquiryRow model: one normalized data row of the inquiry sheet.

Column order is positional and fixed (see schema.EXPECTED_HEADERS).
Manual grid entry produces the same shape, so both sources share this type.
"""

__all__ = [
    "InquiryRow",
]


class InquiryRow(NamedTuple):
    """Six string fields in sheet order. Blank cells are stored as ``""``."""

    campaign_key: str
    campaign_name: str
    identifier: str  # ADID / IDFA
    user_name: str
    contact: str
    remarks: str

    @classmethod
    def from_cells(cls, cells: Sequence[str]) -> InquiryRow:
        """Force a raw cell list to exactly six columns.

        Short rows are padded with empty strings, cells beyond the sixth are ignored.
        """
        padded = list(cells[:HEADER_COUNT])
        padded.extend([""] * (HEADER_COUNT - len(padded)))
        return cls(*padded)

    def is_meaningful(self) -> bool:
        return any(value.strip() for value in self)

    def to_record(self) -> dict[str, str]:
        """Field names used by the inquiry store."""
        return {
            "campaignKey": self.campaign_key,
            "campaignName": self.campaign_name,
            "adidOrIdfa": self.identifier,
            "userName": self.user_name,
            "contact": self.contact,
            "remarks": self.remarks,
        }
