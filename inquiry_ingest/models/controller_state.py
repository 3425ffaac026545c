from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .parse_result import ParseResult
from .upload import FileIdentity

"""Controller state models for the ingestion upload slot.

State transitions:
    IDLE -> PARSING -> RESOLVED
    IDLE -> ERRORED              (upload source rejected the file)
    PARSING -> PARSING           (new file supersedes the running task)
    any -> IDLE                  (slot cleared / session closed)
"""

__all__ = [
    "SlotStatus",
    "TaskToken",
    "ControllerState",
]


class SlotStatus(Enum):
    """Status of the single upload slot owned by the controller.

    - IDLE: no file selected
    - PARSING: engine running for the current file, timeout armed
    - ERRORED: upload source rejected the file, no engine was started
    - RESOLVED: terminal result (success or failure) for the current file
    """
    IDLE = "idle"
    PARSING = "parsing"
    ERRORED = "errored"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class TaskToken:
    """Identifies one parse attempt.

    ``generation`` increases monotonically per controller, so two attempts for
    the same file never share a token.
    """
    generation: int
    file: FileIdentity

    def __str__(self) -> str:
        return f"task#{self.generation} {self.file}"


@dataclass(frozen=True)
class ControllerState:
    """Immutable snapshot of the upload slot returned by ``get_state()``."""
    status: SlotStatus
    file: FileIdentity | None = None
    result: ParseResult | None = None  # RESOLVED のみ
    selection_error: str | None = None  # ERRORED のみ
    progress: dict[str, Any] | None = None  # PARSING 中の最新進捗

    @property
    def busy(self) -> bool:
        return self.status is SlotStatus.PARSING
