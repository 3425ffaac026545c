from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.controller_state import ControllerState, SlotStatus

"""Parse progress display with tqdm (TTY only).

The engine reports advisory progress messages
(``{"kind": "progress", "stage", "percent", "fileSize"}``). This module shows
them as a single percent bar. In non-TTY environments (CI, pipes) the bar is
disabled to avoid ANSI control sequence spam.
"""

__all__ = [
    "ParseProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ParseProgressBar:
    """Percent progress bar for one file parse.

    Can be registered directly as a controller listener via ``on_state``.
    """

    def __init__(self, file_name: str, *, description: str = "Parsing") -> None:
        """Initialize progress bar.

        Args:
            file_name: Name of the file being parsed
            description: Description prefix for the progress bar
        """
        self.file_name = file_name
        self.description = description
        self.percent = 0
        self.stage: str | None = None

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=100,
                desc=f"{description} ({file_name})",
                unit="%",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def update(self, stage: str, percent: int) -> None:
        """Move the bar to ``percent`` (never backwards)."""
        percent = max(0, min(100, int(percent)))
        self.stage = stage
        if percent <= self.percent:
            return
        delta = percent - self.percent
        self.percent = percent
        if self.enabled and self.pbar is not None:
            self.pbar.update(delta)
            self.pbar.set_postfix(stage=stage)

    def on_state(self, state: ControllerState) -> None:
        """Controller listener: follow progress, complete the bar on resolution."""
        if state.status is SlotStatus.PARSING and state.progress:
            self.update(str(state.progress.get("stage")), int(state.progress.get("percent", 0)))
        elif state.status is SlotStatus.RESOLVED:
            self.update("done", 100)

    def close(self) -> None:
        """Close the progress bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ParseProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
