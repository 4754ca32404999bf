"""Recall of previously submitted input lines."""

from __future__ import annotations

MAX_HISTORY = 10


class InputHistory:
    """Most-recent-first list of submitted lines.

    ``index`` is -1 while the user is editing a fresh line and otherwise
    points at the entry currently shown in the input.
    """

    def __init__(self, limit: int = MAX_HISTORY) -> None:
        self.limit = limit
        self.entries: list[str] = []
        self.index = -1

    def record(self, line: str) -> None:
        if line:
            self.entries.insert(0, line)
            del self.entries[self.limit :]
        self.index = -1

    def older(self) -> str | None:
        """Step back in time. Returns None when already at the oldest entry."""
        if self.index + 1 >= len(self.entries):
            return None
        self.index += 1
        return self.entries[self.index]

    def newer(self) -> str | None:
        """Step forward in time. Returns "" when leaving history, None if not browsing."""
        if self.index < 0:
            return None
        self.index -= 1
        if self.index < 0:
            return ""
        return self.entries[self.index]
