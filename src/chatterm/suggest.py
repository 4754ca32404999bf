"""Tab completion over nicks, emotes and command names.

Only the last word of the input can be completed. Pressing the completion
key again cycles through the remaining matches for the word the user
originally typed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

MIN_PREFIX = 2

Source = Callable[[], Iterable[str]]


@dataclass
class SuggestionState:
    """Current completion cycle. ``index`` is valid whenever ``candidates`` is non-empty."""

    prefix: str = ""
    candidates: list[str] = field(default_factory=list)
    index: int = 0

    @property
    def current(self) -> str | None:
        if not self.candidates:
            return None
        return self.candidates[self.index]

    def start(self, prefix: str, candidates: list[str]) -> None:
        self.prefix = prefix
        self.candidates = candidates
        self.index = 0

    def advance(self) -> None:
        self.index = (self.index + 1) % len(self.candidates)

    def reset(self) -> None:
        self.start("", [])


def final_token(buffer: str) -> tuple[int, str]:
    """Return (start offset, text) of the last whitespace-delimited word.

    A buffer ending in whitespace has an empty final word.
    """
    if not buffer or buffer[-1].isspace():
        return len(buffer), ""
    start = len(buffer)
    while start > 0 and not buffer[start - 1].isspace():
        start -= 1
    return start, buffer[start:]


class SuggestionEngine:
    """Completes the final word of the input against a corpus of sources."""

    def __init__(self, *sources: Source) -> None:
        self.sources = sources
        self.state = SuggestionState()

    def corpus(self) -> list[str]:
        words: set[str] = set()
        for source in self.sources:
            words.update(w for w in source() if w)
        return sorted(words, key=lambda w: (w.lower(), w))

    def reset(self) -> None:
        """Forget the current cycle; the next completion starts from the typed word."""
        self.state.reset()

    def candidates_for(self, prefix: str) -> list[str]:
        lowered = prefix.lower()
        return [w for w in self.corpus() if w.lower().startswith(lowered)]

    def complete(self, buffer: str, cursor: int) -> tuple[str, int]:
        """Complete the final word of *buffer*.

        Returns the (possibly unchanged) buffer and the new cursor position.
        """
        start, token = final_token(buffer)
        if not token or cursor < start:
            self.state.reset()
            return buffer, cursor

        if self.state.candidates and token == self.state.current:
            self.state.advance()
        else:
            if len(token) < MIN_PREFIX:
                self.state.reset()
                return buffer, cursor
            candidates = self.candidates_for(token)
            if not candidates:
                self.state.reset()
                return buffer, cursor
            self.state.start(token, candidates)

        completed = buffer[:start] + self.state.candidates[self.state.index]
        return completed, len(completed)
