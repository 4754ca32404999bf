"""Bounded, thread-safe store of rendered message records.

MessageLog owns every record it holds. Callers get copies from snapshot()
and window(), and can only change a record's tag through apply_tag().
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from itertools import islice

NO_TAG = "  "


@dataclass
class MessageRecord:
    """One rendered line in the message log.

    ``tag`` and ``body`` are Rich markup. ``nick`` is empty for system lines
    that can't be attributed to a chat participant.
    """

    timestamp: datetime
    tag: str
    body: str
    nick: str = ""


class LogChange(Enum):
    APPENDED = "appended"
    RETAGGED = "retagged"
    CLEARED = "cleared"


Listener = Callable[[LogChange], None]


class MessageLog:
    """FIFO ring buffer of MessageRecords capped at ``maxlines``.

    Listeners are called outside the lock after every append, after a retag
    that changed at least one record, and after clear().
    """

    def __init__(self, maxlines: int) -> None:
        if maxlines < 1:
            raise ValueError(f"maxlines must be positive, got {maxlines}")
        self.maxlines = maxlines
        self.records: deque[MessageRecord] = deque(maxlen=maxlines)
        self.lock = threading.Lock()
        self.listeners: list[Listener] = []

    def __len__(self) -> int:
        with self.lock:
            return len(self.records)

    def subscribe(self, listener: Listener) -> None:
        self.listeners.append(listener)

    def notify(self, change: LogChange) -> None:
        for listener in list(self.listeners):
            listener(change)

    def append(self, record: MessageRecord) -> None:
        """Append a copy of *record*, evicting the oldest once over capacity."""
        with self.lock:
            self.records.append(replace(record))
        self.notify(LogChange.APPENDED)

    def snapshot(self) -> list[MessageRecord]:
        """Return copies of all records, oldest first."""
        with self.lock:
            return [replace(r) for r in self.records]

    def window(self, start: int, end: int) -> list[MessageRecord]:
        """Return copies of records[start:end]."""
        with self.lock:
            return [replace(r) for r in islice(self.records, max(0, start), max(0, end))]

    def apply_tag(self, nick: str, tag: str) -> int:
        """Set ``tag`` on every record whose nick matches *nick* case-insensitively.

        Returns the number of records changed.
        """
        if not nick:
            return 0
        target = nick.lower()
        changed = 0
        with self.lock:
            for record in self.records:
                if record.nick and record.nick.lower() == target and record.tag != tag:
                    record.tag = tag
                    changed += 1
        if changed:
            self.notify(LogChange.RETAGGED)
        return changed

    def clear(self) -> None:
        with self.lock:
            self.records.clear()
        self.notify(LogChange.CLEARED)
