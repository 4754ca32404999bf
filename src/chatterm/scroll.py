"""Per-view scroll position state machine.

Each view is either FOLLOWING (pinned to the newest content) or SCROLLED
(the user is reading history at a stored origin). Log mutation never moves a
SCROLLED view; only the user's own scrolling does.

Growing views (the message log) return to FOLLOWING when scrolled past the
last line. Non-growing views (help, user list) stop at their last page.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum


class ScrollMode(Enum):
    FOLLOWING = "following"
    SCROLLED = "scrolled"


@dataclass
class ScrollState:
    """Scroll position of one view.

    When ``autofollow`` is set, ``origin`` is ignored and the view is pinned
    to the newest content at render time.
    """

    growing: bool = True
    origin: int = 0
    autofollow: bool = True
    total_lines: int = 0
    viewport_height: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def mode(self) -> ScrollMode:
        return ScrollMode.FOLLOWING if self.autofollow else ScrollMode.SCROLLED

    def pinned_origin(self) -> int:
        return max(0, self.total_lines - self.viewport_height)

    def current_origin(self) -> int:
        if self.autofollow:
            return self.pinned_origin()
        return min(self.origin, self.pinned_origin())


class ScrollCursor:
    """Owns the ScrollState of every registered view."""

    def __init__(self) -> None:
        self.states: dict[str, ScrollState] = {}

    def register(self, view: str, growing: bool = True, viewport_height: int = 0) -> None:
        # Static views start at the top; only growing views follow new content.
        self.states[view] = ScrollState(growing=growing, autofollow=growing, viewport_height=viewport_height)

    def state(self, view: str) -> ScrollState:
        try:
            return self.states[view]
        except KeyError:
            raise KeyError(f"Unknown view: {view}") from None

    def mode(self, view: str) -> ScrollMode:
        return self.state(view).mode

    def is_following(self, view: str) -> bool:
        return self.state(view).mode is ScrollMode.FOLLOWING

    def resize(self, view: str, viewport_height: int) -> None:
        """New viewport geometry: reset the view to its initial position."""
        st = self.state(view)
        with st.lock:
            st.viewport_height = max(0, viewport_height)
            st.origin = 0
            st.autofollow = st.growing

    def content_changed(self, view: str, total_lines: int) -> bool:
        """Record a new line count after an append. Returns True if the view should redraw.

        A FOLLOWING view redraws on every change; a SCROLLED view is left
        alone so the user's reading position isn't disturbed.
        """
        st = self.state(view)
        with st.lock:
            st.total_lines = max(0, total_lines)
            return st.autofollow or not st.growing

    def scroll(self, view: str, delta: int) -> bool:
        """Move the view by *delta* lines. Returns True if a redraw is needed."""
        st = self.state(view)
        with st.lock:
            if delta == 0:
                return False
            current = st.current_origin()

            if not st.growing:
                upper = max(0, st.total_lines - st.viewport_height)
                target = max(0, min(current + delta, upper))
                if target == current:
                    return False
                st.origin = target
                return True

            upper = max(0, st.total_lines - st.viewport_height - 1)
            if delta > 0 and current + delta > upper:
                # Caught up with live content.
                st.autofollow = True
                st.origin = st.pinned_origin()
                return True

            target = max(0, min(current + delta, upper))
            if st.autofollow and target == current:
                # Content fits the viewport; nothing to scroll back to.
                return False
            changed = st.autofollow or target != st.origin
            st.autofollow = False
            st.origin = target
            return changed

    def follow(self, view: str) -> None:
        """Jump to the newest content and re-engage autofollow."""
        st = self.state(view)
        with st.lock:
            st.autofollow = True
            st.origin = st.pinned_origin()

    def visible_range(self, view: str) -> tuple[int, int]:
        """Return the [start, end) slice of lines currently on screen."""
        st = self.state(view)
        with st.lock:
            start = st.current_origin()
            if st.viewport_height <= 0:
                return start, st.total_lines
            return start, min(st.total_lines, start + st.viewport_height)
