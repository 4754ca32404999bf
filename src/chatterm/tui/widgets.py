"""Widgets for the chat screen.

LineView — Static showing the visible window of one scrollable view.
MessageView / UserList / HelpPanel / DebugPanel — the four views.
StatusBar — connection, scroll and config-save state.
ChatInput — single-line input with history and completion keys.
DebugLogHandler — logging handler that feeds DebugPanel.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import ClassVar

from rich.text import Text
from textual import events
from textual.binding import Binding, BindingType
from textual.widgets import Input, Static

from chatterm.client import DEBUG, HELP, MESSAGES, USERS, ChatClient

DEBUG_LINES = 500


def join_lines(lines: list[str], markup: bool = True) -> Text:
    """Combine lines into one Text, parsing Rich markup when *markup* is set."""
    texts = [Text.from_markup(line) if markup else Text(line) for line in lines]
    return Text("\n").join(texts)


class LineView(Static):
    """Base for views whose scroll position lives in the client's ScrollCursor."""

    view: ClassVar[str] = ""
    markup: ClassVar[bool] = True

    def __init__(self, client: ChatClient, **kwargs) -> None:
        super().__init__("", **kwargs)
        self.client = client

    def lines(self) -> list[str]:
        raise NotImplementedError

    def scroll_step(self) -> int:
        return self.client.store.read().scrolling_speed

    def refresh_lines(self) -> None:
        self.update(join_lines(self.lines(), markup=self.markup))

    def on_resize(self, _: events.Resize) -> None:
        self.client.resize(self.view, self.content_size.height)

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.client.scroll_view(self.view, -self.scroll_step())

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.client.scroll_view(self.view, self.scroll_step())


class MessageView(LineView):
    DEFAULT_CSS = """
    MessageView {
        height: 1fr;
        width: 1fr;
        padding: 0 1;
        overflow: hidden;
    }
    """

    view = MESSAGES

    def lines(self) -> list[str]:
        return self.client.message_lines()


class UserList(LineView):
    """Online users, highest flair first. Toggled with F2."""

    DEFAULT_CSS = """
    UserList {
        width: 24;
        height: 1fr;
        border-left: solid $primary;
        padding: 0 1;
        overflow: hidden;
    }
    """

    view = USERS

    def refresh_lines(self) -> None:
        super().refresh_lines()
        self.border_title = f"{len(self.client.roster)} users"

    def lines(self) -> list[str]:
        return self.client.user_lines()


class HelpPanel(LineView):
    DEFAULT_CSS = """
    HelpPanel {
        width: 72;
        height: 1fr;
        border-left: solid $accent;
        padding: 0 1;
        overflow: hidden;
    }
    """

    view = HELP
    markup = False

    def lines(self) -> list[str]:
        start, end = self.client.scroll.visible_range(HELP)
        return self.client.help_lines()[start:end]


class DebugPanel(LineView):
    """Tail of the client's own log output. Toggled with F12."""

    DEFAULT_CSS = """
    DebugPanel {
        height: 10;
        border-top: solid $warning;
        padding: 0 1;
        overflow: hidden;
    }
    """

    view = DEBUG
    markup = False

    def __init__(self, client: ChatClient, **kwargs) -> None:
        super().__init__(client, **kwargs)
        self.buffer: deque[str] = deque(maxlen=DEBUG_LINES)

    def append_line(self, line: str) -> None:
        self.buffer.append(line)
        if self.client.scroll.content_changed(DEBUG, len(self.buffer)):
            self.refresh_lines()

    def lines(self) -> list[str]:
        start, end = self.client.scroll.visible_range(DEBUG)
        return list(self.buffer)[start:end]


class StatusBar(Static):
    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    def __init__(self, client: ChatClient, **kwargs) -> None:
        super().__init__("", markup=False, **kwargs)
        self.client = client

    def refresh_status(self) -> None:
        self.update(f"{self.client.status_text()} · F1: help")


class ChatInput(Input):
    """Message input. Up/Down walk history, Tab completes the last word."""

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("tab", "complete", "Complete", show=False),
        Binding("up", "history_older", "Older input", show=False),
        Binding("down", "history_newer", "Newer input", show=False),
    ]

    def __init__(self, client: ChatClient, **kwargs) -> None:
        super().__init__(**kwargs)
        self.client = client

    async def _on_key(self, event: events.Key) -> None:
        # Any non-tab key resets completion state
        if event.key != "tab":
            self.client.reset_completion()
        await super()._on_key(event)

    def set_text(self, text: str) -> None:
        self.value = text
        self.cursor_position = len(text)

    def action_complete(self) -> None:
        value, cursor = self.client.complete(self.value, self.cursor_position)
        self.value = value
        self.cursor_position = cursor

    def action_history_older(self) -> None:
        line = self.client.history_older()
        if line is not None:
            self.set_text(line)

    def action_history_newer(self) -> None:
        line = self.client.history_newer()
        if line is not None:
            self.set_text(line)


class DebugLogHandler(logging.Handler):
    """Forwards formatted records to *sink*, which may be called from any thread."""

    def __init__(self, sink: Callable[[str], None], level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.sink = sink
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.sink(line)
