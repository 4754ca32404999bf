"""ChatApp — main Textual application for chatterm."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import ClassVar

from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.containers import Horizontal
from textual.message import Message
from textual.widgets import Input

from chatterm.client import DEBUG, HELP, MESSAGES, STATUS, USERS, ChatClient
from chatterm.emotes import fetch_emotes

from .widgets import ChatInput, DebugLogHandler, DebugPanel, HelpPanel, LineView, MessageView, StatusBar, UserList

logger = logging.getLogger(__name__)

EmoteLoader = Callable[[], Awaitable[list[str]]]


class ChatApp(App):
    """Chat TUI: message log, optional side panels, status bar and input."""

    TITLE = "chatterm"

    CSS = """
    Screen {
        layout: vertical;
    }
    #main {
        height: 1fr;
    }
    """

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("ctrl+c", "quit", "Quit", priority=True),
        ("f1", "toggle_panel('help')", "Help"),
        ("f2", "toggle_panel('users')", "Users"),
        ("f12", "toggle_panel('debug')", "Debug"),
        ("pageup", "page(-1)", "Page up"),
        ("pagedown", "page(1)", "Page down"),
        ("escape", "scroll_bottom", "Jump to bottom"),
    ]

    class Redraw(Message):
        """A view's content or scroll position changed."""

        def __init__(self, view: str) -> None:
            super().__init__()
            self.view = view

    class DebugLine(Message):
        def __init__(self, line: str) -> None:
            super().__init__()
            self.line = line

    def __init__(
        self, client: ChatClient, load_emotes: EmoteLoader | None = fetch_emotes, connect: bool = True
    ) -> None:
        super().__init__()
        self.client = client
        self.load_emotes = load_emotes
        self.connect = connect
        self.debug_handler = DebugLogHandler(self.request_debug_line)

    def compose(self) -> ComposeResult:
        with Horizontal(id="main"):
            yield MessageView(self.client, id=MESSAGES)
            yield UserList(self.client, id=USERS)
            yield HelpPanel(self.client, id=HELP)
        yield DebugPanel(self.client, id=DEBUG)
        yield StatusBar(self.client, id=STATUS)
        yield ChatInput(self.client, placeholder="Type a message, /command, or F1 for help", id="input")

    def on_mount(self) -> None:
        for view in (USERS, HELP, DEBUG):
            self.query_one(f"#{view}").display = False

        package_logger = logging.getLogger("chatterm")
        package_logger.addHandler(self.debug_handler)
        package_logger.propagate = False

        self.client.set_redraw(self.request_redraw)
        self.refresh_view(MESSAGES)
        self.refresh_view(STATUS)

        if self.connect:
            self.run_worker(self.client.supervisor.run(), name="supervisor", exclusive=True)
        if self.load_emotes is not None:
            self.run_worker(self.fetch_emote_list(self.load_emotes), name="emotes")

        self.query_one("#input", ChatInput).focus()

    def on_unmount(self) -> None:
        logging.getLogger("chatterm").removeHandler(self.debug_handler)

    async def fetch_emote_list(self, load: EmoteLoader) -> None:
        self.client.emotes = await load()

    # -- redraw marshaling -------------------------------------------------

    def request_redraw(self, view: str) -> None:
        """Queue a repaint of *view*; safe to call from any thread."""
        self.post_message(self.Redraw(view))

    def request_debug_line(self, line: str) -> None:
        self.post_message(self.DebugLine(line))

    def refresh_view(self, view: str) -> None:
        if view == STATUS:
            self.query_one(f"#{STATUS}", StatusBar).refresh_status()
            return
        widget = self.query_one(f"#{view}", LineView)
        if widget.display:
            widget.refresh_lines()

    def on_chat_app_redraw(self, message: ChatApp.Redraw) -> None:
        self.refresh_view(message.view)

    def on_chat_app_debug_line(self, message: ChatApp.DebugLine) -> None:
        panel = self.query_one(f"#{DEBUG}", DebugPanel)
        panel.append_line(message.line)

    # -- input -------------------------------------------------------------

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        line = event.value
        event.input.value = ""
        await self.client.submit(line)

    # -- actions -----------------------------------------------------------

    def action_toggle_panel(self, view: str) -> None:
        widget = self.query_one(f"#{view}", LineView)
        widget.display = not widget.display
        if widget.display:
            widget.refresh_lines()

    def action_page(self, direction: int) -> None:
        speed = self.client.store.read().page_up_down_speed
        self.client.scroll_view(MESSAGES, direction * speed)

    def action_scroll_bottom(self) -> None:
        """Jump to the newest message and re-engage auto-follow."""
        self.client.follow(MESSAGES)
