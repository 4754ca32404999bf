"""ChatClient wires the session engine together.

It owns the message log, scroll state, roster, input history and command
router, and exposes a display-agnostic surface for the TUI: submit a line,
complete a word, scroll a view, and fetch the lines currently on screen.
The TUI registers a redraw callback; the client calls it with the name of
the view that needs repainting.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from rich.markup import escape

from chatterm.colors import TAG_COLORS, highest_flair
from chatterm.commands import CommandContext, CommandRouter
from chatterm.config import ConfigStore
from chatterm.errors import ChatError
from chatterm.events import ChatEvent, Join, Names, Quit
from chatterm.history import InputHistory
from chatterm.message_log import LogChange, MessageLog
from chatterm.render import MessageRenderer, format_record
from chatterm.roster import UserRoster
from chatterm.scroll import ScrollCursor
from chatterm.session import ChatSession
from chatterm.suggest import SuggestionEngine
from chatterm.supervisor import ReconnectSupervisor, SupervisorState

logger = logging.getLogger(__name__)

MESSAGES = "messages"
USERS = "users"
HELP = "help"
DEBUG = "debug"
STATUS = "status"

# view name -> whether it follows new content
VIEWS = {MESSAGES: True, USERS: False, HELP: False, DEBUG: True}

KEY_HELP = [
    "Enter      send message",
    "Tab        complete nick, emote or command",
    "Up/Down    input history",
    "PgUp/PgDn  scroll messages",
    "Esc        jump to newest messages",
    "F1         toggle this help",
    "F2         toggle user list",
    "F12        toggle debug log",
    "Ctrl+C     quit",
    "//text     send text starting with /",
]


class ChatClient:
    """Session engine facade used by the TUI."""

    def __init__(
        self,
        store: ConfigStore,
        session: ChatSession,
        supervisor_options: dict[str, Any] | None = None,
    ) -> None:
        config = store.read()
        self.store = store
        self.log = MessageLog(config.maxlines)
        self.scroll = ScrollCursor()
        for view, growing in VIEWS.items():
            self.scroll.register(view, growing=growing)
        self.roster = UserRoster()
        self.history = InputHistory()
        self.renderer = MessageRenderer(store)
        self.emotes: list[str] = []
        self.supervisor = ReconnectSupervisor(
            session,
            on_event=self.handle_event,
            on_error=self.show_error,
            on_state=self.connection_changed,
            **(supervisor_options or {}),
        )
        self.router = CommandRouter(
            CommandContext(store=store, log=self.log, send=self.supervisor.send, tag_colors=TAG_COLORS)
        )
        self.suggestions = SuggestionEngine(self.roster.nicks, lambda: self.emotes, self.router.names)
        self.redraw: Callable[[str], None] = lambda view: None
        self.log.subscribe(self.log_changed)
        self.scroll.content_changed(HELP, len(self.help_lines()))

    def set_redraw(self, callback: Callable[[str], None]) -> None:
        self.redraw = callback

    # -- inbound -----------------------------------------------------------

    def handle_event(self, event: ChatEvent) -> None:
        if isinstance(event, Names):
            self.roster.replace(event.users)
            self.roster_changed()
        elif isinstance(event, Join):
            if self.roster.add(event.user):
                self.roster_changed()
        elif isinstance(event, Quit):
            if self.roster.remove(event.user.nick):
                self.roster_changed()

        record = self.renderer.render(event)
        if record is not None:
            self.log.append(record)

    def log_changed(self, change: LogChange) -> None:
        follow = self.scroll.content_changed(MESSAGES, len(self.log))
        # Retags and clears repaint even while scrolled; the position is unchanged.
        if follow or change is not LogChange.APPENDED:
            self.redraw(MESSAGES)

    def roster_changed(self) -> None:
        self.scroll.content_changed(USERS, len(self.roster))
        self.redraw(USERS)

    def connection_changed(self, state: SupervisorState) -> None:
        self.redraw(STATUS)

    def show_system(self, text: str) -> None:
        self.log.append(self.renderer.system(text))

    def show_error(self, text: str) -> None:
        self.log.append(self.renderer.error(text))

    # -- input -------------------------------------------------------------

    async def submit(self, line: str) -> None:
        """Handle a line from the input box. Errors are shown inline."""
        line = line.strip()
        if not line:
            return
        self.history.record(line)
        self.suggestions.reset()
        try:
            confirmation = await self.router.handle_input(line)
        except ChatError as exc:
            logger.info("Command failed: %s", exc)
            self.show_error(str(exc))
        else:
            if confirmation:
                self.show_system(confirmation)
        finally:
            self.redraw(STATUS)

    def complete(self, buffer: str, cursor: int) -> tuple[str, int]:
        return self.suggestions.complete(buffer, cursor)

    def reset_completion(self) -> None:
        self.suggestions.reset()

    def history_older(self) -> str | None:
        return self.history.older()

    def history_newer(self) -> str | None:
        return self.history.newer()

    # -- views -------------------------------------------------------------

    def resize(self, view: str, height: int) -> None:
        self.scroll.resize(view, height)
        self.redraw(view)

    def scroll_view(self, view: str, delta: int) -> None:
        if self.scroll.scroll(view, delta):
            self.redraw(view)
            self.redraw(STATUS)

    def follow(self, view: str) -> None:
        self.scroll.follow(view)
        self.redraw(view)
        self.redraw(STATUS)

    def message_lines(self) -> list[str]:
        """Markup for the message lines currently on screen."""
        start, end = self.scroll.visible_range(MESSAGES)
        timeformat = self.store.read().timeformat
        return [format_record(r, timeformat) for r in self.log.window(start, end)]

    def user_lines(self) -> list[str]:
        """Markup for the visible slice of the user list, highest flair first."""
        start, end = self.scroll.visible_range(USERS)
        lines = []
        for user in self.roster.sorted_users()[start:end]:
            _, flair = highest_flair(user.features)
            if flair is not None and flair.color:
                lines.append(f"[{flair.color}]{escape(user.nick)}[/]")
            else:
                lines.append(escape(user.nick))
        return lines

    def help_lines(self) -> list[str]:
        """Plain-text help: key bindings, then commands."""
        return [*KEY_HELP, "", *self.router.help_lines()]

    def status_text(self) -> str:
        parts = [self.supervisor.state.value]
        if self.supervisor.state is SupervisorState.BACKOFF and self.supervisor.next_delay is not None:
            parts[0] += f" (retry in {self.supervisor.next_delay:g}s)"
        parts.append(f"{len(self.roster)} users")
        if not self.scroll.is_following(MESSAGES):
            parts.append("scrolled (Esc to follow)")
        if self.store.dirty:
            parts.append("config not saved")
        return " | ".join(parts)
