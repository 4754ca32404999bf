"""Turn session events into message log records.

All user-supplied text is escaped before it is wrapped in Rich markup, so a
nick or message containing ``[`` can't inject styles.
"""

from __future__ import annotations

import logging
from datetime import datetime

from rich.markup import escape

from chatterm.colors import (
    BROADCAST_COLOR,
    ERROR_COLOR,
    FLAIRS,
    GREENTEXT_COLOR,
    HIGHLIGHT_NICK_COLOR,
    SYSTEM_COLOR,
    WHISPER_COLOR,
    resolve_tag_color,
)
from chatterm.config import ChatConfig, ConfigStore
from chatterm.events import (
    Ban,
    Broadcast,
    ChatEvent,
    ChatMessage,
    Join,
    Mute,
    Names,
    PrivateMessage,
    Quit,
    ServerError,
    SubOnly,
    Unban,
    Unmute,
    User,
)
from chatterm.message_log import NO_TAG, MessageRecord

logger = logging.getLogger(__name__)


def tag_marker(color: str | None) -> str:
    """Two-cell colored block shown before a tagged nick's lines."""
    if not color:
        return NO_TAG
    return f"[on {color}]{NO_TAG}[/]"


def format_record(record: MessageRecord, timeformat: str) -> str:
    """Full markup line: ``[time]<tag><body>``."""
    stamp = escape(f"[{record.timestamp.strftime(timeformat)}]")
    return f"{stamp}{record.tag}{record.body}"


def now() -> datetime:
    return datetime.now().astimezone()


class MessageRenderer:
    """Renders events against the current config (tags, highlights, ignores)."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    # -- public helpers ----------------------------------------------------

    def system(self, text: str, color: str = SYSTEM_COLOR) -> MessageRecord:
        return MessageRecord(timestamp=now(), tag=NO_TAG, body=f"[{color}]{escape(text)}[/]")

    def error(self, text: str) -> MessageRecord:
        return MessageRecord(timestamp=now(), tag=NO_TAG, body=f"[bold {ERROR_COLOR}]{escape(text)}[/]")

    def render(self, event: ChatEvent) -> MessageRecord | None:
        """Return the record for *event*, or None if nothing should be shown."""
        with self.store.reading() as config:
            if isinstance(event, ChatMessage):
                return self.chat_message(config, event)
            if isinstance(event, PrivateMessage):
                return self.private_message(config, event)
            if isinstance(event, Join | Quit):
                return self.presence(config, event)
            if isinstance(event, Broadcast):
                return MessageRecord(
                    timestamp=event.timestamp,
                    tag=NO_TAG,
                    body=f"[bold {BROADCAST_COLOR}]{escape(event.text)}[/]",
                )
            if isinstance(event, ServerError):
                return MessageRecord(
                    timestamp=event.timestamp,
                    tag=NO_TAG,
                    body=f"[bold {ERROR_COLOR}]Error: {escape(event.description)}[/]",
                )
            if isinstance(event, Names):
                users = len(event.users)
                text = f"Connected. {users} user{'s' if users != 1 else ''} online"
                return MessageRecord(timestamp=event.timestamp or now(), tag=NO_TAG, body=f"[{SYSTEM_COLOR}]{text}[/]")
            if isinstance(event, Mute | Unmute | Ban | Unban | SubOnly):
                return self.moderation(event)
        return None

    # -- per-event rendering -----------------------------------------------

    def decorated_nick(self, config: ChatConfig, user: User) -> str:
        """Nick with flair badges, colored by flair or highlight."""
        features = {f.lower() for f in user.features}
        label = user.nick
        color = ""
        for flair in FLAIRS:
            if flair.name in features:
                label = f"[{flair.badge}]{label}"
                if flair.color:
                    color = flair.color
        if config.is_highlighted(user.nick):
            label = f"[*]{label}"
            color = HIGHLIGHT_NICK_COLOR
        label = escape(label)
        if color:
            return f"[bold {color}]{label}[/]"
        return f"[bold]{label}[/]"

    def message_text(self, config: ChatConfig, text: str) -> str:
        escaped = escape(text)
        if config.username and config.username.lower() in text.lower():
            return f"[{config.highlight_fg_color} on {config.highlight_bg_color}]{escaped}[/]"
        if text.startswith(">"):
            return f"[{GREENTEXT_COLOR}]{escaped}[/]"
        return escaped

    def tag_for(self, config: ChatConfig, nick: str) -> str:
        color = config.tag_for(nick)
        return tag_marker(resolve_tag_color(color) if color else None)

    def chat_message(self, config: ChatConfig, event: ChatMessage) -> MessageRecord | None:
        nick = event.sender.nick
        if config.is_ignored(nick):
            return None
        body = f"{self.decorated_nick(config, event.sender)}: {self.message_text(config, event.text)}"
        return MessageRecord(timestamp=event.timestamp, tag=self.tag_for(config, nick), body=body, nick=nick)

    def private_message(self, config: ChatConfig, event: PrivateMessage) -> MessageRecord | None:
        nick = event.sender.nick
        if config.is_ignored(nick):
            return None
        body = f"[bold {WHISPER_COLOR}]{escape(f'[Whisper]{nick}')}:[/] [{WHISPER_COLOR}]{escape(event.text)}[/]"
        return MessageRecord(timestamp=event.timestamp, tag=self.tag_for(config, nick), body=body, nick=nick)

    def presence(self, config: ChatConfig, event: Join | Quit) -> MessageRecord | None:
        nick = event.user.nick
        if not (config.showjoinleave or config.is_stalked(nick)):
            return None
        verb = "JOIN" if isinstance(event, Join) else "QUIT"
        body = f"[{SYSTEM_COLOR}]{verb}: {escape(nick)}[/]"
        return MessageRecord(timestamp=event.timestamp, tag=self.tag_for(config, nick), body=body, nick=nick)

    def moderation(self, event: Mute | Unmute | Ban | Unban | SubOnly) -> MessageRecord:
        actor = event.sender.nick or "server"
        if isinstance(event, SubOnly):
            text = f"SUBONLY: {actor} turned subscriber-only mode {'on' if event.active else 'off'}"
        elif isinstance(event, Mute):
            text = f"MUTE: {event.target.nick} muted by {actor}"
        elif isinstance(event, Unmute):
            text = f"UNMUTE: {event.target.nick} unmuted by {actor}"
        elif isinstance(event, Ban):
            text = f"BAN: {event.target.nick} banned by {actor}"
        else:
            text = f"UNBAN: {event.target.nick} unbanned by {actor}"
        return MessageRecord(timestamp=event.timestamp, tag=NO_TAG, body=f"[{SYSTEM_COLOR}]{escape(text)}[/]")
