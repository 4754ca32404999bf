"""Typed events delivered by the chat session.

Each inbound protocol frame becomes one of these dataclasses. The reconnect
supervisor funnels them through a single queue to the client, which turns
them into message log records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class User:
    """A chat participant."""

    nick: str
    features: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Session events
# ---------------------------------------------------------------------------


@dataclass
class Names:
    """Full user list, sent once after connecting."""

    users: list[User]
    connection_count: int = 0
    timestamp: datetime | None = None


@dataclass
class ChatMessage:
    sender: User
    text: str
    timestamp: datetime


@dataclass
class PrivateMessage:
    """A whisper addressed to us."""

    sender: User
    text: str
    timestamp: datetime


@dataclass
class Join:
    user: User
    timestamp: datetime


@dataclass
class Quit:
    user: User
    timestamp: datetime


@dataclass
class Mute:
    sender: User
    target: User
    timestamp: datetime
    duration: int | None = None


@dataclass
class Unmute:
    sender: User
    target: User
    timestamp: datetime


@dataclass
class Ban:
    sender: User
    target: User
    timestamp: datetime
    duration: int | None = None
    permanent: bool = False


@dataclass
class Unban:
    sender: User
    target: User
    timestamp: datetime


@dataclass
class SubOnly:
    sender: User
    active: bool
    timestamp: datetime


@dataclass
class Broadcast:
    text: str
    timestamp: datetime


@dataclass
class ServerError:
    """An ``ERR`` frame: the server rejected something we sent."""

    description: str
    timestamp: datetime


@dataclass
class Ping:
    """Keepalive. Resets the idle-read deadline, renders nothing."""

    timestamp: datetime
    payload: dict = field(default_factory=dict)


ChatEvent = (
    Names
    | ChatMessage
    | PrivateMessage
    | Join
    | Quit
    | Mute
    | Unmute
    | Ban
    | Unban
    | SubOnly
    | Broadcast
    | ServerError
    | Ping
)
