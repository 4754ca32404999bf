"""Error taxonomy for the chat client.

Every runtime error raised while connected is a ``ChatError``. Command
handlers raise them, the client renders them inline, and only the
reconnect supervisor ever sees ``ChatConnectionError``.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for recoverable chat client errors."""


class CommandError(ChatError):
    """A command was well-formed but its target was rejected (e.g. invalid color)."""


class UsageError(CommandError):
    """Malformed command arguments. Carries the canonical usage string."""

    def __init__(self, usage: str, detail: str | None = None) -> None:
        self.usage = usage
        self.detail = detail
        message = f"{detail}. Usage: {usage}" if detail else f"Usage: {usage}"
        super().__init__(message)


class UnknownCommandError(ChatError):
    """The leading token of a command line is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown command: {name}")


class ProtocolActionError(ChatError):
    """An outbound send to the chat session failed."""


class PersistenceError(ChatError):
    """Saving the configuration failed after the in-memory change was applied."""


class ChatConnectionError(ChatError):
    """Transport read/write failure or idle-deadline expiry."""
