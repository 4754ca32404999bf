"""Slash-command parsing and dispatch.

Each Command pairs a parser, which turns the raw token list into a typed
argument payload or raises UsageError, with a coroutine that performs the
effect. Parsing always runs to completion before anything is sent or
mutated, so a malformed command never half-applies.

Registry and color table are built once and handed to CommandRouter; the
router itself holds no mutable command state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from chatterm.colors import TAG_COLORS
from chatterm.config import ChatConfig, ConfigStore
from chatterm.errors import CommandError, PersistenceError, UnknownCommandError, UsageError
from chatterm.message_log import MessageLog
from chatterm.render import tag_marker
from chatterm.session import ChatSession

logger = logging.getLogger(__name__)

SIGIL = "/"

# Mute/ban without an explicit duration: the session omits the field and the
# server applies its own default.
SERVER_DEFAULT_DURATION = None

SessionOp = Callable[[ChatSession], Awaitable[None]]
Sender = Callable[[SessionOp], Awaitable[None]]


@dataclass
class CommandContext:
    """Collaborators a command may touch."""

    store: ConfigStore
    log: MessageLog
    send: Sender
    tag_colors: Mapping[str, str] = field(default_factory=lambda: TAG_COLORS)


# ---------------------------------------------------------------------------
# Argument payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NickArgs:
    nick: str


@dataclass(frozen=True)
class TextArgs:
    text: str


@dataclass(frozen=True)
class WhisperArgs:
    nick: str
    text: str


@dataclass(frozen=True)
class ToggleArgs:
    active: bool


@dataclass(frozen=True)
class DurationArgs:
    nick: str
    duration: int | None


@dataclass(frozen=True)
class TagArgs:
    nick: str
    color: str


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_nick(tokens: list[str], usage: str) -> NickArgs:
    if len(tokens) != 2:
        raise UsageError(usage)
    return NickArgs(nick=tokens[1])


def parse_text(tokens: list[str], usage: str) -> TextArgs:
    if len(tokens) < 2:
        raise UsageError(usage)
    return TextArgs(text=" ".join(tokens[1:]))


def parse_whisper(tokens: list[str], usage: str) -> WhisperArgs:
    if len(tokens) < 3:
        raise UsageError(usage)
    return WhisperArgs(nick=tokens[1], text=" ".join(tokens[2:]))


def parse_toggle(tokens: list[str], usage: str) -> ToggleArgs:
    if len(tokens) != 2 or tokens[1].lower() not in ("on", "off"):
        raise UsageError(usage)
    return ToggleArgs(active=tokens[1].lower() == "on")


def parse_duration(raw: str, usage: str) -> int:
    """Parse a duration in whole seconds."""
    try:
        seconds = int(raw)
    except ValueError:
        raise UsageError(usage, f"invalid duration '{raw}'") from None
    if seconds < 0:
        raise UsageError(usage, f"invalid duration '{raw}'")
    return seconds


def parse_nick_duration(tokens: list[str], usage: str) -> DurationArgs:
    if len(tokens) not in (2, 3):
        raise UsageError(usage)
    duration = parse_duration(tokens[2], usage) if len(tokens) == 3 else SERVER_DEFAULT_DURATION
    return DurationArgs(nick=tokens[1], duration=duration)


def parse_tag(tokens: list[str], usage: str) -> TagArgs:
    if len(tokens) != 3:
        raise UsageError(usage)
    return TagArgs(nick=tokens[1], color=tokens[2].lower())


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


async def run_whisper(ctx: CommandContext, args: WhisperArgs) -> str | None:
    await ctx.send(lambda s: s.send_private_message(args.nick, args.text))
    return None


async def run_action(ctx: CommandContext, args: TextArgs) -> str | None:
    await ctx.send(lambda s: s.send_action(args.text))
    return None


async def run_broadcast(ctx: CommandContext, args: TextArgs) -> str | None:
    await ctx.send(lambda s: s.send_broadcast(args.text))
    return None


async def run_sub_only(ctx: CommandContext, args: ToggleArgs) -> str | None:
    await ctx.send(lambda s: s.send_sub_only(args.active))
    return None


async def run_mute(ctx: CommandContext, args: DurationArgs) -> str | None:
    await ctx.send(lambda s: s.send_mute(args.nick, args.duration))
    return None


async def run_unmute(ctx: CommandContext, args: NickArgs) -> str | None:
    await ctx.send(lambda s: s.send_unmute(args.nick))
    return None


async def run_ban(ctx: CommandContext, args: DurationArgs) -> str | None:
    await ctx.send(lambda s: s.send_ban(args.nick, args.duration))
    return None


async def run_permanent_ban(ctx: CommandContext, args: NickArgs) -> str | None:
    await ctx.send(lambda s: s.send_permanent_ban(args.nick))
    return None


async def run_unban(ctx: CommandContext, args: NickArgs) -> str | None:
    await ctx.send(lambda s: s.send_unban(args.nick))
    return None


def add_nick(field_name: str, state: str) -> Callable[[CommandContext, NickArgs], Awaitable[str | None]]:
    """Build an effect that adds a nick to one of the config's nick lists."""

    async def run(ctx: CommandContext, args: NickArgs) -> str | None:
        nick = args.nick.lower()

        def apply(config: ChatConfig) -> None:
            nicks: list[str] = getattr(config, field_name)
            if nick in nicks:
                raise CommandError(f"{args.nick} is already {state}")
            nicks.append(nick)

        ctx.store.mutate(apply)
        return f"{args.nick} is now {state}"

    return run


def remove_nick(field_name: str, state: str) -> Callable[[CommandContext, NickArgs], Awaitable[str | None]]:
    """Build an effect that removes a nick from one of the config's nick lists."""

    async def run(ctx: CommandContext, args: NickArgs) -> str | None:
        nick = args.nick.lower()

        def apply(config: ChatConfig) -> None:
            nicks: list[str] = getattr(config, field_name)
            if nick not in nicks:
                raise CommandError(f"{args.nick} is not {state}")
            nicks.remove(nick)

        ctx.store.mutate(apply)
        return f"{args.nick} is no longer {state}"

    return run


def retag(ctx: CommandContext, nick: str, color: str | None, apply: Callable[[ChatConfig], None]) -> None:
    """Mutate tags, then recolor the nick's existing log lines.

    The recolor also runs when saving fails, since the in-memory tag map has
    already changed.
    """
    marker = tag_marker(ctx.tag_colors[color] if color else None)
    try:
        ctx.store.mutate(apply)
    except PersistenceError:
        ctx.log.apply_tag(nick, marker)
        raise
    ctx.log.apply_tag(nick, marker)


async def run_tag(ctx: CommandContext, args: TagArgs) -> str | None:
    if args.color not in ctx.tag_colors:
        raise CommandError(f"invalid color: {args.color}")
    nick = args.nick.lower()

    def apply(config: ChatConfig) -> None:
        config.tags[nick] = args.color

    retag(ctx, nick, args.color, apply)
    return f"{args.nick} tagged {args.color}"


async def run_untag(ctx: CommandContext, args: NickArgs) -> str | None:
    nick = args.nick.lower()

    def apply(config: ChatConfig) -> None:
        if nick not in config.tags:
            raise CommandError(f"{args.nick} is not tagged")
        del config.tags[nick]

    retag(ctx, nick, None, apply)
    return f"{args.nick} untagged"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Command:
    """One logical command, reachable under every name in ``names``."""

    names: tuple[str, ...]
    usage: str
    parse: Callable[[list[str], str], Any]
    run: Callable[[CommandContext, Any], Awaitable[str | None]]
    description: str = ""
    privileged: bool = False

    async def handle(self, ctx: CommandContext, tokens: list[str]) -> str | None:
        args = self.parse(tokens, self.usage)
        return await self.run(ctx, args)


TAG_USAGE = f"/tag user [{', '.join(TAG_COLORS)}]"

COMMANDS: tuple[Command, ...] = (
    Command(("/w", "/whisper"), "/w user message", parse_whisper, run_whisper, "send a private message"),
    Command(("/me",), "/me action", parse_text, run_action, "send an action"),
    Command(("/broadcast",), "/broadcast message", parse_text, run_broadcast, "broadcast to the channel", True),
    Command(("/subonly",), "/subonly on|off", parse_toggle, run_sub_only, "toggle subscriber-only mode", True),
    Command(("/mute",), "/mute user [duration in seconds]", parse_nick_duration, run_mute, "mute a user", True),
    Command(("/unmute",), "/unmute user", parse_nick, run_unmute, "unmute a user", True),
    Command(("/ban",), "/ban user [duration in seconds]", parse_nick_duration, run_ban, "ban a user", True),
    Command(("/permban",), "/permban user", parse_nick, run_permanent_ban, "ban a user permanently", True),
    Command(("/unban",), "/unban user", parse_nick, run_unban, "lift a ban", True),
    Command(("/highlight",), "/highlight user", parse_nick, add_nick("highlighted", "highlighted"), "highlight a user"),
    Command(
        ("/unhighlight",),
        "/unhighlight user",
        parse_nick,
        remove_nick("highlighted", "highlighted"),
        "stop highlighting",
    ),
    Command(("/tag",), TAG_USAGE, parse_tag, run_tag, "mark a user's lines with a color"),
    Command(("/untag",), "/untag user", parse_nick, run_untag, "remove a user's color mark"),
    Command(("/ignore",), "/ignore user", parse_nick, add_nick("ignores", "ignored"), "hide a user's messages"),
    Command(("/unignore",), "/unignore user", parse_nick, remove_nick("ignores", "ignored"), "show a user's messages"),
    Command(("/stalk",), "/stalk user", parse_nick, add_nick("stalks", "stalked"), "always show a user's joins/quits"),
    Command(("/unstalk",), "/unstalk user", parse_nick, remove_nick("stalks", "stalked"), "stop showing joins/quits"),
)


def build_registry(commands: Iterable[Command]) -> Mapping[str, Command]:
    """Map every alias to its command. Raises ValueError on a duplicate alias."""
    registry: dict[str, Command] = {}
    for command in commands:
        for name in command.names:
            if not name.startswith(SIGIL):
                raise ValueError(f"Command name must start with '{SIGIL}': {name}")
            if name in registry:
                raise ValueError(f"Duplicate command name: {name}")
            registry[name] = command
    return MappingProxyType(registry)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class CommandRouter:
    """Dispatches input lines to commands or sends them as chat messages."""

    def __init__(self, context: CommandContext, commands: Iterable[Command] = COMMANDS) -> None:
        self.context = context
        self.commands = tuple(commands)
        self.registry = build_registry(self.commands)

    def names(self) -> list[str]:
        return list(self.registry)

    async def handle_input(self, line: str) -> str | None:
        """Handle one submitted line. Returns a confirmation to show, if any.

        Raises:
            UnknownCommandError: The leading token isn't a registered command.
            CommandError: The command's arguments or target were rejected.
            ProtocolActionError: Sending to the session failed.
            PersistenceError: The config change could not be saved.
        """
        line = line.strip()
        if not line:
            return None

        if line.startswith(SIGIL * 2):
            literal = line[1:]
            await self.context.send(lambda s: s.send_message(literal))
            return None

        if line.startswith(SIGIL):
            tokens = line.split()
            command = self.registry.get(tokens[0])
            if command is None:
                raise UnknownCommandError(tokens[0])
            logger.debug("Dispatching %s", tokens[0])
            return await command.handle(self.context, tokens)

        await self.context.send(lambda s: s.send_message(line))
        return None

    def help_lines(self) -> list[str]:
        width = max((len(c.usage) for c in self.commands), default=0)
        lines = []
        for command in self.commands:
            line = f"{command.usage:<{width}}  {command.description}"
            if len(command.names) > 1:
                line += f" (also {', '.join(command.names[1:])})"
            if command.privileged:
                line += " [mod]"
            lines.append(line)
        return lines
