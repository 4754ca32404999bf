"""Chat session interface and the default websocket implementation.

``ChatSession`` is the protocol the rest of the client talks to: open/close,
a blocking ``receive()`` that yields typed events, and one coroutine per
outbound action. Every method raises ChatConnectionError on transport
failure; the reconnect supervisor is the only caller that handles it.

``WebSocketSession`` speaks the ``VERB {json}`` text-frame protocol over an
aiohttp websocket.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from chatterm.errors import ChatConnectionError
from chatterm.events import (
    Ban,
    Broadcast,
    ChatEvent,
    ChatMessage,
    Join,
    Mute,
    Names,
    Ping,
    PrivateMessage,
    Quit,
    ServerError,
    SubOnly,
    Unban,
    Unmute,
    User,
)

logger = logging.getLogger(__name__)

FRAME_RE = re.compile(r"^(\w+)\s(.+)$", re.DOTALL)

NANOSECONDS = 1_000_000_000


class ChatSession(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def receive(self) -> ChatEvent: ...

    async def send_message(self, text: str) -> None: ...

    async def send_private_message(self, nick: str, text: str) -> None: ...

    async def send_action(self, text: str) -> None: ...

    async def send_broadcast(self, text: str) -> None: ...

    async def send_sub_only(self, active: bool) -> None: ...

    async def send_mute(self, nick: str, duration: int | None) -> None: ...

    async def send_unmute(self, nick: str) -> None: ...

    async def send_ban(self, nick: str, duration: int | None) -> None: ...

    async def send_permanent_ban(self, nick: str) -> None: ...

    async def send_unban(self, nick: str) -> None: ...


# ---------------------------------------------------------------------------
# Frame parsing
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime:
    """Convert a millisecond epoch to a local-time datetime (now if missing)."""
    if isinstance(value, int | float) and not isinstance(value, bool) and value > 0:
        return datetime.fromtimestamp(value / 1000).astimezone()
    return datetime.now().astimezone()


def parse_user(payload: dict) -> User:
    features = payload.get("features") or []
    return User(nick=str(payload.get("nick", "")), features=tuple(str(f) for f in features))


def parse_frame(raw: str) -> ChatEvent | None:
    """Parse one ``VERB {json}`` frame. Returns None for frames we don't render."""
    match = FRAME_RE.match(raw.strip())
    if not match:
        logger.debug("Ignoring malformed frame: %r", raw[:200])
        return None

    verb, body = match.group(1), match.group(2)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        logger.warning("Ignoring %s frame with invalid JSON", verb)
        return None

    if verb == "ERR":
        description = payload if isinstance(payload, str) else json.dumps(payload)
        return ServerError(description=description, timestamp=parse_timestamp(None))

    if not isinstance(payload, dict):
        logger.warning("Ignoring %s frame with non-object payload", verb)
        return None

    ts = parse_timestamp(payload.get("timestamp"))
    data = payload.get("data", "")

    if verb == "NAMES":
        users = [parse_user(u) for u in payload.get("users") or [] if isinstance(u, dict)]
        return Names(users=users, connection_count=int(payload.get("connectioncount") or 0), timestamp=ts)
    if verb == "MSG":
        return ChatMessage(sender=parse_user(payload), text=str(data), timestamp=ts)
    if verb == "PRIVMSG":
        return PrivateMessage(sender=parse_user(payload), text=str(data), timestamp=ts)
    if verb == "JOIN":
        return Join(user=parse_user(payload), timestamp=ts)
    if verb == "QUIT":
        return Quit(user=parse_user(payload), timestamp=ts)
    if verb in ("MUTE", "UNMUTE", "BAN", "UNBAN"):
        sender = parse_user(payload)
        target = User(nick=str(data))
        if verb == "MUTE":
            return Mute(sender=sender, target=target, timestamp=ts)
        if verb == "UNMUTE":
            return Unmute(sender=sender, target=target, timestamp=ts)
        if verb == "BAN":
            return Ban(sender=sender, target=target, timestamp=ts)
        return Unban(sender=sender, target=target, timestamp=ts)
    if verb == "SUBONLY":
        return SubOnly(sender=parse_user(payload), active=data == "on", timestamp=ts)
    if verb == "BROADCAST":
        return Broadcast(text=str(data), timestamp=ts)
    if verb == "PING":
        return Ping(timestamp=ts, payload=payload)

    logger.debug("Ignoring unknown frame verb %s", verb)
    return None


def encode_frame(verb: str, payload: dict[str, Any]) -> str:
    return f"{verb} {json.dumps(payload)}"


# ---------------------------------------------------------------------------
# WebSocketSession
# ---------------------------------------------------------------------------


class WebSocketSession:
    """ChatSession over an aiohttp websocket."""

    def __init__(self, url: str, auth_token: str = "") -> None:
        self.url = url
        self.auth_token = auth_token
        self.http: aiohttp.ClientSession | None = None
        self.ws: aiohttp.ClientWebSocketResponse | None = None

    async def open(self) -> None:
        await self.close()
        headers = {"Cookie": f"authtoken={self.auth_token}"} if self.auth_token else {}
        self.http = aiohttp.ClientSession()
        try:
            self.ws = await self.http.ws_connect(self.url, headers=headers)
        except (aiohttp.ClientError, OSError) as exc:
            await self.close()
            raise ChatConnectionError(f"could not connect to {self.url}: {exc}") from exc
        logger.info("Connected to %s", self.url)

    async def close(self) -> None:
        ws, http = self.ws, self.http
        self.ws = None
        self.http = None
        if ws is not None and not ws.closed:
            await ws.close()
        if http is not None and not http.closed:
            await http.close()

    async def receive(self) -> ChatEvent:
        while True:
            if self.ws is None:
                raise ChatConnectionError("not connected")
            try:
                msg = await self.ws.receive()
            except (aiohttp.ClientError, OSError) as exc:
                raise ChatConnectionError(f"read failed: {exc}") from exc

            if msg.type == aiohttp.WSMsgType.TEXT:
                event = parse_frame(msg.data)
                if event is None:
                    continue
                if isinstance(event, Ping):
                    await self.send_frame("PONG", event.payload)
                return event
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSING):
                raise ChatConnectionError("connection closed by server")
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise ChatConnectionError(f"websocket error: {self.ws.exception()}")

    async def send_frame(self, verb: str, payload: dict[str, Any]) -> None:
        if self.ws is None or self.ws.closed:
            raise ChatConnectionError("not connected")
        try:
            await self.ws.send_str(encode_frame(verb, payload))
        except (aiohttp.ClientError, ConnectionResetError, OSError) as exc:
            raise ChatConnectionError(f"write failed: {exc}") from exc

    async def send_message(self, text: str) -> None:
        await self.send_frame("MSG", {"data": text})

    async def send_private_message(self, nick: str, text: str) -> None:
        await self.send_frame("PRIVMSG", {"nick": nick, "data": text})

    async def send_action(self, text: str) -> None:
        await self.send_frame("MSG", {"data": f"/me {text}"})

    async def send_broadcast(self, text: str) -> None:
        await self.send_frame("BROADCAST", {"data": text})

    async def send_sub_only(self, active: bool) -> None:
        await self.send_frame("SUBONLY", {"data": "on" if active else "off"})

    async def send_mute(self, nick: str, duration: int | None) -> None:
        payload: dict[str, Any] = {"data": nick}
        if duration is not None:
            payload["duration"] = duration * NANOSECONDS
        await self.send_frame("MUTE", payload)

    async def send_unmute(self, nick: str) -> None:
        await self.send_frame("UNMUTE", {"data": nick})

    async def send_ban(self, nick: str, duration: int | None) -> None:
        payload: dict[str, Any] = {"nick": nick, "reason": "", "ispermanent": False}
        if duration is not None:
            payload["duration"] = duration * NANOSECONDS
        await self.send_frame("BAN", payload)

    async def send_permanent_ban(self, nick: str) -> None:
        await self.send_frame("BAN", {"nick": nick, "reason": "", "ispermanent": True})

    async def send_unban(self, nick: str) -> None:
        await self.send_frame("UNBAN", {"data": nick})
