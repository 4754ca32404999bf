"""Tests for frame parsing and the websocket session adapter."""

from __future__ import annotations

import asyncio
import json

import aiohttp
import pytest

from chatterm.errors import ChatConnectionError
from chatterm.events import (
    Ban,
    Broadcast,
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
)
from chatterm.session import NANOSECONDS, WebSocketSession, encode_frame, parse_frame, parse_timestamp

# ---------------------------------------------------------------------------
# parse_frame
# ---------------------------------------------------------------------------


class TestParseFrame:
    def test_msg(self) -> None:
        event = parse_frame('MSG {"nick":"Bob","features":["flair3"],"timestamp":1700000000000,"data":"hi all"}')
        assert isinstance(event, ChatMessage)
        assert event.sender.nick == "Bob"
        assert event.sender.features == ("flair3",)
        assert event.text == "hi all"
        assert event.timestamp.year == 2023

    def test_names(self) -> None:
        event = parse_frame('NAMES {"connectioncount":3,"users":[{"nick":"a","features":[]},{"nick":"b"}]}')
        assert isinstance(event, Names)
        assert [u.nick for u in event.users] == ["a", "b"]
        assert event.connection_count == 3

    @pytest.mark.parametrize(
        ("frame", "kind"),
        [
            ('PRIVMSG {"nick":"a","data":"psst"}', PrivateMessage),
            ('JOIN {"nick":"a"}', Join),
            ('QUIT {"nick":"a"}', Quit),
            ('MUTE {"nick":"mod","data":"a"}', Mute),
            ('UNMUTE {"nick":"mod","data":"a"}', Unmute),
            ('BAN {"nick":"mod","data":"a"}', Ban),
            ('UNBAN {"nick":"mod","data":"a"}', Unban),
            ('BROADCAST {"data":"hello"}', Broadcast),
            ('PING {"data":123}', Ping),
        ],
    )
    def test_kinds(self, frame: str, kind: type) -> None:
        assert isinstance(parse_frame(frame), kind)

    def test_moderation_target(self) -> None:
        event = parse_frame('MUTE {"nick":"mod","data":"spammer"}')
        assert isinstance(event, Mute)
        assert event.sender.nick == "mod"
        assert event.target.nick == "spammer"

    def test_subonly(self) -> None:
        on = parse_frame('SUBONLY {"nick":"mod","data":"on"}')
        off = parse_frame('SUBONLY {"nick":"mod","data":"off"}')
        assert isinstance(on, SubOnly) and on.active is True
        assert isinstance(off, SubOnly) and off.active is False

    def test_err_string_payload(self) -> None:
        event = parse_frame('ERR "throttled"')
        assert isinstance(event, ServerError)
        assert event.description == "throttled"

    @pytest.mark.parametrize("frame", ["", "MSG", "MSG {not json", 'MSG ["list"]', 'WHATEVER {"a":1}'])
    def test_ignored_frames(self, frame: str) -> None:
        assert parse_frame(frame) is None


def test_parse_timestamp_falls_back_to_now() -> None:
    assert parse_timestamp(None).tzinfo is not None
    assert parse_timestamp(True).year >= 2024


def test_encode_frame() -> None:
    assert encode_frame("MSG", {"data": "hi"}) == 'MSG {"data": "hi"}'


# ---------------------------------------------------------------------------
# WebSocketSession
# ---------------------------------------------------------------------------


class FakeWebSocket:
    def __init__(self, messages: list[aiohttp.WSMessage] | None = None) -> None:
        self.messages = list(messages or [])
        self.sent: list[str] = []
        self.closed = False

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    async def receive(self) -> aiohttp.WSMessage:
        return self.messages.pop(0)

    async def close(self) -> None:
        self.closed = True

    def exception(self) -> Exception | None:
        return None


def text(data: str) -> aiohttp.WSMessage:
    return aiohttp.WSMessage(aiohttp.WSMsgType.TEXT, data, None)


def connected(ws: FakeWebSocket) -> WebSocketSession:
    session = WebSocketSession("ws://example.invalid/ws")
    session.ws = ws  # type: ignore[assignment]
    return session


def sent_frames(ws: FakeWebSocket) -> list[tuple[str, dict]]:
    frames = []
    for raw in ws.sent:
        verb, _, body = raw.partition(" ")
        frames.append((verb, json.loads(body)))
    return frames


class TestWebSocketSession:
    def test_send_message(self) -> None:
        ws = FakeWebSocket()
        asyncio.run(connected(ws).send_message("hello"))
        assert sent_frames(ws) == [("MSG", {"data": "hello"})]

    def test_private_message_and_action(self) -> None:
        ws = FakeWebSocket()
        session = connected(ws)

        async def main() -> None:
            await session.send_private_message("bob", "psst")
            await session.send_action("waves")

        asyncio.run(main())
        assert sent_frames(ws) == [("PRIVMSG", {"nick": "bob", "data": "psst"}), ("MSG", {"data": "/me waves"})]

    def test_mute_duration_in_nanoseconds(self) -> None:
        ws = FakeWebSocket()
        session = connected(ws)

        async def main() -> None:
            await session.send_mute("a", 30)
            await session.send_mute("b", None)

        asyncio.run(main())
        assert sent_frames(ws) == [
            ("MUTE", {"data": "a", "duration": 30 * NANOSECONDS}),
            ("MUTE", {"data": "b"}),
        ]

    def test_bans(self) -> None:
        ws = FakeWebSocket()
        session = connected(ws)

        async def main() -> None:
            await session.send_ban("a", 60)
            await session.send_permanent_ban("b")
            await session.send_unban("b")

        asyncio.run(main())
        frames = sent_frames(ws)
        assert frames[0] == ("BAN", {"nick": "a", "reason": "", "ispermanent": False, "duration": 60 * NANOSECONDS})
        assert frames[1] == ("BAN", {"nick": "b", "reason": "", "ispermanent": True})
        assert frames[2] == ("UNBAN", {"data": "b"})

    def test_send_when_not_open(self) -> None:
        with pytest.raises(ChatConnectionError, match="not connected"):
            asyncio.run(WebSocketSession("ws://x").send_message("hi"))

    def test_receive_skips_unknown_frames(self) -> None:
        ws = FakeWebSocket([text('NOPE {"a":1}'), text('MSG {"nick":"a","data":"hi"}')])
        event = asyncio.run(connected(ws).receive())
        assert isinstance(event, ChatMessage)

    def test_receive_answers_ping(self) -> None:
        ws = FakeWebSocket([text('PING {"data":42}')])
        event = asyncio.run(connected(ws).receive())
        assert isinstance(event, Ping)
        assert sent_frames(ws) == [("PONG", {"data": 42})]

    def test_receive_close_raises(self) -> None:
        ws = FakeWebSocket([aiohttp.WSMessage(aiohttp.WSMsgType.CLOSED, None, None)])
        with pytest.raises(ChatConnectionError, match="closed"):
            asyncio.run(connected(ws).receive())

    def test_close(self) -> None:
        ws = FakeWebSocket()
        session = connected(ws)
        asyncio.run(session.close())
        assert ws.closed
        assert session.ws is None
