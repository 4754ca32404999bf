"""Tests for event rendering."""

from datetime import datetime

import pytest
from rich.text import Text

from chatterm.config import ChatConfig, ConfigStore
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
    User,
)
from chatterm.message_log import NO_TAG, MessageRecord
from chatterm.render import MessageRenderer, format_record, tag_marker

TS = datetime(2024, 1, 1, 15, 4)


def renderer(**config) -> MessageRenderer:
    return MessageRenderer(ConfigStore(ChatConfig(**config)))


def msg(nick: str, text: str, features: tuple[str, ...] = ()) -> ChatMessage:
    return ChatMessage(sender=User(nick, features), text=text, timestamp=TS)


class TestChatMessage:
    def test_plain(self) -> None:
        record = renderer().render(msg("bob", "hello"))
        assert record is not None
        assert record.nick == "bob"
        assert record.tag == NO_TAG
        assert record.body == "[bold]bob[/]: hello"
        assert record.timestamp == TS

    def test_flair_badge_and_color(self) -> None:
        record = renderer().render(msg("bob", "hi", ("flair3",)))
        assert record is not None
        assert record.body.startswith("[bold green]\\[t3]bob[/]")

    def test_highlighted_nick(self) -> None:
        record = renderer(highlighted=["bob"]).render(msg("Bob", "hi"))
        assert record is not None
        assert record.body.startswith("[bold cyan][*]Bob[/]")

    def test_mention_of_username(self) -> None:
        record = renderer(username="Me").render(msg("bob", "hey me!"))
        assert record is not None
        assert record.body.endswith("[black on bright_cyan]hey me![/]")

    def test_greentext(self) -> None:
        record = renderer().render(msg("bob", ">implying"))
        assert record is not None
        assert record.body.endswith("[green]>implying[/]")

    def test_markup_is_escaped(self) -> None:
        record = renderer().render(msg("bob", "[red]not red[/red]"))
        assert record is not None
        assert "\\[red]not red\\[/red]" in record.body

    def test_tagged_nick(self) -> None:
        record = renderer(tags={"bob": "magenta"}).render(msg("BOB", "hi"))
        assert record is not None
        assert record.tag == tag_marker("magenta")

    def test_ignored_nick(self) -> None:
        assert renderer(ignores=["bob"]).render(msg("Bob", "hi")) is None


class TestOtherEvents:
    def test_whisper(self) -> None:
        record = renderer().render(PrivateMessage(sender=User("alice"), text="psst", timestamp=TS))
        assert record is not None
        assert Text.from_markup(record.body).plain == "[Whisper]alice: psst"
        assert record.nick == "alice"

    def test_join_hidden_by_default(self) -> None:
        assert renderer().render(Join(user=User("bob"), timestamp=TS)) is None

    def test_join_shown_when_enabled(self) -> None:
        record = renderer(showjoinleave=True).render(Join(user=User("bob"), timestamp=TS))
        assert record is not None
        assert "JOIN: bob" in record.body

    def test_quit_shown_for_stalked_nick(self) -> None:
        record = renderer(stalks=["bob"]).render(Quit(user=User("Bob"), timestamp=TS))
        assert record is not None
        assert "QUIT: Bob" in record.body

    def test_broadcast(self) -> None:
        record = renderer().render(Broadcast(text="live now", timestamp=TS))
        assert record is not None
        assert "live now" in record.body
        assert record.nick == ""

    def test_server_error(self) -> None:
        record = renderer().render(ServerError(description="throttled", timestamp=TS))
        assert record is not None
        assert "Error: throttled" in record.body

    @pytest.mark.parametrize(
        ("event", "text"),
        [
            (Mute(sender=User("mod"), target=User("bob"), timestamp=TS), "MUTE: bob muted by mod"),
            (Ban(sender=User("mod"), target=User("bob"), timestamp=TS), "BAN: bob banned by mod"),
            (SubOnly(sender=User("mod"), active=True, timestamp=TS), "subscriber-only mode on"),
        ],
    )
    def test_moderation(self, event, text: str) -> None:
        record = renderer().render(event)
        assert record is not None
        assert text in record.body

    def test_names(self) -> None:
        record = renderer().render(Names(users=[User("a"), User("b")]))
        assert record is not None
        assert "2 users online" in record.body

    def test_ping_renders_nothing(self) -> None:
        assert renderer().render(Ping(timestamp=TS)) is None


class TestHelpers:
    def test_tag_marker(self) -> None:
        assert tag_marker(None) == NO_TAG
        assert tag_marker("red") == "[on red]  [/]"

    def test_format_record(self) -> None:
        record = MessageRecord(timestamp=TS, tag=NO_TAG, body="hi")
        assert Text.from_markup(format_record(record, "%H:%M")).plain == "[15:04]  hi"

    def test_system_and_error_lines(self) -> None:
        r = renderer()
        assert Text.from_markup(r.system("[x]").body).plain == "[x]"
        assert r.error("boom").body == "[bold red]boom[/]"
