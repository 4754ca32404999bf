"""Tests for input history and the user roster."""

from chatterm.events import User
from chatterm.history import MAX_HISTORY, InputHistory
from chatterm.roster import UserRoster


class TestInputHistory:
    def test_newest_first(self) -> None:
        history = InputHistory()
        for line in ("one", "two", "three"):
            history.record(line)
        assert history.older() == "three"
        assert history.older() == "two"
        assert history.older() == "one"
        assert history.older() is None

    def test_newer_returns_to_blank(self) -> None:
        history = InputHistory()
        history.record("one")
        history.record("two")
        history.older()
        history.older()
        assert history.newer() == "two"
        assert history.newer() == ""
        assert history.newer() is None

    def test_capped(self) -> None:
        history = InputHistory()
        for i in range(MAX_HISTORY + 5):
            history.record(str(i))
        assert len(history.entries) == MAX_HISTORY
        assert history.entries[0] == str(MAX_HISTORY + 4)

    def test_record_resets_position(self) -> None:
        history = InputHistory()
        history.record("a")
        history.older()
        history.record("b")
        assert history.index == -1
        assert history.older() == "b"


class TestUserRoster:
    def test_replace_and_lookup(self) -> None:
        roster = UserRoster()
        roster.replace([User("Bob"), User("alice")])
        assert len(roster) == 2
        assert "bob" in roster
        assert "carol" not in roster

    def test_add_and_remove(self) -> None:
        roster = UserRoster()
        assert roster.add(User("bob")) is True
        assert roster.add(User("bob")) is False
        assert roster.remove("BOB") is True
        assert roster.remove("bob") is False
        assert roster.add(User("")) is False

    def test_sorted_by_flair_then_nick(self) -> None:
        roster = UserRoster()
        roster.replace([User("zed"), User("Amy"), User("admin", ("admin",)), User("sub", ("flair3",))])
        assert [u.nick for u in roster.sorted_users()] == ["admin", "sub", "Amy", "zed"]
