"""Tests for tab completion."""

import pytest

from chatterm.suggest import SuggestionEngine, SuggestionState, final_token


def make_engine(nicks=(), emotes=(), commands=()) -> SuggestionEngine:
    return SuggestionEngine(lambda: list(nicks), lambda: list(emotes), lambda: list(commands))


class TestFinalToken:
    @pytest.mark.parametrize(
        ("buffer", "expected"),
        [
            ("", (0, "")),
            ("hello", (0, "hello")),
            ("hi there bo", (9, "bo")),
            ("trailing ", (9, "")),
        ],
    )
    def test_final_token(self, buffer: str, expected: tuple[int, str]) -> None:
        assert final_token(buffer) == expected


class TestComplete:
    def test_completes_final_word(self) -> None:
        engine = make_engine(nicks=["Bobby", "alice"])
        assert engine.complete("hey bo", 6) == ("hey Bobby", 9)

    def test_cycles_in_sorted_order_and_wraps(self) -> None:
        engine = make_engine(nicks=["bob", "Bobby"], emotes=["BOBcat"])
        buffer, cursor = "hi bo", 5
        seen = []
        for _ in range(4):
            buffer, cursor = engine.complete(buffer, cursor)
            seen.append(buffer)
        assert seen == ["hi bob", "hi Bobby", "hi BOBcat", "hi bob"]
        assert cursor == len("hi bob")

    def test_changed_prefix_recomputes(self) -> None:
        engine = make_engine(nicks=["bob", "bobby", "carl", "carla"])
        buffer, cursor = engine.complete("bo", 2)
        assert buffer == "bob"
        assert engine.complete("ca", 2) == ("carl", 4)
        assert engine.state.prefix == "ca"
        assert engine.state.candidates == ["carl", "carla"]

    def test_edited_completion_restarts(self) -> None:
        engine = make_engine(nicks=["bob", "bobby", "bobcat"])
        engine.complete("bo", 2)
        # User typed another letter after the first completion.
        assert engine.complete("bobc", 4) == ("bobcat", 6)
        assert engine.state.prefix == "bobc"

    def test_reset_starts_a_new_cycle(self) -> None:
        engine = make_engine(nicks=["bob", "bobby"])
        assert engine.complete("hi bo", 5) == ("hi bob", 6)
        engine.reset()
        # Same text as the last candidate, but a fresh cycle for "bob".
        assert engine.complete("yo bob", 6) == ("yo bob", 6)
        assert engine.state.prefix == "bob"
        assert engine.complete("yo bob", 6) == ("yo bobby", 8)

    def test_short_prefix_ignored(self) -> None:
        engine = make_engine(nicks=["bob"])
        assert engine.complete("b", 1) == ("b", 1)

    def test_trailing_space_ignored(self) -> None:
        engine = make_engine(nicks=["bob"])
        assert engine.complete("hi ", 3) == ("hi ", 3)

    def test_no_match(self) -> None:
        engine = make_engine(nicks=["bob"])
        assert engine.complete("zz", 2) == ("zz", 2)
        assert engine.state.candidates == []

    def test_cursor_before_final_word(self) -> None:
        engine = make_engine(nicks=["bob", "carl"])
        assert engine.complete("bo ca", 1) == ("bo ca", 1)

    def test_corpus_is_union_of_sources(self) -> None:
        engine = make_engine(nicks=["bob"], emotes=["BasedGod"], commands=["/ban", "/broadcast"])
        assert engine.complete("/b", 2) == ("/ban", 4)
        assert engine.complete("/ban", 4) == ("/broadcast", 10)

    def test_duplicates_collapsed(self) -> None:
        engine = make_engine(nicks=["bob"], emotes=["bob"])
        assert engine.corpus() == ["bob"]

    def test_sources_read_live(self) -> None:
        nicks: list[str] = []
        engine = SuggestionEngine(lambda: nicks)
        assert engine.complete("ne", 2) == ("ne", 2)
        nicks.append("newcomer")
        assert engine.complete("ne", 2) == ("newcomer", 8)


def test_state_reset() -> None:
    state = SuggestionState()
    state.start("bo", ["bob", "bobby"])
    state.advance()
    assert state.current == "bobby"
    state.advance()
    assert state.current == "bob"
    state.reset()
    assert state.current is None
