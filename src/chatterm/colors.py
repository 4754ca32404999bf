"""Static color and badge tables.

TAG_COLORS — background colors a nick can be tagged with.
FLAIRS — badge and nick color per user feature.

Colors are Rich color names so they can be dropped straight into markup.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

TAG_COLORS: MappingProxyType[str, str] = MappingProxyType(
    {
        "red": "red",
        "green": "green",
        "yellow": "yellow",
        "blue": "blue",
        "magenta": "magenta",
        "cyan": "cyan",
    }
)

HIGHLIGHT_NICK_COLOR = "cyan"
GREENTEXT_COLOR = "green"
BROADCAST_COLOR = "bright_yellow"
WHISPER_COLOR = "bright_white"
ERROR_COLOR = "red"
SYSTEM_COLOR = "bright_black"


def resolve_tag_color(name: str) -> str | None:
    """Return the Rich background color for a tag name, or None if unknown."""
    return TAG_COLORS.get(name.lower())


@dataclass(frozen=True)
class Flair:
    name: str
    badge: str
    color: str


# The order matters: a user with several features gets the badge/color of
# the last matching entry.
FLAIRS: tuple[Flair, ...] = (
    Flair("flair2", "N", ""),
    Flair("flair5", "C", ""),
    Flair("flair9", "tw", "bright_blue"),
    Flair("flair13", "t1", "bright_blue"),
    Flair("flair1", "t2", "bright_cyan"),
    Flair("flair3", "t3", "green"),
    Flair("flair8", "t4", "magenta"),
    Flair("flair11", "bot2", "bright_black"),
    Flair("flair12", "@", "bright_cyan"),
    Flair("bot", "bot", "blue"),
    Flair("vip", "vip", "bright_red"),
    Flair("admin", "@", "red"),
)


class HasFeatures(Protocol):
    nick: str
    features: Sequence[str]


def highest_flair(features: Iterable[str]) -> tuple[int, Flair | None]:
    """Return (index, flair) of the highest-ranked flair in *features*.

    Returns (-1, None) when the user has no known flair.
    """
    wanted = {f.lower() for f in features}
    index = -1
    best: Flair | None = None
    for i, flair in enumerate(FLAIRS):
        if flair.name in wanted:
            index = i
            best = flair
    return index, best


def sort_users(users: Iterable[HasFeatures]) -> list:
    """Sort users by highest flair (descending), then nick case-insensitively."""
    return sorted(users, key=lambda u: (-highest_flair(u.features)[0], u.nick.lower()))
