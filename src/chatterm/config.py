"""Configuration system for chatterm.

Loads user preferences (credentials, display settings, highlight/tag/ignore/
stalk lists) from a JSON document. All fields except the document itself are
optional and fall back to defaults.

``ConfigStore`` wraps the loaded config behind a read/write lock. Every
mutation is followed by a synchronous save; a failed save keeps the in-memory
change and marks the store dirty until the next successful save.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from json import JSONDecodeError
from pathlib import Path
from typing import Any, TypeVar

from chatterm.colors import resolve_tag_color
from chatterm.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ENDPOINT = "wss://www.destiny.gg/ws"

# ---------------------------------------------------------------------------
# Dataclass
# ---------------------------------------------------------------------------


@dataclass
class ChatConfig:
    """Top-level configuration, loaded from the JSON config file."""

    auth_token: str = ""
    custom_url: str = ""
    username: str = ""
    timeformat: str = "%I:%M%p"
    maxlines: int = 1000
    scrolling_speed: int = 1
    page_up_down_speed: int = 10
    highlighted: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    ignores: list[str] = field(default_factory=list)
    stalks: list[str] = field(default_factory=list)
    showjoinleave: bool = False
    highlight_fg_color: str = "black"
    highlight_bg_color: str = "bright_cyan"

    @property
    def endpoint(self) -> str:
        return self.custom_url or DEFAULT_ENDPOINT

    def is_highlighted(self, nick: str) -> bool:
        return nick.lower() in self.highlighted

    def is_ignored(self, nick: str) -> bool:
        return nick.lower() in self.ignores

    def is_stalked(self, nick: str) -> bool:
        return nick.lower() in self.stalks

    def tag_for(self, nick: str) -> str | None:
        return self.tags.get(nick.lower())


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

STRING_KEYS = {"auth_token", "custom_url", "username", "timeformat", "highlight_fg_color", "highlight_bg_color"}
POSITIVE_INT_KEYS = {"maxlines", "scrolling_speed", "page_up_down_speed"}
NICK_LIST_KEYS = {"highlighted", "ignores", "stalks"}
VALID_TOP_KEYS = STRING_KEYS | POSITIVE_INT_KEYS | NICK_LIST_KEYS | {"tags", "showjoinleave"}


def check_unknown_keys(data: dict, valid: set[str], context: str) -> None:
    """Raise ValueError if data contains keys not in valid set."""
    unknown = set(data) - valid
    if unknown:
        raise ValueError(f"Unknown keys in {context}: {', '.join(sorted(unknown))}")


def validate_nick_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ValueError(f"{key} must be a list, got {type(value).__name__}")
    nicks: list[str] = []
    for i, nick in enumerate(value):
        if not isinstance(nick, str):
            raise ValueError(f"{key}[{i}] must be a string, got {type(nick).__name__}")
        lowered = nick.lower()
        if lowered not in nicks:
            nicks.append(lowered)
    return nicks


def validate_tags(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ValueError(f"tags must be an object, got {type(value).__name__}")
    tags: dict[str, str] = {}
    for nick, color in value.items():
        if not isinstance(color, str):
            raise ValueError(f"tags.{nick} must be a string, got {type(color).__name__}")
        if resolve_tag_color(color) is None:
            raise ValueError(f"tags.{nick} has invalid color '{color}'")
        tags[nick.lower()] = color.lower()
    return tags


def validate_config(data: dict) -> ChatConfig:
    """Validate a raw dict and construct a ChatConfig.

    Raises:
        ValueError: On unknown keys or type errors.
    """
    check_unknown_keys(data, VALID_TOP_KEYS, "config")
    kwargs: dict[str, Any] = {}

    for key in STRING_KEYS & set(data):
        val = data[key]
        if not isinstance(val, str):
            raise ValueError(f"{key} must be a string, got {type(val).__name__}")
        kwargs[key] = val

    for key in POSITIVE_INT_KEYS & set(data):
        val = data[key]
        if isinstance(val, bool) or not isinstance(val, int):
            raise ValueError(f"{key} must be an integer, got {type(val).__name__}")
        if val < 1:
            raise ValueError(f"{key} must be positive, got {val}")
        kwargs[key] = val

    for key in NICK_LIST_KEYS & set(data):
        kwargs[key] = validate_nick_list(key, data[key])

    if "tags" in data:
        kwargs["tags"] = validate_tags(data["tags"])

    if "showjoinleave" in data:
        val = data["showjoinleave"]
        if not isinstance(val, bool):
            raise ValueError(f"showjoinleave must be a boolean, got {type(val).__name__}")
        kwargs["showjoinleave"] = val

    if "timeformat" in kwargs and not kwargs["timeformat"]:
        raise ValueError("timeformat must not be empty")

    return ChatConfig(**kwargs)


# ---------------------------------------------------------------------------
# Loading / saving
# ---------------------------------------------------------------------------


def load_config(path: Path) -> ChatConfig:
    """Load configuration from *path*.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file contains invalid JSON or fails validation.
    """
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        return ChatConfig()
    try:
        data = json.loads(content)
    except JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object, got {type(data).__name__}")

    return validate_config(data)


def config_to_dict(config: ChatConfig) -> dict[str, Any]:
    return asdict(config)


def save_config(path: Path, config: ChatConfig) -> None:
    """Replace the config file atomically, owner-readable only since it holds the auth token."""
    serialized = json.dumps(config_to_dict(config), indent=2, sort_keys=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(f".{os.getpid()}.tmp")
    tmp.write_text(f"{serialized}\n", encoding="utf-8")
    os.chmod(tmp, 0o600)
    os.replace(tmp, path)


# ---------------------------------------------------------------------------
# Concurrent store
# ---------------------------------------------------------------------------


class ReadWriteLock:
    """Writer-preferring shared/exclusive lock. Not reentrant."""

    def __init__(self) -> None:
        self.cond = threading.Condition(threading.Lock())
        self.readers = 0
        self.writer = False
        self.waiting_writers = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self.cond:
            while self.writer or self.waiting_writers:
                self.cond.wait()
            self.readers += 1
        try:
            yield
        finally:
            with self.cond:
                self.readers -= 1
                if not self.readers:
                    self.cond.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self.cond:
            self.waiting_writers += 1
            try:
                while self.writer or self.readers:
                    self.cond.wait()
            finally:
                self.waiting_writers -= 1
            self.writer = True
        try:
            yield
        finally:
            with self.cond:
                self.writer = False
                self.cond.notify_all()


class ConfigStore:
    """Thread-safe holder of the live ChatConfig.

    Attributes:
        path: Where the config is saved. None disables persistence.
        dirty: True while the in-memory config has changes that failed to save.
    """

    def __init__(
        self,
        config: ChatConfig,
        path: Path | None = None,
        saver: Callable[[Path, ChatConfig], None] = save_config,
    ) -> None:
        self.config = config
        self.path = path
        self.saver = saver
        self.lock = ReadWriteLock()
        self.dirty = False

    def read(self) -> ChatConfig:
        """Return a detached copy of the current config."""
        with self.lock.read_lock():
            return copy.deepcopy(self.config)

    @contextmanager
    def reading(self) -> Iterator[ChatConfig]:
        """Borrow the live config under the shared lock. Callers must not mutate it."""
        with self.lock.read_lock():
            yield self.config

    def mutate(self, fn: Callable[[ChatConfig], T]) -> T:
        """Apply *fn* to the config under the exclusive lock, then save.

        *fn* validates before changing anything; if it raises, nothing is
        saved and the exception propagates. If saving fails the change is
        kept, ``dirty`` is set and PersistenceError is raised.
        """
        with self.lock.write_lock():
            result = fn(self.config)
            if self.path is not None:
                try:
                    self.saver(self.path, self.config)
                except OSError as exc:
                    self.dirty = True
                    logger.warning("Failed to save config to %s: %s", self.path, exc)
                    raise PersistenceError(f"error saving config: {exc}") from exc
            self.dirty = False
        return result
