"""Connected-user roster maintained from NAMES/JOIN/QUIT events."""

from __future__ import annotations

from collections.abc import Iterable

from chatterm.colors import sort_users
from chatterm.events import User


class UserRoster:
    """Users currently in the channel, keyed by lowercased nick."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    def __len__(self) -> int:
        return len(self.users)

    def __contains__(self, nick: object) -> bool:
        return isinstance(nick, str) and nick.lower() in self.users

    def replace(self, users: Iterable[User]) -> None:
        self.users = {u.nick.lower(): u for u in users if u.nick}

    def add(self, user: User) -> bool:
        if not user.nick:
            return False
        key = user.nick.lower()
        changed = self.users.get(key) != user
        self.users[key] = user
        return changed

    def remove(self, nick: str) -> bool:
        return self.users.pop(nick.lower(), None) is not None

    def nicks(self) -> list[str]:
        return [u.nick for u in self.users.values()]

    def sorted_users(self) -> list[User]:
        return sort_users(self.users.values())
