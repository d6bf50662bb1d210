"""User directory collaborator."""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from .schemas import Caller
from .schemas.config import DirectoryUser


@runtime_checkable
class UserDirectory(Protocol):
    """Roster lookups used when the caller record lacks department or role."""

    def lookup(self, user_id: str) -> DirectoryUser | None:
        """Return the roster entry for ``user_id``."""


class StaticUserDirectory:
    """In-process roster, typically loaded from the YAML config."""

    def __init__(self, users: Iterable[DirectoryUser | dict] | None = None) -> None:
        self._users: dict[str, DirectoryUser] = {}
        for entry in users or []:
            user = entry if isinstance(entry, DirectoryUser) else DirectoryUser.model_validate(entry)
            self._users[user.user_id] = user

    def lookup(self, user_id: str) -> DirectoryUser | None:
        return self._users.get(user_id)

    def resolve_caller(self, user_id: str) -> Caller:
        """Build a caller identity from the roster; unknown ids raise ``KeyError``."""
        user = self._users.get(user_id)
        if user is None:
            raise KeyError(f"Unknown user: {user_id!r}")
        return Caller(id=user.user_id, role=user.role, department=user.department)

    def users(self) -> list[DirectoryUser]:
        return list(self._users.values())

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users


def department_of(directory: UserDirectory, user_id: str | None) -> str | None:
    if user_id is None:
        return None
    user = directory.lookup(user_id)
    return user.department if user else None

