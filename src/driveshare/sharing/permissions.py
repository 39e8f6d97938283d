"""Permission enum with a total order: read < write < admin."""

from __future__ import annotations

from enum import Enum

from .exceptions import InvalidPermissionError


class Permission(str, Enum):
    """Permission level carried by a grant.

    Members compare by rank rather than alphabetically, so
    ``grant_permission >= Permission.WRITE`` reads naturally.  Plain
    strings are parsed first, so ``Permission.ADMIN > "write"`` holds and
    an unknown level raises ``InvalidPermissionError``.
    """

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        level = _coerce(other)
        if level is None:
            return NotImplemented
        return self.rank < level.rank

    def __le__(self, other: object) -> bool:
        level = _coerce(other)
        if level is None:
            return NotImplemented
        return self.rank <= level.rank

    def __gt__(self, other: object) -> bool:
        level = _coerce(other)
        if level is None:
            return NotImplemented
        return self.rank > level.rank

    def __ge__(self, other: object) -> bool:
        level = _coerce(other)
        if level is None:
            return NotImplemented
        return self.rank >= level.rank

    @classmethod
    def parse(cls, value: str | Permission) -> Permission:
        """Return the member for *value* or raise ``InvalidPermissionError``."""
        if isinstance(value, Permission):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidPermissionError(
                f"Invalid permission: {value!r}. Must be 'read', 'write', or 'admin'."
            ) from None


_RANKS: dict[Permission, int] = {
    Permission.READ: 1,
    Permission.WRITE: 2,
    Permission.ADMIN: 3,
}


def _coerce(value: object) -> Permission | None:
    # plain strings compare by rank too; an unknown level raises
    if isinstance(value, str):
        return Permission.parse(value)
    return None
