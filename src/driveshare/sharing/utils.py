"""Small helpers shared by the sharing services."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def new_id() -> str:
    return str(uuid.uuid4())


def token_hint(token: str) -> str:
    """Short, log-safe prefix of a share token."""
    return token[:6] + "..."
