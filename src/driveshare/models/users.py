"""UserAccount and UserSession models for the SQL identity provider."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class UserAccountBase(SQLModel):
    """Base fields for a user account. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    username: str = Field(index=True, unique=True)
    email: str = Field(index=True, unique=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class UserAccount(UserAccountBase, table=True):
    """Default user table — ``driveshare_users``."""

    __tablename__ = "driveshare_users"


class UserSessionBase(SQLModel):
    """A login session.  ``id`` is the opaque credential handed to clients."""

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class UserSession(UserSessionBase, table=True):
    """Default session table — ``driveshare_sessions``."""

    __tablename__ = "driveshare_sessions"
