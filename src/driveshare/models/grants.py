"""AccessGrant and GrantHide models — durable sharing state.

Provides ``AccessGrantBase`` / ``GrantHideBase`` (non-table) and
``AccessGrant`` / ``GrantHide`` (concrete tables).  Subclass a base with
``table=True`` and a custom ``__tablename__`` to use a different table
name; copy the ``__table_args__`` of the default table so the uniqueness
rules the store relies on are kept.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class AccessGrantBase(SQLModel):
    """Base fields for a sharing grant. Subclass with ``table=True`` for a concrete table.

    A grant names exactly one subject: a direct recipient
    (``subject_user_id``) or anyone holding ``token``.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    file_id: str = Field(index=True)
    granted_by: str = Field(index=True)
    subject_user_id: str | None = Field(default=None, index=True)
    token: str | None = Field(default=None, unique=True, index=True)
    permission: str = Field(default="read")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_public(self) -> bool:
        return self.token is not None


class AccessGrant(AccessGrantBase, table=True):
    """Default grant table — ``driveshare_grants``."""

    __tablename__ = "driveshare_grants"
    __table_args__ = (
        UniqueConstraint(
            "file_id",
            "granted_by",
            "subject_user_id",
            name="uq_driveshare_grants_direct_subject",
        ),
        CheckConstraint(
            "(subject_user_id IS NULL) <> (token IS NULL)",
            name="ck_driveshare_grants_one_subject",
        ),
    )


class GrantHideBase(SQLModel):
    """Recipient-side suppression marker for a direct grant.

    Only affects the recipient's "shared with me" listing.  Authorization
    never reads this table.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    grant_id: str = Field(index=True)
    recipient_id: str = Field(index=True)
    hidden_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class GrantHide(GrantHideBase, table=True):
    """Default hide-marker table — ``driveshare_grant_hides``."""

    __tablename__ = "driveshare_grant_hides"
    __table_args__ = (
        UniqueConstraint("grant_id", "recipient_id", name="uq_driveshare_grant_hides_recipient"),
    )
