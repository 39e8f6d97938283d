"""File model — the metadata record behind the SQL file directory.

Provides ``FileBase`` (non-table) and ``File`` (concrete table).  Soft
deletion sets ``deleted_at``; restoring clears it.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class FileBase(SQLModel):
    """Base fields for a stored file. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    parent_folder_id: str | None = Field(default=None, index=True)
    name: str = Field(default="")
    storage_key: str = Field(default="")
    mime_type: str = Field(default="application/octet-stream")
    size_bytes: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class File(FileBase, table=True):
    """Default file table — ``driveshare_files``."""

    __tablename__ = "driveshare_files"
