"""FileDirectoryService — file record lookup, registration, soft delete."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlmodel import select

from .types import FileDescriptor
from .utils import new_id, utc_now, utc_or_none

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from driveshare.models.files import FileBase

logger = logging.getLogger(__name__)


class FileDirectoryService:
    """SQL implementation of the ``FileDirectory`` protocol.

    Receives the concrete file model at construction so callers can
    use custom SQLModel subclasses.  Soft-deleted files stay in the
    table with ``deleted_at`` set and are reported with
    ``is_deleted=True``; the sharing core decides what that means.
    """

    def __init__(
        self,
        file_model: type[FileBase] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if file_model is None:
            from driveshare.models.files import File

            file_model = File
        self._file_model = file_model
        self._clock = clock or utc_now

    @property
    def file_model(self) -> type[FileBase]:
        return self._file_model

    # ------------------------------------------------------------------
    # FileDirectory protocol
    # ------------------------------------------------------------------

    async def get_file_descriptor(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str | None = None,
    ) -> FileDescriptor | None:
        file = await self._get_file(session, file_id, owner_id)
        if file is None:
            return None
        return self.file_to_descriptor(file)

    async def get_file_descriptors(
        self,
        session: AsyncSession,
        file_ids: Iterable[str],
    ) -> dict[str, FileDescriptor]:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return {}
        model = self._file_model
        result = await session.execute(
            select(model).where(model.id.in_(ids))  # type: ignore[union-attr]
        )
        return {f.id: self.file_to_descriptor(f) for f in result.scalars().all()}

    # ------------------------------------------------------------------
    # Record management
    # ------------------------------------------------------------------

    async def add_file(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        *,
        storage_key: str | None = None,
        size_bytes: int = 0,
        mime_type: str = "application/octet-stream",
        parent_folder_id: str | None = None,
        file_id: str | None = None,
    ) -> FileDescriptor:
        """Register a file record. Flushes but does not commit."""
        fid = file_id or new_id()
        now = self._clock()
        file = self._file_model(
            id=fid,
            owner_id=owner_id,
            name=name,
            storage_key=storage_key if storage_key is not None else fid,
            size_bytes=size_bytes,
            mime_type=mime_type,
            parent_folder_id=parent_folder_id,
            created_at=now,
            updated_at=now,
        )
        session.add(file)
        await session.flush()
        return self.file_to_descriptor(file)

    async def soft_delete(self, session: AsyncSession, file_id: str, owner_id: str) -> bool:
        """Mark a file deleted. Returns False if absent, not owned, or already deleted."""
        file = await self._get_file(session, file_id, owner_id)
        if file is None or file.deleted_at is not None:
            return False
        now = self._clock()
        file.deleted_at = now
        file.updated_at = now
        await session.flush()
        logger.debug("Soft-deleted file %s", file_id)
        return True

    async def restore(self, session: AsyncSession, file_id: str, owner_id: str) -> bool:
        """Clear the deleted mark. Returns False if absent, not owned, or not deleted."""
        file = await self._get_file(session, file_id, owner_id)
        if file is None or file.deleted_at is None:
            return False
        file.deleted_at = None
        file.updated_at = self._clock()
        await session.flush()
        logger.debug("Restored file %s", file_id)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_file(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str | None,
    ) -> FileBase | None:
        model = self._file_model
        query = select(model).where(model.id == file_id)
        if owner_id is not None:
            query = query.where(model.owner_id == owner_id)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    def file_to_descriptor(f: FileBase) -> FileDescriptor:
        """Convert a file record to a FileDescriptor."""
        return FileDescriptor(
            file_id=f.id,
            owner_id=f.owner_id,
            name=f.name,
            storage_key=f.storage_key,
            size_bytes=f.size_bytes,
            mime_type=f.mime_type,
            is_deleted=f.deleted_at is not None,
            parent_folder_id=f.parent_folder_id,
            created_at=utc_or_none(f.created_at),
            updated_at=utc_or_none(f.updated_at),
        )
