"""Collaborator protocols — runtime-checkable interfaces.

The sharing core consumes three external collaborators: the file
directory (metadata), the identity provider (users and credentials),
and the blob store (content).  Each has a SQL or local-disk
implementation in this package, but any object satisfying the protocol
can be plugged in.

``session`` is passed to every directory and identity method so that
SQL implementations join the caller's transaction.  Non-SQL
implementations ignore it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .types import FileDescriptor, UserInfo


@runtime_checkable
class FileDirectory(Protocol):
    """Resolves file ids to descriptors."""

    async def get_file_descriptor(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str | None = None,
    ) -> FileDescriptor | None:
        """Return the descriptor, or None if absent or not owned by *owner_id*.

        Soft-deleted files are returned with ``is_deleted=True``.
        """
        ...

    async def get_file_descriptors(
        self,
        session: AsyncSession,
        file_ids: Iterable[str],
    ) -> dict[str, FileDescriptor]: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves credentials and user ids."""

    async def resolve_principal(
        self,
        session: AsyncSession,
        credential: str,
    ) -> str | None: ...

    async def user_exists(self, session: AsyncSession, user_id: str) -> bool: ...

    async def get_users(
        self,
        session: AsyncSession,
        user_ids: Iterable[str],
    ) -> dict[str, UserInfo]: ...


@runtime_checkable
class BlobStore(Protocol):
    """Returns file content by storage key."""

    async def exists(self, storage_key: str) -> bool: ...

    def open(self, storage_key: str, chunk_size: int = ...) -> AsyncIterator[bytes]: ...

    async def read_bytes(self, storage_key: str) -> bytes: ...
