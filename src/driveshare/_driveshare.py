"""DriveShare — synchronous wrapper around DriveShareAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from driveshare._driveshare_async import DriveShareAsync
from driveshare.sharing.permissions import Permission

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from driveshare.config import ShareConfig
    from driveshare.sharing.protocol import BlobStore
    from driveshare.sharing.types import (
        AccessResult,
        DownloadResult,
        FileDescriptor,
        ListFilesResult,
        ListGrantsResult,
        Principal,
        PublicLinkResult,
        RevokeResult,
        ShareResult,
        TokenAccessResult,
        UserInfo,
    )

logger = logging.getLogger(__name__)


class DriveShare:
    """Sync facade over :class:`DriveShareAsync`.

    The async engine is created and driven on a private event loop in
    a daemon thread, so the same instance works from plain scripts and
    from inside a running event loop.

    Usage::

        with DriveShare("sqlite+aiosqlite:///drive.db") as ds:
            ds.create_tables()
            link = ds.create_public_link("f1", "alice")
            ds.get_by_token(link.token)
    """

    def __init__(
        self,
        url: str,
        *,
        config: ShareConfig | None = None,
        blobs: BlobStore | None = None,
        clock: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
        engine_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async: DriveShareAsync = self._run(
            self._async_init(url, config, blobs, clock, token_factory, engine_kwargs or {})
        )

    async def _async_init(
        self,
        url: str,
        config: ShareConfig | None,
        blobs: BlobStore | None,
        clock: Callable[[], datetime] | None,
        token_factory: Callable[[], str] | None,
        engine_kwargs: dict[str, Any],
    ) -> DriveShareAsync:
        engine = create_async_engine(url, **engine_kwargs)
        logger.debug("DriveShare engine created for %s", engine.url.render_as_string())
        return DriveShareAsync(
            engine=engine,
            config=config,
            blobs=blobs,
            clock=clock,
            token_factory=token_factory,
        )

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    @property
    def inner(self) -> DriveShareAsync:
        """The wrapped async facade."""
        return self._async

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_tables(self) -> None:
        self._run(self._async.create_tables())

    def close(self) -> None:
        """Dispose the engine, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> DriveShare:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Share operations (sync)
    # ------------------------------------------------------------------

    def share_with_user(
        self,
        file_id: str,
        granter_id: str,
        subject_user_id: str,
        permission: str | Permission = Permission.READ,
        *,
        expires_at: datetime | None = None,
    ) -> ShareResult:
        return self._run(
            self._async.share_with_user(
                file_id, granter_id, subject_user_id, permission, expires_at=expires_at
            )
        )

    def create_public_link(
        self,
        file_id: str,
        granter_id: str,
        permission: str | Permission = Permission.READ,
        *,
        expires_at: datetime | None = None,
        ttl: timedelta | None = None,
    ) -> PublicLinkResult:
        return self._run(
            self._async.create_public_link(
                file_id, granter_id, permission, expires_at=expires_at, ttl=ttl
            )
        )

    def get_by_token(self, token: str, principal: Principal | None = None) -> TokenAccessResult:
        return self._run(self._async.get_by_token(token, principal))

    def list_shares_on_file(self, file_id: str, owner_id: str) -> ListGrantsResult:
        return self._run(self._async.list_shares_on_file(file_id, owner_id))

    def list_shared_with_me(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> ListFilesResult:
        return self._run(self._async.list_shared_with_me(user_id, limit=limit, offset=offset))

    def revoke(self, grant_id: str, caller_id: str) -> RevokeResult:
        return self._run(self._async.revoke(grant_id, caller_id))

    def unshare_all(self, file_id: str, owner_id: str) -> RevokeResult:
        return self._run(self._async.unshare_all(file_id, owner_id))

    def hide_share(self, grant_id: str, recipient_id: str) -> RevokeResult:
        return self._run(self._async.hide_share(grant_id, recipient_id))

    def purge_expired(self) -> int:
        return self._run(self._async.purge_expired())

    # ------------------------------------------------------------------
    # Access checks and downloads (sync)
    # ------------------------------------------------------------------

    def check_access(
        self,
        principal: Principal | None,
        file_id: str,
        required: str | Permission = Permission.READ,
    ) -> AccessResult:
        return self._run(self._async.check_access(principal, file_id, required))

    def can_access(
        self,
        principal: Principal | None,
        file_id: str,
        required: str | Permission = Permission.READ,
    ) -> bool:
        return self._run(self._async.can_access(principal, file_id, required))

    def can_read(self, principal: Principal | None, file_id: str) -> bool:
        return self._run(self._async.can_read(principal, file_id))

    def resolve_principal(self, credential: str) -> Principal | None:
        return self._run(self._async.resolve_principal(credential))

    def read_shared_file(self, token: str, principal: Principal | None = None) -> DownloadResult:
        """Resolve *token* and return the whole file content in ``content``."""
        return self._run(self._async.read_shared_file(token, principal))

    def read_file(self, principal: Principal | None, file_id: str) -> DownloadResult:
        return self._run(self._async.read_file(principal, file_id))

    # ------------------------------------------------------------------
    # Users and files (sync)
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: str, *, user_id: str | None = None) -> UserInfo:
        return self._run(self._async.create_user(username, email, user_id=user_id))

    def login(self, user_id: str) -> str:
        return self._run(self._async.login(user_id))

    def add_file(
        self,
        owner_id: str,
        name: str,
        *,
        storage_key: str | None = None,
        size_bytes: int = 0,
        mime_type: str = "application/octet-stream",
        parent_folder_id: str | None = None,
        file_id: str | None = None,
    ) -> FileDescriptor:
        return self._run(
            self._async.add_file(
                owner_id,
                name,
                storage_key=storage_key,
                size_bytes=size_bytes,
                mime_type=mime_type,
                parent_folder_id=parent_folder_id,
                file_id=file_id,
            )
        )

    def soft_delete_file(self, file_id: str, owner_id: str) -> bool:
        return self._run(self._async.soft_delete_file(file_id, owner_id))

    def restore_file(self, file_id: str, owner_id: str) -> bool:
        return self._run(self._async.restore_file(file_id, owner_id))

    def logout(self, credential: str) -> bool:
        return self._run(self._async.logout(credential))
