"""DriveShareAsync — primary async facade for the sharing subsystem."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from driveshare.config import ShareConfig
from driveshare.sharing.dialect import configure_sqlite, get_dialect
from driveshare.sharing.directory import FileDirectoryService
from driveshare.sharing.engine import AuthorizationEngine
from driveshare.sharing.exceptions import (
    BlobNotFoundError,
    DriveShareError,
    NoSuchFileError,
    StorageUnavailableError,
)
from driveshare.sharing.identity import IdentityService
from driveshare.sharing.links import LinkIssuer
from driveshare.sharing.permissions import Permission
from driveshare.sharing.store import GrantStore
from driveshare.sharing.types import (
    AccessResult,
    DownloadResult,
    ListFilesResult,
    ListGrantsResult,
    Principal,
    PublicLinkResult,
    RevokeResult,
    ShareResult,
    TokenAccessResult,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable
    from datetime import datetime, timedelta

    from sqlalchemy.ext.asyncio import AsyncEngine

    from driveshare.models.grants import AccessGrantBase, GrantHideBase
    from driveshare.sharing.protocol import BlobStore, FileDirectory, IdentityProvider
    from driveshare.sharing.types import FileDescriptor, UserInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class DriveShareAsync:
    """Async facade wiring the grant store, authorization engine, and link issuer.

    This is the authorization boundary: every method returns a typed
    result (or a bool) and never raises a ``DriveShareError``.  Each
    call runs in its own session, committed on success and rolled back
    on failure.

    Engine-based setup::

        engine = create_async_engine("postgresql+asyncpg://...")
        ds = DriveShareAsync(engine=engine)
        await ds.create_tables()
        result = await ds.share_with_user("f1", "alice", "bob", "read")

    When no directory or identity provider is given, the SQL
    implementations from this package are used.
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        dialect: str | None = None,
        config: ShareConfig | None = None,
        directory: FileDirectory | None = None,
        identity: IdentityProvider | None = None,
        blobs: BlobStore | None = None,
        grant_model: type[AccessGrantBase] | None = None,
        hide_model: type[GrantHideBase] | None = None,
        db_schema: str | None = None,
        clock: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is None and session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self.config = config or ShareConfig()
        self._engine = engine
        if engine is not None:
            dialect = get_dialect(engine)
            if dialect == "sqlite":
                configure_sqlite(engine, self.config.sqlite_busy_timeout)
            session_factory = async_sessionmaker(
                engine, class_=AsyncSession, expire_on_commit=False
            )
        assert session_factory is not None
        self._session_factory = session_factory
        self.dialect = dialect or "sqlite"

        self.issuer = LinkIssuer(
            token_bytes=self.config.token_bytes,
            max_attempts=self.config.max_token_attempts,
            clock=clock,
            token_factory=token_factory,
        )
        self.directory: FileDirectory = directory or FileDirectoryService(clock=self.issuer.now)
        self.identity: IdentityProvider = identity or IdentityService(clock=self.issuer.now)
        self.blobs = blobs
        self.store = GrantStore(
            self.directory,
            self.identity,
            self.issuer,
            grant_model=grant_model,
            hide_model=hide_model,
            dialect=self.dialect,
            schema=db_schema,
        )
        self.authorization = AuthorizationEngine(self.store)
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_tables(self) -> None:
        """Create the grant tables, plus the SQL collaborators' tables in use."""
        if self._engine is None:
            raise ValueError("create_tables() requires an engine")
        models: list[Any] = [self.store.grant_model, self.store.hide_model]
        if isinstance(self.directory, FileDirectoryService):
            models.append(self.directory.file_model)
        if isinstance(self.identity, IdentityService):
            models.extend([self.identity.user_model, self.identity.session_model])
        async with self._engine.begin() as conn:
            for model in models:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )

    async def close(self) -> None:
        """Dispose the engine if this instance was built from one."""
        if self._closed:
            return
        self._closed = True
        if self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> DriveShareAsync:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def _run(self, operation: str, fn: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run *fn* in a fresh session, retrying connection failures."""
        attempts = self.config.storage_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                async with self.session() as sess:
                    return await fn(sess)
            except _CONNECTION_ERRORS as e:
                if attempt < attempts:
                    logger.warning(
                        "Storage error during %s (attempt %d/%d), retrying",
                        operation,
                        attempt,
                        attempts,
                        exc_info=True,
                    )
                    continue
                logger.error("Storage unavailable during %s", operation, exc_info=True)
                raise StorageUnavailableError(f"Storage unavailable during {operation}") from e
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Share operations
    # ------------------------------------------------------------------

    async def share_with_user(
        self,
        file_id: str,
        granter_id: str,
        subject_user_id: str,
        permission: str | Permission = Permission.READ,
        *,
        expires_at: datetime | None = None,
    ) -> ShareResult:
        """Share a file with one user, or update the level of an existing share."""

        async def op(sess: AsyncSession) -> ShareResult:
            grant = await self.store.upsert_direct_grant(
                sess, file_id, granter_id, subject_user_id, permission, expires_at=expires_at
            )
            info = self.store.grant_to_info(grant)
            return ShareResult(
                success=True,
                message=f"Shared {file_id} with {subject_user_id} ({info.permission.value})",
                grant=info,
            )

        try:
            return await self._run("share_with_user", op)
        except DriveShareError as e:
            return ShareResult(success=False, message=str(e), code=e.code)

    async def create_public_link(
        self,
        file_id: str,
        granter_id: str,
        permission: str | Permission = Permission.READ,
        *,
        expires_at: datetime | None = None,
        ttl: timedelta | None = None,
    ) -> PublicLinkResult:
        """Create a new public link.  *ttl* is an alternative to *expires_at*."""
        if expires_at is not None and ttl is not None:
            raise ValueError("Provide expires_at or ttl, not both")
        if ttl is not None:
            expires_at = self.issuer.expiry_after(ttl)

        async def op(sess: AsyncSession) -> PublicLinkResult:
            grant, token = await self.store.create_public_grant(
                sess, file_id, granter_id, permission, expires_at=expires_at
            )
            return PublicLinkResult(
                success=True,
                message=f"Created public link for {file_id}",
                grant=self.store.grant_to_info(grant),
                token=token,
            )

        try:
            return await self._run("create_public_link", op)
        except DriveShareError as e:
            return PublicLinkResult(success=False, message=str(e), code=e.code)

    async def get_by_token(
        self,
        token: str,
        principal: Principal | None = None,
    ) -> TokenAccessResult:
        """Resolve a public token for the public download/view path."""

        async def op(sess: AsyncSession) -> TokenAccessResult:
            resolved = await self.authorization.resolve_by_token(sess, token, principal)
            return TokenAccessResult(
                success=True,
                message=f"Resolved share for {resolved.file.name}",
                file=resolved.file,
                grant=resolved.grant,
            )

        try:
            return await self._run("get_by_token", op)
        except DriveShareError as e:
            return TokenAccessResult(success=False, message=str(e), code=e.code)

    async def list_shares_on_file(self, file_id: str, owner_id: str) -> ListGrantsResult:
        """List every grant on a file the caller owns."""
        try:
            grants = await self._run(
                "list_shares_on_file",
                lambda sess: self.store.list_grants_for_file(sess, file_id, owner_id),
            )
        except DriveShareError as e:
            return ListGrantsResult(success=False, message=str(e), code=e.code)
        return ListGrantsResult(
            success=True,
            message=f"Found {len(grants)} share(s)",
            grants=grants,
        )

    async def list_shared_with_me(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> ListFilesResult:
        """List files shared directly with *user_id*, one page at a time."""
        page = limit if limit is not None else self.config.default_page_size
        try:
            files = await self._run(
                "list_shared_with_me",
                lambda sess: self.authorization.list_visible_to_user(
                    sess, user_id, limit=page, offset=offset
                ),
            )
        except DriveShareError as e:
            return ListFilesResult(success=False, message=str(e), code=e.code)
        return ListFilesResult(
            success=True,
            message=f"Found {len(files)} shared file(s)",
            files=files,
        )

    async def revoke(self, grant_id: str, caller_id: str) -> RevokeResult:
        """Delete a grant the caller created."""
        try:
            await self._run(
                "revoke", lambda sess: self.store.revoke_grant(sess, grant_id, caller_id)
            )
        except DriveShareError as e:
            return RevokeResult(success=False, message=str(e), code=e.code)
        return RevokeResult(success=True, message=f"Revoked share {grant_id}", count=1)

    async def unshare_all(self, file_id: str, owner_id: str) -> RevokeResult:
        """Delete every grant the owner created on a file."""
        try:
            count = await self._run(
                "unshare_all",
                lambda sess: self.store.revoke_all_grants_for_file(sess, file_id, owner_id),
            )
        except DriveShareError as e:
            return RevokeResult(success=False, message=str(e), code=e.code)
        return RevokeResult(
            success=True,
            message=f"Revoked {count} share(s) on {file_id}",
            count=count,
        )

    async def hide_share(self, grant_id: str, recipient_id: str) -> RevokeResult:
        """Remove a share from the recipient's listing without revoking it."""
        try:
            await self._run(
                "hide_share",
                lambda sess: self.store.hide_from_recipient_view(sess, grant_id, recipient_id),
            )
        except DriveShareError as e:
            return RevokeResult(success=False, message=str(e), code=e.code)
        return RevokeResult(success=True, message=f"Removed share {grant_id} from shared with me")

    async def purge_expired(self) -> int:
        """Delete expired grants.  Optional; expiry is enforced lazily anyway."""
        return await self._run("purge_expired", self.store.purge_expired)

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    async def check_access(
        self,
        principal: Principal | None,
        file_id: str,
        required: str | Permission = Permission.READ,
    ) -> AccessResult:
        """Access check that reports why it could not be answered.

        A denial is a successful check with ``allowed=False``.  An
        unknown permission level or an unreachable store gives
        ``success=False`` with the matching ``code``.
        """
        try:
            allowed = await self._run(
                "can_access",
                lambda sess: self.authorization.can_access(sess, principal, file_id, required),
            )
        except DriveShareError as e:
            logger.debug("Access check on %s failed: %s", file_id, e.code)
            return AccessResult(success=False, message=str(e), code=e.code)
        return AccessResult(
            success=True,
            message="Access granted" if allowed else "Access denied",
            allowed=allowed,
        )

    async def can_access(
        self,
        principal: Principal | None,
        file_id: str,
        required: str | Permission = Permission.READ,
    ) -> bool:
        """Fail-closed access check by file id.

        Returns False both on denial and when the check cannot run
        (``STORAGE_UNAVAILABLE``, ``INVALID_PERMISSION``).  Use
        :meth:`check_access` to tell the two apart.
        """
        result = await self.check_access(principal, file_id, required)
        return result.allowed

    async def can_read(self, principal: Principal | None, file_id: str) -> bool:
        """``can_access`` at READ level; fails closed the same way."""
        return await self.can_access(principal, file_id, Permission.READ)

    async def resolve_principal(self, credential: str) -> Principal | None:
        """Turn a session credential into a principal, or None (anonymous).

        An unreachable store also yields None, so the caller is treated
        as anonymous rather than erroring.
        """
        try:
            user_id = await self._run(
                "resolve_principal",
                lambda sess: self.identity.resolve_principal(sess, credential),
            )
        except StorageUnavailableError:
            return None
        return Principal(user_id) if user_id else None

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    async def open_shared_file(
        self,
        token: str,
        principal: Principal | None = None,
    ) -> DownloadResult:
        """Resolve *token* and open the file content as a chunk stream."""
        result = await self._resolve_download_by_token(token, principal)
        return await self._attach_stream(result)

    async def read_shared_file(
        self,
        token: str,
        principal: Principal | None = None,
    ) -> DownloadResult:
        """Resolve *token* and read the whole file content."""
        result = await self._resolve_download_by_token(token, principal)
        return await self._attach_content(result)

    async def open_file(self, principal: Principal | None, file_id: str) -> DownloadResult:
        """Check read access by file id and open the content as a chunk stream."""
        result = await self._resolve_download_by_id(principal, file_id)
        return await self._attach_stream(result)

    async def read_file(self, principal: Principal | None, file_id: str) -> DownloadResult:
        """Check read access by file id and read the whole content."""
        result = await self._resolve_download_by_id(principal, file_id)
        return await self._attach_content(result)

    async def _resolve_download_by_token(
        self,
        token: str,
        principal: Principal | None,
    ) -> DownloadResult:
        access = await self.get_by_token(token, principal)
        if not access.success:
            return DownloadResult(success=False, message=access.message, code=access.code)
        return DownloadResult(
            success=True,
            message=access.message,
            file=access.file,
            permission=access.permission,
        )

    async def _resolve_download_by_id(
        self,
        principal: Principal | None,
        file_id: str,
    ) -> DownloadResult:
        async def op(sess: AsyncSession) -> DownloadResult:
            # Denials look identical to missing files.
            if principal is None or not await self.authorization.can_read(
                sess, principal, file_id
            ):
                raise NoSuchFileError("File not found")
            file = await self.directory.get_file_descriptor(sess, file_id)
            if file is None:
                raise NoSuchFileError("File not found")
            level = Permission.ADMIN
            if principal.user_id != file.owner_id:
                grant = await self.store.find_active_direct_grant(sess, file_id, principal.user_id)
                if grant is None:
                    raise NoSuchFileError("File not found")
                level = Permission(grant.permission)
            return DownloadResult(
                success=True,
                message=f"Opened {file.name}",
                file=file,
                permission=level,
            )

        try:
            return await self._run("open_file", op)
        except DriveShareError as e:
            return DownloadResult(success=False, message=str(e), code=e.code)

    def _require_blobs(self) -> BlobStore:
        if self.blobs is None:
            raise ValueError("No blob store configured")
        return self.blobs

    async def _attach_stream(self, result: DownloadResult) -> DownloadResult:
        if not result.success or result.file is None:
            return result
        blobs = self._require_blobs()
        if not await blobs.exists(result.file.storage_key):
            err = BlobNotFoundError("File content not found")
            return DownloadResult(success=False, message=str(err), code=err.code)
        result.stream = blobs.open(result.file.storage_key)
        return result

    async def _attach_content(self, result: DownloadResult) -> DownloadResult:
        if not result.success or result.file is None:
            return result
        blobs = self._require_blobs()
        try:
            result.content = await blobs.read_bytes(result.file.storage_key)
        except BlobNotFoundError as e:
            return DownloadResult(success=False, message=str(e), code=e.code)
        except PermissionError:
            logger.warning("Rejected storage key for file %s", result.file.file_id)
            err = BlobNotFoundError("File content not found")
            return DownloadResult(success=False, message=str(err), code=err.code)
        return result

    # ------------------------------------------------------------------
    # Built-in collaborator records (SQL directory and identity only)
    # ------------------------------------------------------------------

    def _sql_directory(self) -> FileDirectoryService:
        if not isinstance(self.directory, FileDirectoryService):
            raise ValueError("File records are managed by an external directory")
        return self.directory

    def _sql_identity(self) -> IdentityService:
        if not isinstance(self.identity, IdentityService):
            raise ValueError("Users are managed by an external identity provider")
        return self.identity

    async def create_user(
        self,
        username: str,
        email: str,
        *,
        user_id: str | None = None,
    ) -> UserInfo:
        identity = self._sql_identity()
        return await self._run(
            "create_user",
            lambda sess: identity.create_user(sess, username, email, user_id=user_id),
        )

    async def login(self, user_id: str) -> str:
        """Open a session for *user_id* and return its credential."""
        identity = self._sql_identity()
        return await self._run("login", lambda sess: identity.create_session(sess, user_id))

    async def add_file(
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
        directory = self._sql_directory()
        return await self._run(
            "add_file",
            lambda sess: directory.add_file(
                sess,
                owner_id,
                name,
                storage_key=storage_key,
                size_bytes=size_bytes,
                mime_type=mime_type,
                parent_folder_id=parent_folder_id,
                file_id=file_id,
            ),
        )

    async def soft_delete_file(self, file_id: str, owner_id: str) -> bool:
        """Move a file to trash.  Its grants stay but become inert."""
        directory = self._sql_directory()
        return await self._run(
            "soft_delete_file", lambda sess: directory.soft_delete(sess, file_id, owner_id)
        )

    async def restore_file(self, file_id: str, owner_id: str) -> bool:
        """Restore a trashed file.  Its surviving grants work again."""
        directory = self._sql_directory()
        return await self._run(
            "restore_file", lambda sess: directory.restore(sess, file_id, owner_id)
        )

    async def logout(self, credential: str) -> bool:
        identity = self._sql_identity()
        return await self._run("logout", lambda sess: identity.end_session(sess, credential))
