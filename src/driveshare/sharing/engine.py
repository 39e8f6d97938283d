"""AuthorizationEngine — the single choke point for read access decisions.

Three questions are answered here:

- may a principal read (or write, or administer) a file by id,
- what does a public token resolve to,
- which files are shared with a user.

The engine never reads ambient request state; the principal is always
an explicit argument and ``None`` means anonymous.  Every path fails
closed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .exceptions import ShareNotFoundError
from .permissions import Permission
from .types import FileSummary, ResolvedShare
from .utils import utc_or_none

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .protocol import FileDirectory, IdentityProvider
    from .store import GrantStore
    from .types import Principal


class AuthorizationEngine:
    """Evaluates access against the grant store and the file directory."""

    def __init__(
        self,
        store: GrantStore,
        directory: FileDirectory | None = None,
        identity: IdentityProvider | None = None,
    ) -> None:
        self.store = store
        self.directory = directory or store.directory
        self.identity = identity or store.identity

    # ------------------------------------------------------------------
    # File-id path
    # ------------------------------------------------------------------

    async def can_access(
        self,
        session: AsyncSession,
        principal: Principal | None,
        file_id: str,
        required: str | Permission = Permission.READ,
    ) -> bool:
        """Check that *principal* holds at least *required* on *file_id*.

        The owner passes every level.  Other users need an unexpired
        direct grant at or above *required*.  Public grants are never
        consulted here; they only work through their token.
        """
        level = Permission.parse(required)
        file = await self.directory.get_file_descriptor(session, file_id)
        if file is None or file.is_deleted:
            return False
        if principal is None:
            return False
        if principal.user_id == file.owner_id:
            return True
        grant = await self.store.find_active_direct_grant(session, file_id, principal.user_id)
        if grant is None:
            return False
        return Permission(grant.permission) >= level

    async def can_read(
        self,
        session: AsyncSession,
        principal: Principal | None,
        file_id: str,
    ) -> bool:
        return await self.can_access(session, principal, file_id, Permission.READ)

    # ------------------------------------------------------------------
    # Token path
    # ------------------------------------------------------------------

    async def resolve_by_token(
        self,
        session: AsyncSession,
        token: str,
        principal: Principal | None = None,
    ) -> ResolvedShare:
        """Resolve a public token to its file and grant.

        *principal* is accepted so that public links can later be
        restricted to signed-in users without an interface change; it
        does not restrict access today.
        """
        resolved = await self.store.resolve_public_grant_with_file(session, token)
        if resolved is None:
            raise ShareNotFoundError("Share not found or expired")
        grant, file = resolved
        return ResolvedShare(file=file, grant=self.store.grant_to_info(grant))

    # ------------------------------------------------------------------
    # Shared-with-me listing
    # ------------------------------------------------------------------

    async def list_visible_to_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[FileSummary]:
        """Files shared directly with *user_id*, newest grant first.

        Hidden grants, expired grants, and deleted files are excluded
        before *offset* and *limit* apply.
        """
        grants = await self.store.list_active_direct_grants_for(session, user_id)
        if not grants:
            return []
        files = await self.directory.get_file_descriptors(session, (g.file_id for g in grants))
        granters = await self.identity.get_users(session, (g.granted_by for g in grants))

        summaries: list[FileSummary] = []
        for g in grants:
            file = files.get(g.file_id)
            if file is None or file.is_deleted:
                continue
            granter = granters.get(g.granted_by)
            summaries.append(
                FileSummary(
                    file_id=file.file_id,
                    name=file.name,
                    grant_id=g.id,
                    permission=Permission(g.permission),
                    shared_by=g.granted_by,
                    size_bytes=file.size_bytes,
                    mime_type=file.mime_type,
                    created_at=file.created_at,
                    shared_at=utc_or_none(g.created_at),
                    expires_at=utc_or_none(g.expires_at),
                    shared_by_username=granter.username if granter else None,
                )
            )

        end = None if limit is None else offset + limit
        return summaries[offset:end]
