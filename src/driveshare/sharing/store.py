"""GrantStore — durable CRUD over access grants.

Stateless service that receives the grant models and collaborators at
construction and a session at call time.  Every method flushes but
never commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from .dialect import upsert
from .exceptions import NoSuchFileError, NoSuchUserError, SelfShareError, ShareNotFoundError
from .links import LinkIssuer
from .permissions import Permission
from .types import DirectUser, GrantInfo, PublicLink
from .utils import new_id, token_hint, utc_or_none

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from driveshare.models.grants import AccessGrantBase, GrantHideBase

    from .protocol import FileDirectory, IdentityProvider
    from .types import FileDescriptor, UserInfo

logger = logging.getLogger(__name__)

_DIRECT_KEYS = ["file_id", "granted_by", "subject_user_id"]


class GrantStore:
    """Manages direct and public-link grants on files.

    Ownership and existence failures are reported identically as
    ``NoSuchFileError``, and grant lookups that fail for any reason as
    ``ShareNotFoundError``, so callers cannot probe for files or grants
    they have no rights to.
    """

    def __init__(
        self,
        directory: FileDirectory,
        identity: IdentityProvider,
        issuer: LinkIssuer | None = None,
        *,
        grant_model: type[AccessGrantBase] | None = None,
        hide_model: type[GrantHideBase] | None = None,
        dialect: str = "sqlite",
        schema: str | None = None,
    ) -> None:
        from driveshare.models.grants import AccessGrant, GrantHide

        self._grant_model: type[AccessGrantBase] = grant_model or AccessGrant  # type: ignore[assignment]
        self._hide_model: type[GrantHideBase] = hide_model or GrantHide  # type: ignore[assignment]
        self.directory = directory
        self.identity = identity
        self.issuer = issuer or LinkIssuer()
        self.dialect = dialect
        self.schema = schema

    @property
    def grant_model(self) -> type[AccessGrantBase]:
        return self._grant_model

    @property
    def hide_model(self) -> type[GrantHideBase]:
        return self._hide_model

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def upsert_direct_grant(
        self,
        session: AsyncSession,
        file_id: str,
        granted_by: str,
        subject_user_id: str,
        permission: str | Permission,
        *,
        expires_at: datetime | None = None,
    ) -> AccessGrantBase:
        """Share *file_id* with one user, or update the existing share.

        The insert-or-update is a single statement keyed on
        ``(file_id, granted_by, subject_user_id)``, so concurrent shares
        of the same pair converge on one row.
        Re-sharing clears any hide marker the recipient set on the grant.
        """
        level = Permission.parse(permission)
        await self._require_owned_file(session, file_id, granted_by)
        if subject_user_id == granted_by:
            raise SelfShareError("Cannot share a file with its owner")
        if not await self.identity.user_exists(session, subject_user_id):
            raise NoSuchUserError("User not found")

        now = self.issuer.now()
        await upsert(
            session,
            self.dialect,
            self._grant_model,
            {
                "id": new_id(),
                "file_id": file_id,
                "granted_by": granted_by,
                "subject_user_id": subject_user_id,
                "token": None,
                "permission": level.value,
                "created_at": now,
                "updated_at": now,
                "expires_at": expires_at,
            },
            conflict_keys=_DIRECT_KEYS,
            update_keys=["permission", "updated_at", "expires_at"],
            schema=self.schema,
        )

        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(
                model.file_id == file_id,
                model.granted_by == granted_by,
                model.subject_user_id == subject_user_id,
            )
            .execution_options(populate_existing=True)
        )
        grant = result.scalar_one()
        await self._delete_hides(session, [grant.id])
        logger.debug(
            "Direct grant %s on %s for %s (%s)", grant.id, file_id, subject_user_id, level.value
        )
        return grant

    async def create_public_grant(
        self,
        session: AsyncSession,
        file_id: str,
        granted_by: str,
        permission: str | Permission,
        *,
        expires_at: datetime | None = None,
    ) -> tuple[AccessGrantBase, str]:
        """Create a new public link on *file_id*. Returns ``(grant, token)``.

        Links are never deduplicated: each call yields an independently
        revocable grant with its own token.
        """
        level = Permission.parse(permission)
        await self._require_owned_file(session, file_id, granted_by)

        now = self.issuer.now()

        def build(token: str) -> AccessGrantBase:
            return self._grant_model(
                id=new_id(),
                file_id=file_id,
                granted_by=granted_by,
                token=token,
                permission=level.value,
                created_at=now,
                updated_at=now,
                expires_at=expires_at,
            )

        grant, token = await self.issuer.insert_with_token(session, build)
        logger.debug("Public grant %s on %s (%s)", grant.id, file_id, token_hint(token))
        return grant, token

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_grant(self, session: AsyncSession, grant_id: str) -> AccessGrantBase | None:
        model = self._grant_model
        result = await session.execute(select(model).where(model.id == grant_id))
        return result.scalar_one_or_none()

    async def resolve_public_grant(
        self,
        session: AsyncSession,
        token: str,
    ) -> AccessGrantBase | None:
        """Return the live grant behind *token*, or None.

        Missing, expired, and deleted-file cases all return None.
        """
        resolved = await self.resolve_public_grant_with_file(session, token)
        return resolved[0] if resolved is not None else None

    async def resolve_public_grant_with_file(
        self,
        session: AsyncSession,
        token: str,
    ) -> tuple[AccessGrantBase, FileDescriptor] | None:
        """Like ``resolve_public_grant`` but also returns the file descriptor."""
        if not token:
            return None
        model = self._grant_model
        result = await session.execute(select(model).where(model.token == token))
        grant = result.scalar_one_or_none()
        if grant is None or not self.issuer.is_active(grant):
            return None
        file = await self.directory.get_file_descriptor(session, grant.file_id)
        if file is None or file.is_deleted:
            return None
        return grant, file

    async def find_active_direct_grant(
        self,
        session: AsyncSession,
        file_id: str,
        user_id: str,
    ) -> AccessGrantBase | None:
        """Strongest unexpired direct grant naming *user_id* on *file_id*."""
        model = self._grant_model
        result = await session.execute(
            select(model).where(
                model.file_id == file_id,
                model.subject_user_id == user_id,
            )
        )
        now = self.issuer.now()
        best: AccessGrantBase | None = None
        for grant in result.scalars().all():
            if not self.issuer.is_active(grant, now):
                continue
            if best is None or Permission(grant.permission) > Permission(best.permission):
                best = grant
        return best

    async def list_active_direct_grants_for(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> list[AccessGrantBase]:
        """Unexpired, unhidden direct grants naming *user_id*, newest first."""
        model = self._grant_model
        hide = self._hide_model
        hidden = select(hide.grant_id).where(hide.recipient_id == user_id)
        result = await session.execute(
            select(model)
            .where(
                model.subject_user_id == user_id,
                model.id.not_in(hidden),  # type: ignore[union-attr]
            )
            .order_by(model.created_at.desc(), model.id.desc())  # type: ignore[union-attr]
        )
        now = self.issuer.now()
        return [g for g in result.scalars().all() if self.issuer.is_active(g, now)]

    async def list_grants_for_file(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str,
    ) -> list[GrantInfo]:
        """All grants on a file the caller owns, expired ones included, newest first."""
        await self._require_owned_file(session, file_id, owner_id)
        model = self._grant_model
        result = await session.execute(
            select(model)
            .where(model.file_id == file_id)
            .order_by(model.created_at.desc(), model.id.desc())  # type: ignore[union-attr]
        )
        grants = list(result.scalars().all())
        recipients = await self.identity.get_users(
            session, (g.subject_user_id for g in grants if g.subject_user_id is not None)
        )
        return [
            self.grant_to_info(
                g, recipients.get(g.subject_user_id) if g.subject_user_id else None
            )
            for g in grants
        ]

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    async def revoke_grant(self, session: AsyncSession, grant_id: str, caller_id: str) -> None:
        """Delete a grant created by *caller_id*.

        Grants on a trashed file are frozen until the file is restored.
        The delete itself stays conditional: a concurrent second
        revocation matches zero rows and reports ``ShareNotFoundError``.
        """
        grant = await self.get_grant(session, grant_id)
        if grant is None or grant.granted_by != caller_id:
            raise ShareNotFoundError("Share not found")
        await self._require_live_file(session, grant.file_id)

        model = self._grant_model
        result = await session.execute(
            delete(model).where(model.id == grant_id, model.granted_by == caller_id)
        )
        if not result.rowcount:
            raise ShareNotFoundError("Share not found")
        await self._delete_hides(session, [grant_id])
        logger.debug("Revoked grant %s", grant_id)

    async def revoke_all_grants_for_file(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str,
    ) -> int:
        """Delete every grant *owner_id* created on *file_id*. Returns the count."""
        await self._require_owned_file(session, file_id, owner_id)
        model = self._grant_model
        result = await session.execute(
            select(model.id).where(  # type: ignore[arg-type]
                model.file_id == file_id,
                model.granted_by == owner_id,
            )
        )
        ids = [row[0] for row in result.all()]
        if not ids:
            return 0
        deleted = await session.execute(
            delete(model).where(model.id.in_(ids))  # type: ignore[union-attr]
        )
        await self._delete_hides(session, ids)
        count = deleted.rowcount or 0
        logger.info("Revoked %d grant(s) on %s", count, file_id)
        return count

    async def hide_from_recipient_view(
        self,
        session: AsyncSession,
        grant_id: str,
        recipient_id: str,
    ) -> None:
        """Drop a direct grant from its recipient's listing without revoking it."""
        grant = await self.get_grant(session, grant_id)
        if grant is None or grant.subject_user_id is None or grant.subject_user_id != recipient_id:
            raise ShareNotFoundError("Share not found")
        await self._require_live_file(session, grant.file_id)
        await upsert(
            session,
            self.dialect,
            self._hide_model,
            {
                "id": new_id(),
                "grant_id": grant_id,
                "recipient_id": recipient_id,
                "hidden_at": self.issuer.now(),
            },
            conflict_keys=["grant_id", "recipient_id"],
            update_keys=[],
            schema=self.schema,
        )
        logger.debug("Grant %s hidden by recipient %s", grant_id, recipient_id)

    async def purge_expired(self, session: AsyncSession) -> int:
        """Delete expired grants and their hide markers. Returns the count."""
        model = self._grant_model
        result = await session.execute(
            select(model).where(model.expires_at.is_not(None))  # type: ignore[union-attr]
        )
        now = self.issuer.now()
        ids = [g.id for g in result.scalars().all() if not self.issuer.is_active(g, now)]
        if not ids:
            return 0
        deleted = await session.execute(
            delete(model).where(model.id.in_(ids))  # type: ignore[union-attr]
        )
        await self._delete_hides(session, ids)
        count = deleted.rowcount or 0
        logger.info("Purged %d expired grant(s)", count)
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_owned_file(
        self,
        session: AsyncSession,
        file_id: str,
        owner_id: str,
    ) -> FileDescriptor:
        file = await self.directory.get_file_descriptor(session, file_id, owner_id)
        if file is None or file.is_deleted or file.owner_id != owner_id:
            raise NoSuchFileError("File not found")
        return file

    async def _require_live_file(self, session: AsyncSession, file_id: str) -> None:
        file = await self.directory.get_file_descriptor(session, file_id)
        if file is None or file.is_deleted:
            raise ShareNotFoundError("Share not found")

    async def _delete_hides(self, session: AsyncSession, grant_ids: list[str]) -> None:
        hide = self._hide_model
        await session.execute(
            delete(hide).where(hide.grant_id.in_(grant_ids))  # type: ignore[union-attr]
        )

    @staticmethod
    def grant_to_info(g: AccessGrantBase, recipient: UserInfo | None = None) -> GrantInfo:
        """Convert a grant record to GrantInfo."""
        subject: DirectUser | PublicLink
        if g.token is not None:
            subject = PublicLink(token=g.token)
        else:
            subject = DirectUser(user_id=g.subject_user_id or "")
        return GrantInfo(
            grant_id=g.id,
            file_id=g.file_id,
            granted_by=g.granted_by,
            subject=subject,
            permission=Permission(g.permission),
            created_at=utc_or_none(g.created_at),
            updated_at=utc_or_none(g.updated_at),
            expires_at=utc_or_none(g.expires_at),
            recipient=recipient,
        )
