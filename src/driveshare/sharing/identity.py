"""IdentityService — users, login sessions, and credential resolution."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from .types import UserInfo
from .utils import ensure_utc, new_id, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from driveshare.models.users import UserAccountBase, UserSessionBase

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(days=7)


class IdentityService:
    """SQL implementation of the ``IdentityProvider`` protocol.

    A credential is a session id issued by ``create_session``.  Password
    handling belongs to the host application and is not modelled here.
    """

    def __init__(
        self,
        user_model: type[UserAccountBase] | None = None,
        session_model: type[UserSessionBase] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        from driveshare.models.users import UserAccount, UserSession

        self._user_model: type[UserAccountBase] = user_model or UserAccount  # type: ignore[assignment]
        self._session_model: type[UserSessionBase] = session_model or UserSession  # type: ignore[assignment]
        self._clock = clock or utc_now

    @property
    def user_model(self) -> type[UserAccountBase]:
        return self._user_model

    @property
    def session_model(self) -> type[UserSessionBase]:
        return self._session_model

    # ------------------------------------------------------------------
    # IdentityProvider protocol
    # ------------------------------------------------------------------

    async def resolve_principal(self, session: AsyncSession, credential: str) -> str | None:
        """Return the user id behind an unexpired session, else None."""
        if not credential:
            return None
        model = self._session_model
        result = await session.execute(select(model).where(model.id == credential))
        record = result.scalar_one_or_none()
        if record is None:
            return None
        if ensure_utc(record.expires_at) <= ensure_utc(self._clock()):
            return None
        return record.user_id

    async def user_exists(self, session: AsyncSession, user_id: str) -> bool:
        model = self._user_model
        result = await session.execute(select(model.id).where(model.id == user_id))
        return result.first() is not None

    async def get_users(
        self,
        session: AsyncSession,
        user_ids: Iterable[str],
    ) -> dict[str, UserInfo]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        model = self._user_model
        result = await session.execute(
            select(model).where(model.id.in_(ids))  # type: ignore[union-attr]
        )
        return {
            u.id: UserInfo(user_id=u.id, username=u.username, email=u.email)
            for u in result.scalars().all()
        }

    # ------------------------------------------------------------------
    # Users and sessions
    # ------------------------------------------------------------------

    async def create_user(
        self,
        session: AsyncSession,
        username: str,
        email: str,
        *,
        user_id: str | None = None,
    ) -> UserInfo:
        """Create a user record. Flushes but does not commit."""
        user = self._user_model(
            id=user_id or new_id(),
            username=username,
            email=email,
            created_at=self._clock(),
        )
        session.add(user)
        await session.flush()
        return UserInfo(user_id=user.id, username=user.username, email=user.email)

    async def create_session(
        self,
        session: AsyncSession,
        user_id: str,
        ttl: timedelta = SESSION_TTL,
    ) -> str:
        """Open a login session and return its credential."""
        now = ensure_utc(self._clock())
        credential = secrets.token_urlsafe(32)
        session.add(
            self._session_model(
                id=credential,
                user_id=user_id,
                created_at=now,
                expires_at=now + ttl,
            )
        )
        await session.flush()
        logger.debug("Opened session for user %s", user_id)
        return credential

    async def end_session(self, session: AsyncSession, credential: str) -> bool:
        model = self._session_model
        result = await session.execute(delete(model).where(model.id == credential))
        return bool(result.rowcount)
