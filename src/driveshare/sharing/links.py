"""LinkIssuer — public share token minting, clock, and expiry evaluation.

Tokens come from ``secrets`` (never a counter or a timestamp) and are
rendered URL-safe.  Expiry is a plain comparison against the issuer's
clock at resolution time; there is no persisted "expired" state.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from .exceptions import TokenGenerationError
from .utils import ensure_utc, token_hint, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from sqlalchemy.ext.asyncio import AsyncSession

    from driveshare.models.grants import AccessGrantBase

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24
"""Default random bytes per token (192 bits, 32 URL-safe characters)."""

MIN_TOKEN_BYTES = 16

MAX_TOKEN_ATTEMPTS = 5


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Return a cryptographically random URL-safe token."""
    if nbytes < MIN_TOKEN_BYTES:
        raise ValueError(f"Share tokens need at least {MIN_TOKEN_BYTES} random bytes")
    return secrets.token_urlsafe(nbytes)


class LinkIssuer:
    """Mints unique public-link tokens and answers "has this expired?".

    *clock* returns the current aware UTC datetime; the grant store
    stamps rows with it and every expiry check reads it, so tests can
    move time forward.  *token_factory* replaces the random source and
    exists for collision tests only.
    """

    def __init__(
        self,
        *,
        token_bytes: int = TOKEN_BYTES,
        max_attempts: int = MAX_TOKEN_ATTEMPTS,
        clock: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        if token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be >= {MIN_TOKEN_BYTES}, got {token_bytes}")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.token_bytes = token_bytes
        self.max_attempts = max_attempts
        self._clock = clock or utc_now
        self._token_factory = token_factory

    # ------------------------------------------------------------------
    # Clock and expiry
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def is_expired(self, expires_at: datetime | None, now: datetime | None = None) -> bool:
        """True once *now* has reached *expires_at*.  ``None`` never expires."""
        if expires_at is None:
            return False
        current = now if now is not None else self.now()
        return ensure_utc(expires_at) <= current

    def is_active(self, grant: AccessGrantBase, now: datetime | None = None) -> bool:
        return not self.is_expired(grant.expires_at, now)

    def expiry_after(self, ttl: timedelta) -> datetime:
        """Absolute expiry *ttl* from now."""
        return self.now() + ttl

    # ------------------------------------------------------------------
    # Token minting
    # ------------------------------------------------------------------

    def new_token(self) -> str:
        if self._token_factory is not None:
            return self._token_factory()
        return generate_token(self.token_bytes)

    async def insert_with_token(
        self,
        session: AsyncSession,
        build: Callable[[str], AccessGrantBase],
    ) -> tuple[AccessGrantBase, str]:
        """Insert the grant built by *build(token)* under a fresh token.

        Each attempt runs in a savepoint.  A unique-constraint violation
        rolls the savepoint back and the next attempt draws a new token;
        an existing grant is never overwritten.
        """
        for attempt in range(1, self.max_attempts + 1):
            token = self.new_token()
            grant = build(token)
            try:
                async with session.begin_nested():
                    session.add(grant)
                    await session.flush()
            except IntegrityError:
                logger.warning(
                    "Share token collision on attempt %d/%d (%s)",
                    attempt,
                    self.max_attempts,
                    token_hint(token),
                )
                continue
            return grant, token

        raise TokenGenerationError(
            f"Could not generate a unique share token after {self.max_attempts} attempts"
        )
