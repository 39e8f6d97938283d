"""Shared fixtures for driveshare tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import driveshare.models  # noqa: F401  (registers tables on SQLModel.metadata)
from driveshare.sharing.dialect import configure_sqlite
from driveshare.sharing.directory import FileDirectoryService
from driveshare.sharing.engine import AuthorizationEngine
from driveshare.sharing.identity import IdentityService
from driveshare.sharing.links import LinkIssuer
from driveshare.sharing.store import GrantStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta = timedelta(seconds=1)) -> datetime:
        self.current = self.current + delta
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    configure_sqlite(eng)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def issuer(clock: FakeClock) -> LinkIssuer:
    return LinkIssuer(clock=clock)


@pytest.fixture
def directory(issuer: LinkIssuer) -> FileDirectoryService:
    return FileDirectoryService(clock=issuer.now)


@pytest.fixture
def identity(issuer: LinkIssuer) -> IdentityService:
    return IdentityService(clock=issuer.now)


@pytest.fixture
def store(
    directory: FileDirectoryService,
    identity: IdentityService,
    issuer: LinkIssuer,
) -> GrantStore:
    return GrantStore(directory, identity, issuer)


@pytest.fixture
def authz(store: GrantStore) -> AuthorizationEngine:
    return AuthorizationEngine(store)


@pytest.fixture
async def seeded(
    async_session: AsyncSession,
    directory: FileDirectoryService,
    identity: IdentityService,
) -> AsyncSession:
    """Users alice, bob, carol; alice owns f1 and f2, bob owns b1."""
    for name in ("alice", "bob", "carol"):
        await identity.create_user(async_session, name, f"{name}@example.com", user_id=name)
    await directory.add_file(async_session, "alice", "report.pdf", file_id="f1", size_bytes=10)
    await directory.add_file(async_session, "alice", "notes.txt", file_id="f2", size_bytes=5)
    await directory.add_file(async_session, "bob", "bob.png", file_id="b1", size_bytes=7)
    return async_session
