"""Tests for AuthorizationEngine — read checks, token resolution, shared-with-me."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func
from sqlmodel import select

from driveshare.models.grants import AccessGrant
from driveshare.sharing.exceptions import ErrorCode, InvalidPermissionError, ShareNotFoundError
from driveshare.sharing.permissions import Permission
from driveshare.sharing.types import Principal

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from driveshare.sharing.directory import FileDirectoryService
    from driveshare.sharing.engine import AuthorizationEngine
    from driveshare.sharing.store import GrantStore
    from tests.conftest import FakeClock


ALICE = Principal("alice")
BOB = Principal("bob")
CAROL = Principal("carol")


# ---------------------------------------------------------------------------
# can_read / can_access
# ---------------------------------------------------------------------------


class TestCanRead:
    async def test_owner_always_reads(self, authz: AuthorizationEngine, seeded: AsyncSession):
        assert await authz.can_read(seeded, ALICE, "f1")
        assert await authz.can_read(seeded, BOB, "b1")

    async def test_owner_reads_without_any_grant(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        await store.revoke_all_grants_for_file(seeded, "f1", "alice")
        assert await authz.can_read(seeded, ALICE, "f1")

    async def test_stranger_denied(self, authz: AuthorizationEngine, seeded: AsyncSession):
        assert not await authz.can_read(seeded, BOB, "f1")
        assert not await authz.can_read(seeded, CAROL, "f1")

    async def test_anonymous_denied(self, authz: AuthorizationEngine, seeded: AsyncSession):
        assert not await authz.can_read(seeded, None, "f1")

    async def test_missing_file(self, authz: AuthorizationEngine, seeded: AsyncSession):
        assert not await authz.can_read(seeded, ALICE, "nope")

    async def test_direct_grant_allows(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        assert await authz.can_read(seeded, BOB, "f1")
        assert not await authz.can_read(seeded, CAROL, "f1")

    async def test_grant_is_per_file(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        assert not await authz.can_read(seeded, BOB, "f2")

    async def test_public_grant_does_not_open_file_id_path(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        await store.create_public_grant(seeded, "f1", "alice", "admin")
        assert not await authz.can_read(seeded, BOB, "f1")
        assert not await authz.can_read(seeded, None, "f1")

    async def test_expired_direct_grant(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        await store.upsert_direct_grant(
            seeded, "f1", "alice", "bob", "read", expires_at=clock() + timedelta(minutes=5)
        )
        assert await authz.can_read(seeded, BOB, "f1")
        clock.advance(timedelta(minutes=5))
        assert not await authz.can_read(seeded, BOB, "f1")

    async def test_revoked_grant(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        grant = await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        assert await authz.can_read(seeded, BOB, "f1")
        await store.revoke_grant(seeded, grant.id, "alice")
        assert not await authz.can_read(seeded, BOB, "f1")


class TestCanAccess:
    @pytest.mark.parametrize(
        ("granted", "required", "expected"),
        [
            ("read", "read", True),
            ("read", "write", False),
            ("read", "admin", False),
            ("write", "read", True),
            ("write", "write", True),
            ("write", "admin", False),
            ("admin", "admin", True),
        ],
    )
    async def test_levels(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        granted: str,
        required: str,
        expected: bool,
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", granted)
        assert await authz.can_access(seeded, BOB, "f1", required) is expected

    async def test_owner_passes_admin(self, authz: AuthorizationEngine, seeded: AsyncSession):
        assert await authz.can_access(seeded, ALICE, "f1", Permission.ADMIN)

    async def test_invalid_required_level(
        self, authz: AuthorizationEngine, seeded: AsyncSession
    ):
        with pytest.raises(InvalidPermissionError):
            await authz.can_access(seeded, ALICE, "f1", "owner")


# ---------------------------------------------------------------------------
# Soft delete
# ---------------------------------------------------------------------------


class TestSoftDelete:
    async def test_deleted_file_is_inert_and_restorable(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        directory: FileDirectoryService,
        seeded: AsyncSession,
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        _, token = await store.create_public_grant(seeded, "f1", "alice", "read")

        assert await directory.soft_delete(seeded, "f1", "alice")
        assert not await authz.can_read(seeded, BOB, "f1")
        assert not await authz.can_read(seeded, ALICE, "f1")
        with pytest.raises(ShareNotFoundError):
            await authz.resolve_by_token(seeded, token)
        assert await authz.list_visible_to_user(seeded, "bob") == []

        count = await seeded.execute(select(func.count()).select_from(AccessGrant))
        assert count.scalar_one() == 2

        assert await directory.restore(seeded, "f1", "alice")
        assert await authz.can_read(seeded, BOB, "f1")
        resolved = await authz.resolve_by_token(seeded, token)
        assert resolved.file.file_id == "f1"


# ---------------------------------------------------------------------------
# resolve_by_token
# ---------------------------------------------------------------------------


class TestResolveByToken:
    async def test_resolves_for_anonymous(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        _, token = await store.create_public_grant(seeded, "f1", "alice", "write")
        resolved = await authz.resolve_by_token(seeded, token)
        assert resolved.file.file_id == "f1"
        assert resolved.file.owner_id == "alice"
        assert resolved.permission is Permission.WRITE
        assert resolved.grant.is_public

    async def test_principal_accepted(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        _, token = await store.create_public_grant(seeded, "f1", "alice", "read")
        resolved = await authz.resolve_by_token(seeded, token, CAROL)
        assert resolved.file.file_id == "f1"

    async def test_unknown_token(self, authz: AuthorizationEngine, seeded: AsyncSession):
        with pytest.raises(ShareNotFoundError) as exc_info:
            await authz.resolve_by_token(seeded, "bogus")
        assert exc_info.value.code is ErrorCode.SHARE_NOT_FOUND

    async def test_already_expired_link(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        _, token = await store.create_public_grant(
            seeded, "f1", "alice", "read", expires_at=clock() - timedelta(seconds=1)
        )
        with pytest.raises(ShareNotFoundError):
            await authz.resolve_by_token(seeded, token)

    async def test_no_expiry_survives_clock_advance(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        _, token = await store.create_public_grant(seeded, "f1", "alice", "read")
        clock.advance(timedelta(days=365 * 50))
        resolved = await authz.resolve_by_token(seeded, token)
        assert resolved.file.file_id == "f1"

    async def test_revoked_link(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        grant, token = await store.create_public_grant(seeded, "f1", "alice", "read")
        await authz.resolve_by_token(seeded, token)
        await store.revoke_grant(seeded, grant.id, "alice")
        with pytest.raises(ShareNotFoundError):
            await authz.resolve_by_token(seeded, token)

    async def test_direct_grant_has_no_token_path(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        grant = await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        with pytest.raises(ShareNotFoundError):
            await authz.resolve_by_token(seeded, grant.id)


# ---------------------------------------------------------------------------
# list_visible_to_user
# ---------------------------------------------------------------------------


class TestListVisibleToUser:
    async def test_lists_direct_shares(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        clock.advance()
        await store.upsert_direct_grant(seeded, "f2", "alice", "bob", "write")

        files = await authz.list_visible_to_user(seeded, "bob")
        assert [f.file_id for f in files] == ["f2", "f1"]
        assert files[0].permission is Permission.WRITE
        assert files[0].shared_by == "alice"
        assert files[0].shared_by_username == "alice"
        assert files[1].name == "report.pdf"
        assert files[1].size_bytes == 10

    async def test_excludes_public_and_own(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        await store.create_public_grant(seeded, "f1", "alice", "read")
        assert await authz.list_visible_to_user(seeded, "bob") == []
        assert await authz.list_visible_to_user(seeded, "alice") == []

    async def test_hide_removes_from_listing_only(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        grant = await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        await store.hide_from_recipient_view(seeded, grant.id, "bob")

        assert await authz.list_visible_to_user(seeded, "bob") == []
        owner_view = await store.list_grants_for_file(seeded, "f1", "alice")
        assert [g.grant_id for g in owner_view] == [grant.id]
        assert await authz.can_read(seeded, BOB, "f1")

    async def test_hide_is_per_recipient(
        self, authz: AuthorizationEngine, store: GrantStore, seeded: AsyncSession
    ):
        g_bob = await store.upsert_direct_grant(seeded, "f1", "alice", "bob", "read")
        await store.upsert_direct_grant(seeded, "f1", "alice", "carol", "read")
        await store.hide_from_recipient_view(seeded, g_bob.id, "bob")
        carol_files = await authz.list_visible_to_user(seeded, "carol")
        assert [f.file_id for f in carol_files] == ["f1"]

    async def test_excludes_expired(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        await store.upsert_direct_grant(
            seeded, "f1", "alice", "bob", "read", expires_at=clock() + timedelta(seconds=10)
        )
        clock.advance(timedelta(minutes=1))
        assert await authz.list_visible_to_user(seeded, "bob") == []

    async def test_pagination(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "carol", "read")
        clock.advance()
        await store.upsert_direct_grant(seeded, "f2", "alice", "carol", "read")
        clock.advance()
        await store.upsert_direct_grant(seeded, "b1", "bob", "carol", "read")

        page1 = await authz.list_visible_to_user(seeded, "carol", limit=2)
        page2 = await authz.list_visible_to_user(seeded, "carol", limit=2, offset=2)
        assert [f.file_id for f in page1] == ["b1", "f2"]
        assert [f.file_id for f in page2] == ["f1"]

    async def test_pagination_applies_after_filtering(
        self,
        authz: AuthorizationEngine,
        store: GrantStore,
        directory: FileDirectoryService,
        seeded: AsyncSession,
        clock: FakeClock,
    ):
        await store.upsert_direct_grant(seeded, "f1", "alice", "carol", "read")
        clock.advance()
        await store.upsert_direct_grant(seeded, "f2", "alice", "carol", "read")
        await directory.soft_delete(seeded, "f2", "alice")

        page = await authz.list_visible_to_user(seeded, "carol", limit=1)
        assert [f.file_id for f in page] == ["f1"]
