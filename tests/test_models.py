"""Tests for the SQLModel tables and their constraints."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError

from driveshare.models import AccessGrant, File, GrantHide, UserAccount, UserSession

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class TestTableNames:
    def test_names(self):
        assert AccessGrant.__tablename__ == "driveshare_grants"
        assert GrantHide.__tablename__ == "driveshare_grant_hides"
        assert File.__tablename__ == "driveshare_files"
        assert UserAccount.__tablename__ == "driveshare_users"
        assert UserSession.__tablename__ == "driveshare_sessions"

    def test_token_is_unique_and_indexed(self):
        column = AccessGrant.__table__.c.token  # type: ignore[attr-defined]
        assert column.unique
        assert column.index

    def test_file_id_indexed(self):
        assert AccessGrant.__table__.c.file_id.index  # type: ignore[attr-defined]


class TestAccessGrantConstraints:
    async def test_direct_grant(self, async_session: AsyncSession):
        grant = AccessGrant(file_id="f1", granted_by="alice", subject_user_id="bob")
        async_session.add(grant)
        await async_session.flush()
        assert not grant.is_public
        assert grant.permission == "read"
        assert grant.expires_at is None

    async def test_public_grant(self, async_session: AsyncSession):
        grant = AccessGrant(file_id="f1", granted_by="alice", token="tok-" + "a" * 28)
        async_session.add(grant)
        await async_session.flush()
        assert grant.is_public

    async def test_neither_subject_rejected(self, async_session: AsyncSession):
        async_session.add(AccessGrant(file_id="f1", granted_by="alice"))
        with pytest.raises(IntegrityError):
            await async_session.flush()

    async def test_both_subjects_rejected(self, async_session: AsyncSession):
        async_session.add(
            AccessGrant(file_id="f1", granted_by="alice", subject_user_id="bob", token="t" * 32)
        )
        with pytest.raises(IntegrityError):
            await async_session.flush()

    async def test_duplicate_direct_rejected(self, async_session: AsyncSession):
        async_session.add(AccessGrant(file_id="f1", granted_by="alice", subject_user_id="bob"))
        await async_session.flush()
        async_session.add(AccessGrant(file_id="f1", granted_by="alice", subject_user_id="bob"))
        with pytest.raises(IntegrityError):
            await async_session.flush()

    async def test_duplicate_token_rejected(self, async_session: AsyncSession):
        async_session.add(AccessGrant(file_id="f1", granted_by="alice", token="same" * 8))
        await async_session.flush()
        async_session.add(AccessGrant(file_id="f2", granted_by="alice", token="same" * 8))
        with pytest.raises(IntegrityError):
            await async_session.flush()

    async def test_many_public_grants_per_file(self, async_session: AsyncSession):
        for i in range(3):
            async_session.add(AccessGrant(file_id="f1", granted_by="alice", token=f"tok{i}" * 8))
        await async_session.flush()


class TestGrantHide:
    async def test_unique_per_recipient(self, async_session: AsyncSession):
        async_session.add(GrantHide(grant_id="g1", recipient_id="bob"))
        await async_session.flush()
        async_session.add(GrantHide(grant_id="g1", recipient_id="bob"))
        with pytest.raises(IntegrityError):
            await async_session.flush()
