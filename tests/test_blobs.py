"""Tests for LocalBlobStore — keyed content on disk."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from driveshare.sharing.blobs import LocalBlobStore
from driveshare.sharing.exceptions import BlobNotFoundError, ErrorCode
from driveshare.sharing.protocol import BlobStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def blobs(tmp_path: Path) -> LocalBlobStore:
    root = tmp_path / "blobs"
    root.mkdir()
    return LocalBlobStore(root)


class TestLocalBlobStore:
    def test_satisfies_protocol(self, blobs: LocalBlobStore):
        assert isinstance(blobs, BlobStore)

    def test_root_must_exist(self, tmp_path: Path):
        with pytest.raises(NotADirectoryError):
            LocalBlobStore(tmp_path / "missing")

    async def test_write_then_read(self, blobs: LocalBlobStore):
        await blobs.write_bytes("alice/report.pdf", b"%PDF")
        assert await blobs.exists("alice/report.pdf")
        assert await blobs.read_bytes("alice/report.pdf") == b"%PDF"

    async def test_stream_in_chunks(self, blobs: LocalBlobStore):
        await blobs.write_bytes("big.bin", b"x" * 10)
        chunks = [chunk async for chunk in blobs.open("big.bin", chunk_size=4)]
        assert chunks == [b"xxxx", b"xxxx", b"xx"]

    async def test_missing(self, blobs: LocalBlobStore):
        assert not await blobs.exists("nope")
        with pytest.raises(BlobNotFoundError) as exc_info:
            await blobs.read_bytes("nope")
        assert exc_info.value.code is ErrorCode.FILE_NOT_FOUND

    async def test_empty_key(self, blobs: LocalBlobStore):
        assert not await blobs.exists("")

    async def test_traversal_rejected(self, blobs: LocalBlobStore, tmp_path: Path):
        (tmp_path / "secret.txt").write_text("nope")
        assert not await blobs.exists("../secret.txt")
        with pytest.raises(PermissionError):
            await blobs.read_bytes("../secret.txt")

    async def test_symlink_rejected(self, blobs: LocalBlobStore, tmp_path: Path):
        (tmp_path / "outside.txt").write_text("nope")
        (blobs.root_dir / "link.txt").symlink_to(tmp_path / "outside.txt")
        with pytest.raises(PermissionError):
            await blobs.read_bytes("link.txt")
