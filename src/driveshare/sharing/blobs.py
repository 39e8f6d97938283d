"""LocalBlobStore — file content on local disk, addressed by storage key."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from .exceptions import BlobNotFoundError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

CHUNK_SIZE = 64 * 1024


class LocalBlobStore:
    """Blob store rooted at *root_dir*.

    Storage keys are relative paths under the root.  ``_resolve_key``
    keeps every key inside the root and rejects symlinks, so a crafted
    key cannot read arbitrary host files.
    """

    def __init__(self, root_dir: Path | str) -> None:
        self.root_dir = Path(root_dir).resolve()
        if not self.root_dir.is_dir():
            raise NotADirectoryError(f"Blob root is not a directory: {self.root_dir}")

    def _resolve_key(self, storage_key: str) -> Path:
        rel = storage_key.replace("\\", "/").lstrip("/")
        if not rel or "\0" in rel:
            raise BlobNotFoundError("File content not found")

        current = self.root_dir
        for part in Path(rel).parts:
            current = current / part
            if current.is_symlink():
                raise PermissionError(f"Symlinks not allowed in storage key: {storage_key}")

        resolved = (self.root_dir / rel).resolve()
        try:
            resolved.relative_to(self.root_dir)
        except ValueError:
            raise PermissionError(
                f"Path traversal detected: {storage_key} resolves outside blob root"
            ) from None
        return resolved

    def _existing(self, storage_key: str) -> Path:
        path = self._resolve_key(storage_key)
        if not path.is_file():
            raise BlobNotFoundError("File content not found")
        return path

    async def exists(self, storage_key: str) -> bool:
        try:
            path = self._resolve_key(storage_key)
        except (BlobNotFoundError, PermissionError):
            return False
        return await asyncio.to_thread(path.is_file)

    async def read_bytes(self, storage_key: str) -> bytes:
        path = self._existing(storage_key)
        return await asyncio.to_thread(path.read_bytes)

    async def open(self, storage_key: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the blob in chunks of at most *chunk_size* bytes."""
        path = self._existing(storage_key)
        handle = await asyncio.to_thread(path.open, "rb")
        try:
            while True:
                chunk = await asyncio.to_thread(handle.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await asyncio.to_thread(handle.close)

    async def write_bytes(self, storage_key: str, data: bytes) -> None:
        path = self._resolve_key(storage_key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
