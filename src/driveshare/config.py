"""ShareConfig — tunables for the sharing facade."""

from __future__ import annotations

from dataclasses import dataclass

from driveshare.sharing.links import MAX_TOKEN_ATTEMPTS, MIN_TOKEN_BYTES, TOKEN_BYTES


@dataclass
class ShareConfig:
    """Configuration for a ``DriveShareAsync`` instance."""

    token_bytes: int = TOKEN_BYTES
    """Random bytes per public-link token (at least 16)."""

    max_token_attempts: int = MAX_TOKEN_ATTEMPTS
    """Inserts tried with fresh tokens before giving up on a public link."""

    default_page_size: int = 50
    """Page size for "shared with me" when the caller passes no limit."""

    storage_retries: int = 1
    """Retries after a connection-level database failure."""

    sqlite_busy_timeout: float = 5.0
    """Seconds a SQLite writer waits on a locked database."""

    def __post_init__(self) -> None:
        if self.token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be >= {MIN_TOKEN_BYTES}, got {self.token_bytes}")
        if self.max_token_attempts < 1:
            raise ValueError("max_token_attempts must be at least 1")
        if self.default_page_size < 1:
            raise ValueError("default_page_size must be at least 1")
        if self.storage_retries < 0:
            raise ValueError("storage_retries cannot be negative")
