"""Value types and result types: GrantInfo, FileSummary, ShareResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from .exceptions import ErrorCode
    from .permissions import Permission


# ---------------------------------------------------------------------------
# Principals and collaborators' records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated identity attempting an operation."""

    user_id: str


@dataclass
class FileDescriptor:
    """What the file directory knows about one file."""

    file_id: str
    owner_id: str
    name: str
    storage_key: str
    size_bytes: int | None = None
    mime_type: str | None = None
    is_deleted: bool = False
    parent_folder_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class UserInfo:
    """Display information for a user."""

    user_id: str
    username: str
    email: str | None = None


# ---------------------------------------------------------------------------
# Grant subjects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DirectUser:
    """Grant usable only by one named user."""

    user_id: str


@dataclass(frozen=True, slots=True)
class PublicLink:
    """Grant usable by anyone holding the token."""

    token: str


@dataclass
class GrantInfo:
    """Grant metadata as returned to callers."""

    grant_id: str
    file_id: str
    granted_by: str
    subject: DirectUser | PublicLink
    permission: Permission
    created_at: datetime | None = None
    updated_at: datetime | None = None
    expires_at: datetime | None = None
    recipient: UserInfo | None = None

    @property
    def is_public(self) -> bool:
        return isinstance(self.subject, PublicLink)


@dataclass
class FileSummary:
    """One entry of a recipient's "shared with me" listing."""

    file_id: str
    name: str
    grant_id: str
    permission: Permission
    shared_by: str
    size_bytes: int | None = None
    mime_type: str | None = None
    created_at: datetime | None = None
    shared_at: datetime | None = None
    expires_at: datetime | None = None
    shared_by_username: str | None = None


@dataclass
class ResolvedShare:
    """A public token resolved to its file and grant."""

    file: FileDescriptor
    grant: GrantInfo

    @property
    def permission(self) -> Permission:
        return self.grant.permission


# ---------------------------------------------------------------------------
# Facade results
# ---------------------------------------------------------------------------


@dataclass
class ShareResult:
    """Result of a direct share operation."""

    success: bool
    message: str
    code: ErrorCode | None = None
    grant: GrantInfo | None = None


@dataclass
class PublicLinkResult:
    """Result of creating a public link."""

    success: bool
    message: str
    code: ErrorCode | None = None
    grant: GrantInfo | None = None
    token: str | None = None


@dataclass
class TokenAccessResult:
    """Result of resolving a public token."""

    success: bool
    message: str
    code: ErrorCode | None = None
    file: FileDescriptor | None = None
    grant: GrantInfo | None = None

    @property
    def permission(self) -> Permission | None:
        return self.grant.permission if self.grant is not None else None


@dataclass
class ListGrantsResult:
    """Result of listing the grants on a file."""

    success: bool
    message: str
    code: ErrorCode | None = None
    grants: list[GrantInfo] = field(default_factory=list)


@dataclass
class ListFilesResult:
    """Result of listing files shared with a user."""

    success: bool
    message: str
    code: ErrorCode | None = None
    files: list[FileSummary] = field(default_factory=list)


@dataclass
class RevokeResult:
    """Result of revoke, unshare-all, and hide operations."""

    success: bool
    message: str
    code: ErrorCode | None = None
    count: int = 0


@dataclass
class AccessResult:
    """Result of an access check that keeps storage failures visible.

    ``success`` is False only when the check itself could not run;
    ``allowed`` is then False as well.
    """

    success: bool
    message: str
    code: ErrorCode | None = None
    allowed: bool = False


@dataclass
class DownloadResult:
    """Result of opening a file for download.

    ``stream`` is set by the ``open_*`` methods and ``content`` by the
    ``read_*`` methods.
    """

    success: bool
    message: str
    code: ErrorCode | None = None
    file: FileDescriptor | None = None
    permission: Permission | None = None
    stream: AsyncIterator[bytes] | None = None
    content: bytes | None = None
