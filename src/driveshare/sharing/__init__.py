"""Sharing layer — grant store, authorization engine, link issuer, collaborators."""

from driveshare.sharing.blobs import LocalBlobStore
from driveshare.sharing.directory import FileDirectoryService
from driveshare.sharing.engine import AuthorizationEngine
from driveshare.sharing.exceptions import (
    BlobNotFoundError,
    DriveShareError,
    ErrorCode,
    InvalidPermissionError,
    NoSuchFileError,
    NoSuchUserError,
    SelfShareError,
    ShareNotFoundError,
    StorageUnavailableError,
    TokenGenerationError,
    UnauthorizedError,
)
from driveshare.sharing.identity import IdentityService
from driveshare.sharing.links import LinkIssuer, generate_token
from driveshare.sharing.permissions import Permission
from driveshare.sharing.protocol import BlobStore, FileDirectory, IdentityProvider
from driveshare.sharing.store import GrantStore
from driveshare.sharing.types import (
    AccessResult,
    DirectUser,
    DownloadResult,
    FileDescriptor,
    FileSummary,
    GrantInfo,
    ListFilesResult,
    ListGrantsResult,
    Principal,
    PublicLink,
    PublicLinkResult,
    ResolvedShare,
    RevokeResult,
    ShareResult,
    TokenAccessResult,
    UserInfo,
)

__all__ = [
    "AccessResult",
    "AuthorizationEngine",
    "BlobNotFoundError",
    "BlobStore",
    "DirectUser",
    "DownloadResult",
    "DriveShareError",
    "ErrorCode",
    "FileDescriptor",
    "FileDirectory",
    "FileDirectoryService",
    "FileSummary",
    "GrantInfo",
    "GrantStore",
    "IdentityProvider",
    "IdentityService",
    "InvalidPermissionError",
    "LinkIssuer",
    "ListFilesResult",
    "ListGrantsResult",
    "LocalBlobStore",
    "NoSuchFileError",
    "NoSuchUserError",
    "Permission",
    "Principal",
    "PublicLink",
    "PublicLinkResult",
    "ResolvedShare",
    "RevokeResult",
    "SelfShareError",
    "ShareNotFoundError",
    "ShareResult",
    "StorageUnavailableError",
    "TokenAccessResult",
    "TokenGenerationError",
    "UnauthorizedError",
    "UserInfo",
    "generate_token",
]
