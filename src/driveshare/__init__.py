"""DriveShare: access control for shared files.

Direct user grants, public links, and a single fail-closed
authorization engine over SQLModel tables.
"""

__version__ = "0.1.0"

from driveshare._driveshare import DriveShare
from driveshare._driveshare_async import DriveShareAsync
from driveshare.config import ShareConfig
from driveshare.sharing import (
    AccessResult,
    AuthorizationEngine,
    BlobStore,
    DownloadResult,
    DriveShareError,
    ErrorCode,
    FileDescriptor,
    FileDirectory,
    FileSummary,
    GrantInfo,
    GrantStore,
    IdentityProvider,
    LinkIssuer,
    ListFilesResult,
    ListGrantsResult,
    LocalBlobStore,
    Permission,
    Principal,
    PublicLinkResult,
    RevokeResult,
    ShareResult,
    TokenAccessResult,
    UserInfo,
)
from driveshare.sharing.dialect import configure_sqlite

__all__ = [
    "AccessResult",
    "AuthorizationEngine",
    "BlobStore",
    "DownloadResult",
    "DriveShare",
    "DriveShareAsync",
    "DriveShareError",
    "ErrorCode",
    "FileDescriptor",
    "FileDirectory",
    "FileSummary",
    "GrantInfo",
    "GrantStore",
    "IdentityProvider",
    "LinkIssuer",
    "ListFilesResult",
    "ListGrantsResult",
    "LocalBlobStore",
    "Permission",
    "Principal",
    "PublicLinkResult",
    "RevokeResult",
    "ShareConfig",
    "ShareResult",
    "TokenAccessResult",
    "UserInfo",
    "__version__",
    "configure_sqlite",
]
