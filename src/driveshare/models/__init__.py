"""SQLModel database models for driveshare."""

from driveshare.models.files import File, FileBase
from driveshare.models.grants import AccessGrant, AccessGrantBase, GrantHide, GrantHideBase
from driveshare.models.users import UserAccount, UserAccountBase, UserSession, UserSessionBase

__all__ = [
    "AccessGrant",
    "AccessGrantBase",
    "File",
    "FileBase",
    "GrantHide",
    "GrantHideBase",
    "UserAccount",
    "UserAccountBase",
    "UserSession",
    "UserSessionBase",
]
