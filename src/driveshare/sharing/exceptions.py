"""Custom exception hierarchy for the driveshare sharing layer.

Every exception carries an ``ErrorCode`` so the facade can turn it into
a typed result without inspecting messages.  Not-found and unauthorized
outcomes deliberately share codes: callers must not learn whether a
file or grant exists when they have no access to it.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorCode(str, Enum):
    """Machine-readable failure kinds returned to the route layer."""

    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_SUBJECT = "INVALID_SUBJECT"
    INVALID_PERMISSION = "INVALID_PERMISSION"
    SHARE_NOT_FOUND = "SHARE_NOT_FOUND"
    TOKEN_GENERATION_FAILED = "TOKEN_GENERATION_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


class DriveShareError(Exception):
    """Base exception for all driveshare errors."""

    code: ClassVar[ErrorCode | None] = None


class NoSuchFileError(DriveShareError):
    """File is missing, soft-deleted, or not owned by the caller."""

    code = ErrorCode.FILE_NOT_FOUND


class NoSuchUserError(DriveShareError):
    """The share recipient does not exist."""

    code = ErrorCode.USER_NOT_FOUND


class SelfShareError(DriveShareError):
    """An owner tried to share a file with themselves."""

    code = ErrorCode.INVALID_SUBJECT


class InvalidPermissionError(DriveShareError):
    """Permission value is not one of read, write, admin."""

    code = ErrorCode.INVALID_PERMISSION


class ShareNotFoundError(DriveShareError):
    """Token or grant is missing, expired, on a deleted file, or not the caller's."""

    code = ErrorCode.SHARE_NOT_FOUND


class TokenGenerationError(DriveShareError):
    """No unique public token could be minted within the retry budget."""

    code = ErrorCode.TOKEN_GENERATION_FAILED


class UnauthorizedError(DriveShareError):
    """Reserved for stricter checks on token resolution."""

    code = ErrorCode.UNAUTHORIZED


class StorageUnavailableError(DriveShareError):
    """The database could not be reached after retrying."""

    code = ErrorCode.STORAGE_UNAVAILABLE


class BlobNotFoundError(DriveShareError):
    """The file record exists but its content is missing from the blob store."""

    code = ErrorCode.FILE_NOT_FOUND
