from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    WRONG_PASSWORD = "WRONG_PASSWORD"
    MISSING_REFRESH_TOKEN = "MISSING_REFRESH_TOKEN"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status surfaced for each kind.
STATUS_BY_KIND: dict[AuthErrorKind, int] = {
    AuthErrorKind.VALIDATION_ERROR: 422,
    AuthErrorKind.NOT_FOUND: 404,
    AuthErrorKind.WRONG_PASSWORD: 401,
    AuthErrorKind.MISSING_REFRESH_TOKEN: 400,
    AuthErrorKind.INVALID_REFRESH_TOKEN: 401,
    AuthErrorKind.INTERNAL_ERROR: 500,
}

MESSAGE_BY_KIND: dict[AuthErrorKind, str] = {
    AuthErrorKind.VALIDATION_ERROR: "Invalid request payload",
    AuthErrorKind.NOT_FOUND: "Account not found",
    AuthErrorKind.WRONG_PASSWORD: "Wrong password",
    AuthErrorKind.MISSING_REFRESH_TOKEN: "Missing refresh token",
    AuthErrorKind.INVALID_REFRESH_TOKEN: "Invalid or rotated refresh token",
    AuthErrorKind.INTERNAL_ERROR: "An unexpected error occurred",
}


class StorageError(Exception):
    """Rotation store could not be reached or the write failed."""

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class InternalError(Exception):
    pass


class DuplicateAccountError(Exception):
    pass
