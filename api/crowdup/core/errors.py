"""Authentication error taxonomy shared by services and routes.

Messages are generic on purpose: callers must not be able to tell a bad
signature from an expired or revoked token, or an unknown user from a wrong
password.
"""

from __future__ import annotations

from fastapi import status


class AuthError(Exception):
    """Base class for session/authentication failures."""

    status_code: int = status.HTTP_401_UNAUTHORIZED
    # Client-facing text; the exception message is for server logs only.
    detail: str = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.detail)


class InvalidCredentialsError(AuthError):
    detail = "Invalid credentials"


class InvalidTokenError(AuthError):
    detail = "Invalid or expired token"


class UnauthenticatedError(AuthError):
    detail = "Authentication required"


class NotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found"


class UnexpectedError(AuthError):
    """Store or infrastructure failure; details stay in server logs."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "An unexpected error occurred"
