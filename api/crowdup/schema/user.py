"""User request/response schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from crowdup.schema.base import CamelModel, ORMModel

# bcrypt only reads the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


def _check_password_size(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class UserCreate(CamelModel):
    """Payload for registering a new user."""
    username: str = Field(min_length=3, max_length=64, pattern=USERNAME_PATTERN)
    display_name: str | None = Field(default=None, alias="displayName", max_length=255)
    email: EmailStr
    password: str = Field(min_length=8)

    check_password_size = field_validator("password")(_check_password_size)


class UserLogin(CamelModel):
    """Payload for user login requests."""
    username_or_email: str = Field(alias="usernameOrEmail", min_length=1)
    password: str = Field(min_length=1)

    check_password_size = field_validator("password")(_check_password_size)


class PasswordChange(CamelModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8)

    check_password_size = field_validator("current_password", "new_password")(_check_password_size)


class ProfileUpdate(CamelModel):
    """Editable profile fields; anything else in the body is ignored."""
    display_name: str | None = Field(default=None, alias="displayName", max_length=255)
    username: str | None = Field(default=None, min_length=3, max_length=64, pattern=USERNAME_PATTERN)
    bio: str | None = None
    avatar_url: str | None = Field(default=None, alias="avatarUrl", max_length=1024)

    @field_validator("username")
    @classmethod
    def _username_not_null(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("Username cannot be empty")
        return value


class UserRead(ORMModel):
    """Public user profile; never carries the password hash."""
    id: UUID
    username: str
    display_name: str | None = None
    email: str
    avatar_url: str | None = None
    bio: str | None = None
    created_at: datetime


class SessionRead(ORMModel):
    token_id: str
    created_at: datetime
    expires_at: datetime
    current: bool = False
