"""ORM models for users and refresh-token revocation records."""

from crowdup.models.auth import RefreshToken
from crowdup.models.user import User

__all__ = ["RefreshToken", "User"]
