"""Password hashing and signing-secret helpers for auth flows."""

from __future__ import annotations

import logging
from functools import lru_cache

from passlib.context import CryptContext

from .config import MIN_SECRET_LENGTH, Settings, settings

logger = logging.getLogger("crowdup.core.security")

DEV_FALLBACK_SECRET = "crowdup-dev-signing-secret-NOT-FOR-PRODUCTION"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.password_hash_rounds)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a plaintext password against a stored hash.

    Accounts without a usable hash (OAuth-only users, corrupt rows) never match.
    """
    if not hashed_password:
        dummy_verify_password()
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash could not be identified")
        return False


def dummy_verify_password() -> None:
    """Spend about as long as a real verification so unknown accounts are not faster to reject."""
    pwd_context.dummy_verify()


def get_password_hash(password: str) -> str:
    """Hash a password using the configured context."""
    return pwd_context.hash(password)


@lru_cache
def _warn_once(message: str) -> None:
    logger.warning(message)


def resolve_signing_secret(config: Settings) -> str:
    """Return the token signing key, falling back to a fixed dev key outside production."""
    secret = config.jwt_secret_key
    if not secret:
        if config.is_production:
            # Settings validation normally refuses this; guard direct construction too.
            raise RuntimeError("SIGNING_SECRET is required in production")
        _warn_once("SIGNING_SECRET not set; using the insecure development fallback secret")
        return DEV_FALLBACK_SECRET
    if len(secret) < MIN_SECRET_LENGTH:
        _warn_once(f"SIGNING_SECRET should be at least {MIN_SECRET_LENGTH} characters")
    return secret
