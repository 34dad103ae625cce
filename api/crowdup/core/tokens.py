"""Signed access/refresh credential tokens.

Invariants:
- A token of one type never verifies as the other type.
- Every verification failure surfaces as the same ``InvalidTokenError``.
- Lifetimes are fixed per token type; callers cannot extend them.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from jose import JWTError, jwt

from .config import Settings
from .errors import InvalidTokenError
from .security import resolve_signing_secret

RESERVED_CLAIMS = frozenset({"sub", "type", "iat", "exp", "jti"})
_DECODE_OPTIONS = {"require_exp": True, "require_iat": True, "require_sub": True, "leeway": 0}


class TokenType(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Verified contents of a credential token."""

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime
    token_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def new_token_id() -> str:
    """Generate a unique refresh token identifier (``jti``)."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify HMAC-signed JWTs with per-type lifetimes."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a signing secret")
        self._secret = secret
        self._algorithm = algorithm
        self._lifetimes = {TokenType.ACCESS: access_ttl, TokenType.REFRESH: refresh_ttl}
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenCodec":
        return cls(
            resolve_signing_secret(config),
            algorithm=config.jwt_algorithm,
            access_ttl=timedelta(minutes=config.access_token_expires_minutes),
            refresh_ttl=timedelta(minutes=config.refresh_token_expires_minutes),
        )

    def lifetime(self, token_type: TokenType) -> timedelta:
        return self._lifetimes[TokenType(token_type)]

    def expiry_for(self, token_type: TokenType) -> datetime:
        """Expiry a token of ``token_type`` issued now would carry."""
        return self._clock() + self.lifetime(token_type)

    def issue(
        self,
        subject: str,
        token_type: TokenType,
        extra_claims: Mapping[str, Any] | None = None,
        *,
        token_id: str | None = None,
    ) -> str:
        """Build and sign a token of ``token_type`` for ``subject``.

        Refresh tokens always carry a ``jti``; one is generated when not given.
        Extra claims cannot override the reserved ones.
        """
        token_type = TokenType(token_type)
        if not subject:
            raise ValueError("Token subject must be a non-empty string")
        now = self._clock()
        payload: dict[str, Any] = {
            key: value for key, value in (extra_claims or {}).items() if key not in RESERVED_CLAIMS
        }
        payload.update(
            {
                "sub": str(subject),
                "type": token_type.value,
                "iat": now,
                "exp": now + self.lifetime(token_type),
            }
        )
        if token_type is TokenType.REFRESH:
            payload["jti"] = token_id or new_token_id()
        elif token_id:
            payload["jti"] = token_id
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str, expected_type: TokenType) -> TokenClaims:
        """Check signature, expiry and type; raise ``InvalidTokenError`` on any mismatch."""
        expected_type = TokenType(expected_type)
        if not token or not isinstance(token, str):
            raise InvalidTokenError("empty token")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm], options=_DECODE_OPTIONS)
        except JWTError as exc:
            raise InvalidTokenError(f"decode failed: {exc.__class__.__name__}") from None

        if payload.get("type") != expected_type.value:
            raise InvalidTokenError("token type mismatch")
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("missing subject")
        token_id = payload.get("jti")
        if expected_type is TokenType.REFRESH and (not isinstance(token_id, str) or not token_id):
            raise InvalidTokenError("refresh token without jti")
        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            raise InvalidTokenError("malformed timestamps") from None

        return TokenClaims(
            subject=subject,
            token_type=expected_type,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=token_id,
            extra={key: value for key, value in payload.items() if key not in RESERVED_CLAIMS},
        )
