"""Resolve the request principal from the access-token cookie.

Extraction is fail-open: a missing or invalid token yields ``ANONYMOUS`` and
never raises. Routes that need a user reject ``ANONYMOUS`` themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Mapping

from crowdup.core.cookies import ACCESS_COOKIE_NAME
from crowdup.core.errors import InvalidTokenError
from crowdup.core.tokens import TokenCodec, TokenType


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity carried by a verified access token."""

    user_id: str
    expires_at: datetime

    is_authenticated: ClassVar[bool] = True


class Anonymous:
    __slots__ = ()

    is_authenticated: ClassVar[bool] = False

    def __repr__(self) -> str:
        return "ANONYMOUS"


ANONYMOUS = Anonymous()


class RequestAuthenticator:
    def __init__(self, codec: TokenCodec, *, cookie_name: str = ACCESS_COOKIE_NAME) -> None:
        self._codec = codec
        self._cookie_name = cookie_name

    def authenticate(self, cookies: Mapping[str, str]) -> Principal | Anonymous:
        # The refresh cookie is deliberately ignored here.
        token = cookies.get(self._cookie_name)
        if not token:
            return ANONYMOUS
        try:
            claims = self._codec.verify(token, TokenType.ACCESS)
        except InvalidTokenError:
            return ANONYMOUS
        return Principal(user_id=claims.subject, expires_at=claims.expires_at)
