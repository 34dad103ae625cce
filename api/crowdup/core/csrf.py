"""Origin allow-listing and double-submit CSRF token checks.

This guard is independent of authentication state: it decides purely from
the HTTP method, the path, the Origin/Referer headers and the CSRF cookie.
"""

from __future__ import annotations

import secrets
from typing import Iterable
from urllib.parse import urlsplit

from .config import Settings

CSRF_PROTECTED_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def csrf_tokens_match(cookie_token: str | None, header_token: str | None) -> bool:
    """Constant-time comparison of the cookie and header tokens."""
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token.encode("utf-8"), header_token.encode("utf-8"))


def origin_from_referer(referer: str | None) -> str | None:
    """Reduce a Referer URL to its ``scheme://host[:port]`` origin."""
    if not referer:
        return None
    try:
        parts = urlsplit(referer)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


class CsrfGuard:
    def __init__(
        self,
        allowed_origins: Iterable[str],
        exempt_prefixes: Iterable[str] = (),
        *,
        protected_methods: Iterable[str] = CSRF_PROTECTED_METHODS,
    ) -> None:
        self._allowed_origins = frozenset(allowed_origins)
        self._exempt_prefixes = tuple(exempt_prefixes)
        self._protected_methods = frozenset(method.upper() for method in protected_methods)

    @classmethod
    def from_settings(cls, config: Settings) -> "CsrfGuard":
        return cls(config.allowed_origins, config.csrf_exempt_prefixes)

    def requires_csrf_check(self, method: str, path: str) -> bool:
        """Mutating methods need a check unless the path sits under an exempt prefix."""
        if method.upper() not in self._protected_methods:
            return False
        return not any(path.startswith(prefix) for prefix in self._exempt_prefixes)

    def is_origin_allowed(self, origin: str | None) -> bool:
        """Exact match against the allow-list; a missing origin is never allowed."""
        if not origin:
            return False
        return origin in self._allowed_origins

    def request_origin(self, origin: str | None, referer: str | None) -> str | None:
        """Origin header, or the origin of the Referer when Origin is absent."""
        return origin or origin_from_referer(referer)
