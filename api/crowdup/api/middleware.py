"""HTTP middleware enforcing origin and CSRF policy on the API surface."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from crowdup.core.config import Settings
from crowdup.core.cookies import CSRF_COOKIE_NAME, CSRF_HEADER_NAME, set_csrf_cookie
from crowdup.core.csrf import CsrfGuard, csrf_tokens_match, generate_csrf_token

logger = logging.getLogger("crowdup.api.middleware")

CallNext = Callable[[Request], Awaitable[Response]]


def _sets_csrf_cookie(response: Response) -> bool:
    prefix = f"{CSRF_COOKIE_NAME}="
    return any(value.startswith(prefix) for value in response.headers.getlist("set-cookie"))


def build_csrf_middleware(guard: CsrfGuard, config: Settings) -> Callable[[Request, CallNext], Any]:
    """Create the middleware that rejects cross-site mutations and hands out CSRF cookies.

    Implementation notes:
    - Only paths under the API prefix are policed; exempt prefixes skip every check.
    - Origin falls back to the Referer's origin; with neither present the request is refused.
    - Any response to a client without a CSRF cookie gets a fresh one.
    """
    api_root = f"{config.api_prefix}/"

    async def csrf_middleware(request: Request, call_next: CallNext) -> Response:
        path = request.url.path
        if path.startswith(api_root) and guard.requires_csrf_check(request.method, path):
            origin = guard.request_origin(request.headers.get("origin"), request.headers.get("referer"))
            if not guard.is_origin_allowed(origin):
                logger.info("Rejected %s %s from origin %s", request.method, path, origin or "<none>")
                return JSONResponse({"detail": "Origin not allowed"}, status_code=status.HTTP_403_FORBIDDEN)
            if not csrf_tokens_match(request.cookies.get(CSRF_COOKIE_NAME), request.headers.get(CSRF_HEADER_NAME)):
                logger.info("Rejected %s %s: CSRF token mismatch", request.method, path)
                return JSONResponse(
                    {"detail": "Invalid or missing CSRF token"}, status_code=status.HTTP_403_FORBIDDEN
                )

        response = await call_next(request)
        if not request.cookies.get(CSRF_COOKIE_NAME) and not _sets_csrf_cookie(response):
            set_csrf_cookie(response, generate_csrf_token(), config)
        return response

    return csrf_middleware
