"""Cookie policies for the session pair and the CSRF token."""

from __future__ import annotations

from fastapi import Response

from .config import Settings, settings

ACCESS_COOKIE_NAME = "access_token"
REFRESH_COOKIE_NAME = "refresh_token"
CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "x-csrf-token"


def set_auth_cookies(
    response: Response, access_token: str, refresh_token: str, config: Settings = settings
) -> None:
    secure = config.is_production
    response.set_cookie(
        ACCESS_COOKIE_NAME,
        access_token,
        max_age=config.access_token_expires_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
    )
    # Only the auth endpoints ever see the refresh token.
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        refresh_token,
        max_age=config.refresh_token_expires_minutes * 60,
        httponly=True,
        samesite="strict",
        secure=secure,
        path=config.auth_path,
    )


def clear_auth_cookies(response: Response, config: Settings = settings) -> None:
    secure = config.is_production
    response.delete_cookie(ACCESS_COOKIE_NAME, path="/", secure=secure, httponly=True, samesite="lax")
    response.delete_cookie(
        REFRESH_COOKIE_NAME, path=config.auth_path, secure=secure, httponly=True, samesite="strict"
    )


def set_csrf_cookie(response: Response, token: str, config: Settings = settings) -> None:
    # Readable by page scripts so they can echo it in the CSRF header.
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        max_age=config.csrf_token_max_age_seconds,
        httponly=False,
        samesite="strict",
        secure=config.is_production,
        path="/",
    )
