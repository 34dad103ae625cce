"""Shared helpers for API tests."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from httpx import AsyncClient

from crowdup.core.cookies import CSRF_COOKIE_NAME, CSRF_HEADER_NAME
from crowdup.models.user import User
from crowdup.services.credential_store import SqlCredentialStore

TEST_SIGNING_SECRET = "test-signing-secret-0123456789abcdef"


@dataclass(slots=True)
class AuthContext:
    """Authenticated client context for API tests."""

    client: AsyncClient
    user: dict[str, Any]
    username: str
    email: str
    password: str

    @property
    def user_id(self) -> str:
        return str(self.user["id"])


async def prime_csrf(client: AsyncClient) -> str:
    """Fetch a CSRF token and echo it on every following request."""
    res = await client.get("/api/auth/csrf")
    assert res.status_code == 200
    token = res.json()["csrfToken"]
    client.headers[CSRF_HEADER_NAME] = token
    return token


async def create_user(
    store: SqlCredentialStore, *, username: str | None = None, email: str | None = None, password: str = "correct"
) -> User:
    suffix = uuid.uuid4().hex[:8]
    username = username or f"user_{suffix}"
    return await store.create_user(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=store.hash_password(password),
        display_name=username.title(),
    )


async def signup_and_login(client: AsyncClient, *, prefix: str = "user") -> AuthContext:
    """Register a new user through the API (which also signs them in)."""
    suffix = uuid.uuid4().hex[:8]
    username = f"{prefix}_{suffix}"
    email = f"{username}@example.com"
    password = "supersecret123"
    if CSRF_HEADER_NAME not in client.headers:
        await prime_csrf(client)
    res = await client.post(
        "/api/auth/signup",
        json={"username": username, "displayName": prefix.title(), "email": email, "password": password},
    )
    assert res.status_code == 201
    return AuthContext(client=client, user=res.json()["user"], username=username, email=email, password=password)


def cookie_header(**cookies: str) -> dict[str, str]:
    """Build an explicit Cookie header, bypassing the client's cookie jar."""
    return {"cookie": "; ".join(f"{name}={value}" for name, value in cookies.items())}


def csrf_cookie(client: AsyncClient) -> dict[str, str]:
    return {CSRF_COOKIE_NAME: client.headers[CSRF_HEADER_NAME]}
