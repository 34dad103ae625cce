"""CSRF/origin guard decisions and their enforcement on the API surface."""

from __future__ import annotations

import pytest

from crowdup.core.config import Settings
from crowdup.core.csrf import CsrfGuard, csrf_tokens_match, generate_csrf_token, origin_from_referer
from crowdup.tests.utils import prime_csrf

ALLOWED = "http://localhost:3000"


@pytest.fixture()
def guard() -> CsrfGuard:
    return CsrfGuard([ALLOWED], ["/api/auth/callback", "/api/webhooks"])


@pytest.mark.parametrize(
    ("method", "path", "expected"),
    [
        ("POST", "/api/posts", True),
        ("GET", "/api/posts", False),
        ("POST", "/api/auth/callback/google", False),
        ("DELETE", "/api/posts/1", True),
        ("patch", "/api/posts/1", True),
        ("PUT", "/api/webhooks/stripe", False),
        ("HEAD", "/api/posts", False),
        ("OPTIONS", "/api/posts", False),
    ],
)
def test_requires_csrf_check(guard, method, path, expected):
    assert guard.requires_csrf_check(method, path) is expected


def test_origin_allow_list_is_exact(guard):
    assert guard.is_origin_allowed(ALLOWED)
    assert not guard.is_origin_allowed(None)
    assert not guard.is_origin_allowed("")
    assert not guard.is_origin_allowed("http://localhost:3000/")
    assert not guard.is_origin_allowed("http://evil.example")
    assert not guard.is_origin_allowed("http://localhost:3000.evil.example")


def test_request_origin_falls_back_to_referer(guard):
    assert guard.request_origin(ALLOWED, "http://evil.example/page") == ALLOWED
    assert guard.request_origin(None, "http://localhost:3000/posts/1?x=y") == ALLOWED
    assert guard.request_origin(None, None) is None
    assert origin_from_referer("not a url") is None


def test_token_comparison():
    token = generate_csrf_token()
    assert len(token) == 64
    assert csrf_tokens_match(token, token)
    assert not csrf_tokens_match(token, generate_csrf_token())
    assert not csrf_tokens_match(None, token)
    assert not csrf_tokens_match(token, "")


@pytest.mark.asyncio
async def test_csrf_endpoint_issues_and_reuses_token(client):
    first = await client.get("/api/auth/csrf")
    assert first.status_code == 200
    token = first.json()["csrfToken"]
    assert client.cookies.get("csrf_token") == token
    set_cookie = ",".join(first.headers.get_list("set-cookie")).lower()
    assert "httponly" not in set_cookie

    second = await client.get("/api/auth/csrf")
    assert second.json()["csrfToken"] == token


@pytest.mark.asyncio
async def test_mutation_without_csrf_token_is_forbidden(client):
    await client.get("/api/auth/csrf")

    res = await client.post("/api/auth/logout")
    assert res.status_code == 403
    assert res.json()["detail"] == "Invalid or missing CSRF token"


@pytest.mark.asyncio
async def test_mutation_with_mismatched_token_is_forbidden(client):
    await prime_csrf(client)

    res = await client.post("/api/auth/logout", headers={"x-csrf-token": generate_csrf_token()})
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_mutation_from_foreign_origin_is_forbidden(client):
    await prime_csrf(client)

    res = await client.post("/api/auth/logout", headers={"origin": "http://evil.example"})
    assert res.status_code == 403
    assert res.json()["detail"] == "Origin not allowed"


@pytest.mark.asyncio
async def test_mutation_without_origin_uses_referer(client):
    await prime_csrf(client)
    del client.headers["origin"]

    missing = await client.post("/api/auth/logout")
    assert missing.status_code == 403

    via_referer = await client.post("/api/auth/logout", headers={"referer": f"{ALLOWED}/settings"})
    assert via_referer.status_code == 200


@pytest.mark.asyncio
async def test_exempt_callback_path_skips_csrf(client):
    res = await client.post("/api/auth/callback/google", headers={"origin": "http://evil.example"})
    assert res.status_code != 403


@pytest.mark.asyncio
async def test_safe_requests_receive_a_csrf_cookie(client):
    res = await client.get("/api/auth/me")
    assert res.status_code == 200
    assert client.cookies.get("csrf_token")


def test_guard_exempts_callback_under_custom_api_prefix():
    guard = CsrfGuard.from_settings(Settings(_env_file=None, api_prefix="/v2"))

    assert not guard.requires_csrf_check("POST", "/v2/auth/callback/google")
    assert guard.requires_csrf_check("POST", "/v2/auth/login")
