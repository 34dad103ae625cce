"""Token codec behavior: lifetimes, type separation and uniform failures."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from crowdup.core import security
from crowdup.core.config import Settings
from crowdup.core.errors import InvalidTokenError
from crowdup.core.tokens import TokenCodec, TokenType
from crowdup.tests.utils import TEST_SIGNING_SECRET


def _frozen_clock(moment: datetime):
    return lambda: moment


@pytest.mark.parametrize("token_type", [TokenType.ACCESS, TokenType.REFRESH])
def test_issue_and_verify_round_trip(codec, token_type):
    token = codec.issue("user-123", token_type)

    claims = codec.verify(token, token_type)

    assert claims.subject == "user-123"
    assert claims.token_type is token_type
    assert claims.expires_at - claims.issued_at == codec.lifetime(token_type)


def test_lifetimes_default_to_fifteen_minutes_and_seven_days(codec):
    assert codec.lifetime(TokenType.ACCESS) == timedelta(minutes=15)
    assert codec.lifetime(TokenType.REFRESH) == timedelta(days=7)


def test_refresh_tokens_always_carry_a_unique_id(codec):
    first = codec.verify(codec.issue("u", TokenType.REFRESH), TokenType.REFRESH)
    second = codec.verify(codec.issue("u", TokenType.REFRESH), TokenType.REFRESH)
    explicit = codec.verify(codec.issue("u", TokenType.REFRESH, token_id="fixed"), TokenType.REFRESH)

    assert first.token_id and second.token_id
    assert first.token_id != second.token_id
    assert explicit.token_id == "fixed"


def test_token_types_are_not_interchangeable(codec):
    access = codec.issue("u", TokenType.ACCESS)
    refresh = codec.issue("u", TokenType.REFRESH)

    with pytest.raises(InvalidTokenError):
        codec.verify(access, TokenType.REFRESH)
    with pytest.raises(InvalidTokenError):
        codec.verify(refresh, TokenType.ACCESS)


def test_reserved_claims_cannot_be_overridden(codec):
    token = codec.issue(
        "user-1", TokenType.ACCESS, {"sub": "admin", "type": "refresh", "exp": 9999999999, "role": "member"}
    )

    claims = codec.verify(token, TokenType.ACCESS)
    assert claims.subject == "user-1"
    assert claims.extra == {"role": "member"}
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)


def test_expired_token_is_rejected():
    issued = datetime.now(timezone.utc) - timedelta(minutes=16)
    past_codec = TokenCodec(TEST_SIGNING_SECRET, clock=_frozen_clock(issued))
    token = past_codec.issue("u", TokenType.ACCESS)

    with pytest.raises(InvalidTokenError):
        TokenCodec(TEST_SIGNING_SECRET).verify(token, TokenType.ACCESS)


def test_wrong_secret_and_tampering_are_rejected(codec):
    token = codec.issue("alice", TokenType.ACCESS)
    other = codec.issue("mallory", TokenType.ACCESS)
    header, _payload, signature = token.split(".")
    _, other_payload, _ = other.split(".")

    with pytest.raises(InvalidTokenError):
        TokenCodec("another-secret-that-is-long-enough-123").verify(token, TokenType.ACCESS)
    with pytest.raises(InvalidTokenError):
        codec.verify(f"{header}.{other_payload}.{signature}", TokenType.ACCESS)


def test_unexpected_algorithm_is_rejected(codec):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "u", "type": "access", "iat": now, "exp": now + timedelta(minutes=5)},
        TEST_SIGNING_SECRET,
        algorithm="HS512",
    )

    with pytest.raises(InvalidTokenError):
        codec.verify(token, TokenType.ACCESS)


@pytest.mark.parametrize("claims", [{"type": "access"}, {"sub": "u"}, {"sub": "u", "type": "refresh"}])
def test_tokens_missing_required_claims_are_rejected(codec, claims):
    now = datetime.now(timezone.utc)
    expected = TokenType(claims.get("type", "access"))
    token = jwt.encode({**claims, "iat": now, "exp": now + timedelta(minutes=5)}, TEST_SIGNING_SECRET)

    with pytest.raises(InvalidTokenError):
        codec.verify(token, expected)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "eyJhbGciOiJIUzI1NiJ9.e30."])
def test_malformed_tokens_fail_with_the_same_error(codec, garbage):
    with pytest.raises(InvalidTokenError) as excinfo:
        codec.verify(garbage, TokenType.ACCESS)
    assert excinfo.value.detail == InvalidTokenError.detail
    assert excinfo.value.__cause__ is None


def test_codec_requires_a_secret():
    with pytest.raises(ValueError):
        TokenCodec("")


def test_from_settings_uses_configured_lifetimes():
    config = Settings(
        _env_file=None,
        jwt_secret_key=TEST_SIGNING_SECRET,
        access_token_expires_minutes=5,
        refresh_token_expires_minutes=60,
    )

    codec = TokenCodec.from_settings(config)

    assert codec.lifetime(TokenType.ACCESS) == timedelta(minutes=5)
    assert codec.lifetime(TokenType.REFRESH) == timedelta(hours=1)
    assert codec.verify(codec.issue("u", TokenType.ACCESS), TokenType.ACCESS).subject == "u"


def test_missing_secret_falls_back_outside_production(caplog, monkeypatch):
    monkeypatch.delenv("SIGNING_SECRET", raising=False)
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    security._warn_once.cache_clear()
    config = Settings(_env_file=None, environment="development", jwt_secret_key=None)

    with caplog.at_level(logging.WARNING, logger="crowdup.core.security"):
        codec = TokenCodec.from_settings(config)

    assert "insecure development fallback" in caplog.text
    fallback = TokenCodec(security.DEV_FALLBACK_SECRET)
    assert fallback.verify(codec.issue("u", TokenType.ACCESS), TokenType.ACCESS).subject == "u"


def test_short_secret_is_accepted_with_warning(caplog):
    security._warn_once.cache_clear()
    config = Settings(_env_file=None, jwt_secret_key="short")

    with caplog.at_level(logging.WARNING, logger="crowdup.core.security"):
        security.resolve_signing_secret(config)

    assert "at least 32 characters" in caplog.text
