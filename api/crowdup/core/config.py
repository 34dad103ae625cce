"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]
# Relative to the API prefix.
CSRF_EXEMPT_SUFFIXES = ("/auth/callback", "/webhooks")
MIN_SECRET_LENGTH = 32


def _split_list(value: str | list[str] | None) -> list[str] | None:
    """Normalize JSON, CSV, or list inputs into a cleaned list, or None when empty."""
    if isinstance(value, list):
        cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        return cleaned or None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            cleaned = [str(item).strip() for item in parsed if str(item).strip()]
            return cleaned or None
        items = [item.strip() for item in stripped.split(",") if item.strip()]
        return items or None
    return None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "CrowdUp API"
    environment: str = "development"
    api_prefix: str = "/api"

    database_url: str = "sqlite+aiosqlite:///./crowdup.db"
    test_database_url: Optional[str] = None

    access_token_expires_minutes: int = 15
    refresh_token_expires_minutes: int = 60 * 24 * 7
    jwt_secret_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("signing_secret", "jwt_secret_key")
    )
    jwt_algorithm: str = "HS256"
    password_hash_rounds: int = 10
    revoke_sessions_on_password_change: bool = True

    csrf_token_max_age_seconds: int = 60 * 60
    cors_allowed_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())
    public_app_url: Optional[str] = None
    csrf_exempt_prefixes: list[str] | str | None = None

    google_client_id: Optional[str] = None
    oauth_authorize_url: str = "https://accounts.google.com/o/oauth2/v2/auth"

    log_level: str = "INFO"
    create_tables_on_startup: bool = True

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        return _split_list(value) or DEFAULT_CORS_ORIGINS.copy()

    @field_validator("csrf_exempt_prefixes", mode="before")
    @classmethod
    def _split_csrf_exempt_prefixes(cls, value: str | list[str] | None) -> list[str] | None:
        """Normalize CSRF exemption prefixes from JSON, CSV, or list inputs."""
        return _split_list(value)

    @field_validator("public_app_url", "jwt_secret_key", "google_client_id", mode="before")
    @classmethod
    def _blank_as_none(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _default_csrf_exempt_prefixes(self) -> "Settings":
        """Exempt the OAuth callback and webhook paths under the configured API prefix."""
        if not self.csrf_exempt_prefixes:
            self.csrf_exempt_prefixes = [f"{self.api_prefix}{suffix}" for suffix in CSRF_EXEMPT_SUFFIXES]
        return self

    @model_validator(mode="after")
    def _require_secret_in_production(self) -> "Settings":
        """Refuse to start a production deployment without a signing secret."""
        if self.is_production and not self.jwt_secret_key:
            msg = "SIGNING_SECRET must be set when ENVIRONMENT=production"
            raise ValueError(msg)
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @property
    def allowed_origins(self) -> list[str]:
        """Configured CORS origins plus the public app URL, de-duplicated."""
        origins: list[str] = []
        candidates = list(self.cors_allowed_origins)
        if self.public_app_url:
            candidates.append(self.public_app_url.rstrip("/"))
        for origin in candidates:
            if origin not in origins:
                origins.append(origin)
        return origins

    @property
    def auth_path(self) -> str:
        """Path prefix the refresh cookie is scoped to."""
        return f"{self.api_prefix}/auth"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
