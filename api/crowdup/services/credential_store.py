"""Credential store adapter over the users and refresh_tokens tables.

Every session decision goes through this interface; nothing is cached in
process. The SQL implementation relies on the database for per-row
atomicity and never takes locks of its own.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Protocol

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crowdup.core import security
from crowdup.core.errors import NotFoundError, UnexpectedError
from crowdup.models.auth import RefreshToken
from crowdup.models.user import User

logger = logging.getLogger("crowdup.services.credential_store")

# Bulk deletes skip identity-map synchronization; lookups always go through
# SELECT so stale in-session objects are never reported as live.
_NO_SYNC = {"synchronize_session": False}
PROFILE_FIELDS = frozenset({"display_name", "username", "bio", "avatar_url"})


def _current_time() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_timezone(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware in UTC."""
    if dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class CredentialStore(Protocol):
    """Operations the session layer needs from the user and revocation stores."""

    async def find_user_by_login_identifier(self, identifier: str) -> User | None: ...

    async def get_user_by_id(self, user_id: str | uuid.UUID) -> User | None: ...

    def verify_password(self, plain: str, password_hash: str | None) -> bool: ...

    def hash_password(self, plain: str) -> str: ...

    def dummy_verify_password(self) -> None: ...

    async def update_password_hash(self, user_id: str | uuid.UUID, new_hash: str) -> None: ...

    async def put_revocation_record(self, user_id: str | uuid.UUID, token_id: str, expires_at: datetime) -> None: ...

    async def is_revocation_record_live(self, token_id: str) -> bool: ...

    async def rotate_revocation_record(
        self, old_token_id: str, user_id: str | uuid.UUID, new_token_id: str, expires_at: datetime
    ) -> bool: ...

    async def delete_revocation_record(self, token_id: str) -> None: ...

    async def delete_user_revocation_records(
        self, user_id: str | uuid.UUID, *, keep_token_id: str | None = None
    ) -> int: ...

    async def list_live_revocation_records(self, user_id: str | uuid.UUID) -> list[RefreshToken]: ...


class SqlCredentialStore:
    """``CredentialStore`` backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Credential store operation %s failed", operation)
            raise UnexpectedError(f"credential store {operation} failed") from exc

    async def find_user_by_login_identifier(self, identifier: str) -> User | None:
        """Match a username or an email; the oldest matching account wins."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        stmt = (
            select(User)
            .where(or_(User.username == identifier, User.email == identifier.lower()))
            .order_by(User.created_at.asc())
            .limit(1)
        )
        async with self._guard("find_user"):
            result = await self._session.execute(stmt)
            return result.scalars().first()

    async def get_user_by_id(self, user_id: str | uuid.UUID) -> User | None:
        user_uuid = _as_uuid(user_id)
        if user_uuid is None:
            return None
        async with self._guard("get_user"):
            result = await self._session.execute(select(User).where(User.id == user_uuid))
            return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        async with self._guard("username_exists"):
            result = await self._session.execute(select(User.id).where(User.username == username))
            return result.first() is not None

    async def email_exists(self, email: str) -> bool:
        async with self._guard("email_exists"):
            result = await self._session.execute(select(User.id).where(User.email == email.lower()))
            return result.first() is not None

    async def username_taken_by_other(self, username: str, user_id: str | uuid.UUID) -> bool:
        stmt = select(User.id).where(User.username == username, User.id != _as_uuid(user_id))
        async with self._guard("username_taken_by_other"):
            result = await self._session.execute(stmt)
            return result.first() is not None

    async def update_user_profile(self, user_id: str | uuid.UUID, changes: Mapping[str, Any]) -> User:
        """Apply ``changes`` (a subset of ``PROFILE_FIELDS``) and return the updated user."""
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"not a profile field: {sorted(unknown)}")
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        async with self._guard("update_profile"):
            for field, value in changes.items():
                setattr(user, field, value)
            await self._session.commit()
        return user

    async def create_user(
        self, *, username: str, email: str, password_hash: str | None, display_name: str | None = None
    ) -> User:
        user = User(username=username, email=email.lower(), hashed_password=password_hash, display_name=display_name)
        async with self._guard("create_user"):
            self._session.add(user)
            await self._session.commit()
            await self._session.refresh(user)
        return user

    def verify_password(self, plain: str, password_hash: str | None) -> bool:
        return security.verify_password(plain, password_hash)

    def hash_password(self, plain: str) -> str:
        return security.get_password_hash(plain)

    def dummy_verify_password(self) -> None:
        security.dummy_verify_password()

    async def update_password_hash(self, user_id: str | uuid.UUID, new_hash: str) -> None:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        async with self._guard("update_password"):
            user.hashed_password = new_hash
            await self._session.commit()

    async def put_revocation_record(self, user_id: str | uuid.UUID, token_id: str, expires_at: datetime) -> None:
        record = RefreshToken(jti=token_id, user_id=_as_uuid(user_id), expires_at=expires_at)
        async with self._guard("put_revocation_record"):
            self._session.add(record)
            await self._session.commit()

    async def get_revocation_record(self, token_id: str) -> RefreshToken | None:
        """Return the live record for ``token_id``; an expired record is removed and treated as absent."""
        if not token_id:
            return None
        async with self._guard("get_revocation_record"):
            result = await self._session.execute(select(RefreshToken).where(RefreshToken.jti == token_id))
            record = result.scalar_one_or_none()
            if record is None:
                return None
            if _ensure_timezone(record.expires_at) <= _current_time():
                await self._session.delete(record)
                await self._session.commit()
                return None
            return record

    async def is_revocation_record_live(self, token_id: str) -> bool:
        return await self.get_revocation_record(token_id) is not None

    async def rotate_revocation_record(
        self, old_token_id: str, user_id: str | uuid.UUID, new_token_id: str, expires_at: datetime
    ) -> bool:
        """Replace a live record with a new one in a single transaction.

        Returns False, writing nothing, when the old record was not live for
        this user (already rotated, revoked, expired, or owned by someone else).
        """
        user_uuid = _as_uuid(user_id)
        stmt = delete(RefreshToken).where(
            RefreshToken.jti == old_token_id,
            RefreshToken.user_id == user_uuid,
            RefreshToken.expires_at > _current_time(),
        )
        async with self._guard("rotate_revocation_record"):
            result = await self._session.execute(stmt, execution_options=_NO_SYNC)
            if result.rowcount != 1:
                await self._session.rollback()
                return False
            self._session.add(RefreshToken(jti=new_token_id, user_id=user_uuid, expires_at=expires_at))
            await self._session.commit()
        return True

    async def delete_revocation_record(self, token_id: str) -> None:
        async with self._guard("delete_revocation_record"):
            await self._session.execute(
                delete(RefreshToken).where(RefreshToken.jti == token_id), execution_options=_NO_SYNC
            )
            await self._session.commit()

    async def delete_user_revocation_records(
        self, user_id: str | uuid.UUID, *, keep_token_id: str | None = None
    ) -> int:
        stmt = delete(RefreshToken).where(RefreshToken.user_id == _as_uuid(user_id))
        if keep_token_id:
            stmt = stmt.where(RefreshToken.jti != keep_token_id)
        async with self._guard("delete_user_revocation_records"):
            result = await self._session.execute(stmt, execution_options=_NO_SYNC)
            await self._session.commit()
        return result.rowcount or 0

    async def list_live_revocation_records(self, user_id: str | uuid.UUID) -> list[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == _as_uuid(user_id), RefreshToken.expires_at > _current_time())
            .order_by(RefreshToken.created_at.desc())
        )
        async with self._guard("list_revocation_records"):
            result = await self._session.execute(stmt)
            return list(result.scalars().all())
