"""Login, refresh rotation, logout, password change and session listing.

A session begins at login with a token pair and a revocation record, is
carried forward by refresh (the old record is replaced by a new one under a
fresh ``jti``), and ends when its record is deleted on logout or lapses at
expiry. Signature validity alone never keeps a refresh token alive.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from crowdup.core.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UnexpectedError,
)
from crowdup.core.tokens import TokenCodec, TokenType, new_token_id
from crowdup.models.user import User
from crowdup.services.credential_store import CredentialStore

logger = logging.getLogger("crowdup.services.session_manager")


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    refresh_token_id: str


@dataclass(frozen=True, slots=True)
class SessionInfo:
    token_id: str
    created_at: datetime
    expires_at: datetime
    current: bool


@dataclass(frozen=True, slots=True)
class LoginResult:
    tokens: TokenPair
    user: User


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        codec: TokenCodec,
        *,
        revoke_sessions_on_password_change: bool = True,
    ) -> None:
        self._store = store
        self._codec = codec
        self._revoke_on_password_change = revoke_sessions_on_password_change

    async def start_session(self, user_id: str | uuid.UUID) -> TokenPair:
        """Mint a token pair for ``user_id`` and persist its revocation record."""
        subject = str(user_id)
        token_id = new_token_id()
        await self._store.put_revocation_record(subject, token_id, self._codec.expiry_for(TokenType.REFRESH))
        return TokenPair(
            access_token=self._codec.issue(subject, TokenType.ACCESS),
            refresh_token=self._codec.issue(subject, TokenType.REFRESH, token_id=token_id),
            refresh_token_id=token_id,
        )

    async def login(self, identifier: str, password: str) -> LoginResult:
        """Authenticate by username or email.

        Unknown identifiers and wrong passwords raise the same
        ``InvalidCredentialsError`` so responses cannot enumerate accounts.
        """
        user = await self._store.find_user_by_login_identifier(identifier)
        if user is None:
            self._store.dummy_verify_password()
            logger.info("Login rejected (user_found=False)")
            raise InvalidCredentialsError()
        if not self._store.verify_password(password, user.hashed_password):
            logger.info("Login rejected (user_found=True)")
            raise InvalidCredentialsError()
        tokens = await self.start_session(user.id)
        logger.info("Login succeeded for user %s (session %s)", user.id, tokens.refresh_token_id)
        return LoginResult(tokens=tokens, user=user)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a live refresh token for a new pair, retiring the old ``jti``."""
        claims = self._codec.verify(refresh_token, TokenType.REFRESH)
        old_token_id = claims.token_id
        if not await self._store.is_revocation_record_live(old_token_id):
            logger.info("Refresh rejected: session %s is not live", old_token_id)
            raise InvalidTokenError("revocation record missing")

        new_id = new_token_id()
        rotated = await self._store.rotate_revocation_record(
            old_token_id, claims.subject, new_id, self._codec.expiry_for(TokenType.REFRESH)
        )
        if not rotated:
            logger.warning("Refresh rejected: session %s was not rotatable", old_token_id)
            raise InvalidTokenError("rotation lost")

        if await self._store.get_user_by_id(claims.subject) is None:
            await self._store.delete_revocation_record(new_id)
            logger.warning("Refresh rejected: user %s no longer exists", claims.subject)
            raise InvalidTokenError("subject missing")

        logger.info("Rotated session %s -> %s for user %s", old_token_id, new_id, claims.subject)
        return TokenPair(
            access_token=self._codec.issue(claims.subject, TokenType.ACCESS),
            refresh_token=self._codec.issue(claims.subject, TokenType.REFRESH, token_id=new_id),
            refresh_token_id=new_id,
        )

    async def logout(self, refresh_token: str | None) -> None:
        """Best-effort revocation; never fails from the caller's perspective."""
        if not refresh_token:
            return
        try:
            claims = self._codec.verify(refresh_token, TokenType.REFRESH)
        except InvalidTokenError:
            logger.debug("Logout with an unverifiable refresh token; nothing to revoke")
            return
        try:
            await self._store.delete_revocation_record(claims.token_id)
        except UnexpectedError:
            logger.warning("Could not revoke session %s during logout", claims.token_id)
            return
        logger.info("Revoked session %s for user %s", claims.token_id, claims.subject)

    async def change_password(
        self,
        user_id: str | uuid.UUID,
        current_password: str,
        new_password: str,
        *,
        current_refresh_token: str | None = None,
    ) -> int:
        """Replace the password hash after re-verifying the current password.

        Returns the number of other sessions revoked. The caller's own session,
        identified by ``current_refresh_token``, survives.
        """
        user = await self._store.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        if not self._store.verify_password(current_password, user.hashed_password):
            logger.info("Password change rejected for user %s: current password mismatch", user.id)
            raise InvalidCredentialsError()

        await self._store.update_password_hash(user.id, self._store.hash_password(new_password))

        revoked = 0
        if self._revoke_on_password_change:
            keep_token_id = self._own_token_id(current_refresh_token, str(user.id))
            revoked = await self._store.delete_user_revocation_records(user.id, keep_token_id=keep_token_id)
        logger.info("Password changed for user %s; revoked %d other session(s)", user.id, revoked)
        return revoked

    async def list_sessions(
        self, user_id: str | uuid.UUID, *, current_refresh_token: str | None = None
    ) -> list[SessionInfo]:
        """Live sessions of ``user_id``, newest first, flagging the caller's own."""
        current_id = self._own_token_id(current_refresh_token, str(user_id))
        records = await self._store.list_live_revocation_records(user_id)
        return [
            SessionInfo(
                token_id=record.jti,
                created_at=record.created_at,
                expires_at=record.expires_at,
                current=record.jti == current_id,
            )
            for record in records
        ]

    def _own_token_id(self, refresh_token: str | None, subject: str) -> str | None:
        if not refresh_token:
            return None
        try:
            claims = self._codec.verify(refresh_token, TokenType.REFRESH)
        except InvalidTokenError:
            return None
        return claims.token_id if claims.subject == subject else None
