from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from crowdup.core.config import settings
from crowdup.core.errors import UnauthenticatedError
from crowdup.core.tokens import TokenCodec
from crowdup.db.session import get_session
from crowdup.services.authenticator import Anonymous, Principal, RequestAuthenticator
from crowdup.services.credential_store import SqlCredentialStore
from crowdup.services.session_manager import SessionManager


async def get_db() -> AsyncSession:
    async for session in get_session():
        yield session


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


def get_credential_store(session: AsyncSession = Depends(get_db)) -> SqlCredentialStore:
    return SqlCredentialStore(session)


def get_session_manager(
    store: SqlCredentialStore = Depends(get_credential_store),
    codec: TokenCodec = Depends(get_token_codec),
) -> SessionManager:
    return SessionManager(
        store, codec, revoke_sessions_on_password_change=settings.revoke_sessions_on_password_change
    )


def get_principal(request: Request, codec: TokenCodec = Depends(get_token_codec)) -> Principal | Anonymous:
    return RequestAuthenticator(codec).authenticate(request.cookies)


def require_principal(principal: Principal | Anonymous = Depends(get_principal)) -> Principal:
    if not principal.is_authenticated:
        raise UnauthenticatedError()
    return principal
