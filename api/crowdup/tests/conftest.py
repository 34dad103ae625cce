"""Shared pytest fixtures for API tests and database isolation."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.context import CryptContext
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crowdup.api.deps import get_db, get_token_codec
from crowdup.core import security
from crowdup.core.config import settings
from crowdup.core.tokens import TokenCodec
from crowdup.db.base import Base
from crowdup.main import app
from crowdup.services.credential_store import SqlCredentialStore
from crowdup.tests.utils import TEST_SIGNING_SECRET

IN_MEMORY_SQLITE = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def _use_plaintext_passwords(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(security, "pwd_context", CryptContext(schemes=["plaintext"]))


@pytest.fixture()
def codec() -> TokenCodec:
    return TokenCodec(TEST_SIGNING_SECRET)


@pytest_asyncio.fixture()
async def session() -> AsyncSession:
    database_url = settings.test_database_url or IN_MEMORY_SQLITE
    url = make_url(database_url)
    schema_name: str | None = None
    if url.drivername.startswith("sqlite"):
        # One shared connection keeps an in-memory database alive across sessions.
        engine = create_async_engine(
            database_url, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    else:
        engine = create_async_engine(database_url, future=True)
    if url.drivername.startswith("postgresql"):
        # Isolate each test run in its own schema for parallel-friendly cleanup.
        schema_name = f"test_{uuid.uuid4().hex}"
        engine = engine.execution_options(schema_translate_map={None: schema_name})
    async with engine.begin() as conn:
        if schema_name:
            await conn.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
        await conn.run_sync(Base.metadata.create_all)
    TestingSession = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with TestingSession() as session:
            yield session
    finally:
        async with engine.begin() as conn:
            if schema_name:
                await conn.exec_driver_sql(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE')
            else:
                await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture()
def store(session: AsyncSession) -> SqlCredentialStore:
    return SqlCredentialStore(session)


@pytest_asyncio.fixture()
async def client(session: AsyncSession, codec: TokenCodec) -> AsyncClient:
    async def _get_test_db():
        yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_token_codec] = lambda: codec
    transport = ASGITransport(app=app)
    headers = {"origin": settings.allowed_origins[0]}
    async with AsyncClient(transport=transport, base_url="http://testserver", headers=headers) as async_client:
        yield async_client
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_token_codec, None)
