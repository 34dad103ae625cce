"""Seed script for a demo account in local/dev environments."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from crowdup.core.logging import configure_logging
from crowdup.db.session import async_session, init_models
from crowdup.models.user import User
from crowdup.services.credential_store import SqlCredentialStore

DEMO_USERNAME = "alice"
DEMO_EMAIL = "alice@crowdup.example.com"
DEMO_PASSWORD = "changeme123"
DEMO_DISPLAY_NAME = "Alice Demo"

logger = logging.getLogger("crowdup.scripts.seed")


async def seed(session: AsyncSession | None = None) -> User:
    """Create the demo user if missing and return it. Safe to run repeatedly."""
    if session is None:
        await init_models()
        async with async_session() as owned_session:
            return await seed(session=owned_session)

    store = SqlCredentialStore(session)
    existing = await store.find_user_by_login_identifier(DEMO_USERNAME)
    if existing is not None:
        logger.info("Demo user %s already present", DEMO_USERNAME)
        return existing
    user = await store.create_user(
        username=DEMO_USERNAME,
        email=DEMO_EMAIL,
        password_hash=store.hash_password(DEMO_PASSWORD),
        display_name=DEMO_DISPLAY_NAME,
    )
    logger.info("Created demo user %s (%s)", DEMO_USERNAME, user.id)
    return user


def main() -> None:
    configure_logging()
    asyncio.run(seed())


if __name__ == "__main__":
    main()
