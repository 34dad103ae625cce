from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from crowdup.models.user import User
from crowdup.services.credential_store import SqlCredentialStore


async def register_user(
    store: SqlCredentialStore,
    *,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
) -> User:
    if await store.username_exists(username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken")
    if await store.email_exists(email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    return await store.create_user(
        username=username,
        email=email,
        password_hash=store.hash_password(password),
        display_name=display_name,
    )


async def update_profile(store: SqlCredentialStore, user_id: str, changes: dict[str, Any]) -> User:
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    username = changes.get("username")
    if username and await store.username_taken_by_other(username, user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken")
    return await store.update_user_profile(user_id, changes)
