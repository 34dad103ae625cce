from . import authenticator, credential_store, session_manager, user_service

__all__ = [
    "authenticator",
    "credential_store",
    "session_manager",
    "user_service",
]
