"""Session module for credential storage, validation and startup routing."""

from nexus.session.router import StartupDecision, StartupRouter
from nexus.session.store import (
    DEPLOYMENT_CODE_KEY,
    LOCK_KEY,
    TOKEN_KEY,
    FileSessionStore,
    SessionStore,
    clear_session,
    load_session,
    save_session,
)
from nexus.session.validator import SessionValidator

__all__ = [
    "DEPLOYMENT_CODE_KEY",
    "FileSessionStore",
    "LOCK_KEY",
    "SessionStore",
    "SessionValidator",
    "StartupDecision",
    "StartupRouter",
    "TOKEN_KEY",
    "clear_session",
    "load_session",
    "save_session",
]
