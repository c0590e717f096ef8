"""Startup routing: resume a session, ask for login, or ask for permissions."""

import logging
from enum import Enum

from nexus.device.permissions import PermissionGate
from nexus.logging import log_session_cleared
from nexus.session.store import SessionStore, clear_session, load_session
from nexus.session.validator import SessionValidator

logger = logging.getLogger(__name__)


class StartupDecision(Enum):
    """Where the app goes after startup checks."""

    RESUME = "resume"
    LOGIN = "login"
    PERMISSIONS = "permissions"


class StartupRouter:
    """Decides the startup route from stored credentials and permissions.

    - stored session, valid on the server, permissions granted: RESUME
    - stored session, valid, permissions missing: LOGIN
    - stored session rejected: cleared, then routed as if none was stored
    - no stored session: LOGIN with permissions, PERMISSIONS without
    - anything unexpected: PERMISSIONS
    """

    def __init__(
        self,
        store: SessionStore,
        validator: SessionValidator,
        permission_gate: PermissionGate,
    ) -> None:
        self._store = store
        self._validator = validator
        self._permission_gate = permission_gate

    async def resolve(self) -> StartupDecision:
        try:
            session = load_session(self._store)
            if session is not None:
                logger.info("Found stored credentials, validating session")
                if await self._validator.validate(session.token, session.deployment_code):
                    if self._permission_gate.has_all_critical_permissions():
                        return StartupDecision.RESUME
                    logger.info("Critical permissions missing, routing to login")
                    return StartupDecision.LOGIN

                logger.info("Stored session is invalid, clearing credentials")
                self._clear()

            if self._permission_gate.has_all_critical_permissions():
                return StartupDecision.LOGIN
            return StartupDecision.PERMISSIONS
        except Exception as e:
            logger.error("Error checking startup conditions: %s", e)
            return StartupDecision.PERMISSIONS

    def _clear(self) -> None:
        try:
            clear_session(self._store)
            log_session_cleared(logger, "validation_failed")
        except Exception as e:
            logger.error("Error clearing invalid session: %s", e)
