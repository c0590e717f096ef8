"""Reconciles cached credentials with the server's session state."""

import logging

from nexus.sync.api_client import ApiClient

logger = logging.getLogger(__name__)


class SessionValidator:
    """Asks the server whether a cached session is still logged in.

    Fails closed: any failure, including an unexpected exception, counts
    as "not logged in". Clearing the stored session on a negative answer
    is the caller's job.
    """

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def validate(self, token: str, deployment_code: str) -> bool:
        try:
            result = await self._api.check_status(token, deployment_code)
            if result.success and result.data is not None:
                is_logged_in = result.data.get("isLoggedIn", False) is True
                logger.info("Session validation result: is_logged_in=%s", is_logged_in)
                return is_logged_in

            logger.info("Session validation failed: %s", result.message)
            return False
        except Exception as e:
            logger.warning("Session validation failed: %s", e)
            return False
