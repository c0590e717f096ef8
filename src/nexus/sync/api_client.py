"""Client for the deployment tracking API.

All operations return an ApiResult and never raise. Transport failures,
bad status codes and malformed bodies are folded into ``success=False``
results with a human-readable message.
"""

import json
import logging
from datetime import datetime
from typing import Any

import httpx

from nexus.config import Settings
from nexus.errors import RequestTimeoutError, describe_error, error_for_status
from nexus.models import (
    INVALID_RESPONSE_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ApiResult,
    LocationSample,
    Session,
    SyncRequest,
    SyncType,
    TelemetrySnapshot,
)
from nexus.sync.transport import HttpTransport, TransportResult

logger = logging.getLogger(__name__)

SET_UNIT_ENDPOINT = "setUnit"
CHECK_STATUS_ENDPOINT = "checkStatus"
UPDATE_LOCATION_ENDPOINT = "updateLocation"
HEARTBEAT_ENDPOINT = "heartbeat"


class ApiClient:
    """Implements login, logout, checkStatus, updateLocation and heartbeat.

    Example:
        async with ApiClient(settings) as api:
            result = await api.check_status(token, code)
            if result.success:
                print(result.data["isLoggedIn"])
    """

    def __init__(
        self,
        settings: Settings,
        transport: HttpTransport | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Settings with base URL and per-operation timeouts
            transport: Prebuilt HttpTransport to use instead of a new one
            http_transport: Optional httpx transport for a new HttpTransport
        """
        self.settings = settings
        self._transport = transport or HttpTransport(
            settings.base_url,
            timeout=settings.request_timeout,
            transport=http_transport,
        )

    # --- Session operations ---

    async def login(
        self,
        token: str,
        deployment_code: str,
        device_descriptor: str | None = None,
    ) -> ApiResult:
        """Register this unit as logged in for a deployment."""
        payload = {
            "deploymentCode": deployment_code,
            "action": "login",
            "timestamp": _now(),
            "deviceInfo": device_descriptor,
        }
        return await self._set_unit(token, payload, "login")

    async def logout(self, token: str, deployment_code: str) -> ApiResult:
        """Mark this unit as logged out."""
        payload = {
            "deploymentCode": deployment_code,
            "action": "logout",
            "timestamp": _now(),
        }
        return await self._set_unit(token, payload, "logout")

    async def _set_unit(self, token: str, payload: dict[str, Any], action: str) -> ApiResult:
        try:
            response = await self._transport.post(
                SET_UNIT_ENDPOINT,
                token,
                payload,
                timeout=self.settings.request_timeout,
            )
            if not response.ok:
                return ApiResult.error(_failure_message(response))
            _log_rejection(SET_UNIT_ENDPOINT, response.status_code)
            return ApiResult.from_response(response.status_code, response.text)
        except Exception as e:
            logger.error("%s request failed unexpectedly: %s", action, e)
            return ApiResult.error(describe_error(e))

    async def check_status(self, token: str, deployment_code: str) -> ApiResult:
        """Ask the server whether the session is still logged in.

        Unlike the generic mapping, a 200 response is a success whatever the
        body's ``success`` field says; the body is returned verbatim.
        """
        payload = {"deploymentCode": deployment_code, "timestamp": _now()}
        try:
            response = await self._transport.post(
                CHECK_STATUS_ENDPOINT,
                token,
                payload,
                timeout=self.settings.status_timeout,
            )
            if not response.ok:
                if isinstance(response.error, RequestTimeoutError):
                    return ApiResult.error("Session check timed out")
                return ApiResult.error(f"Network error checking status: {_failure_message(response)}")

            if response.status_code == 200:
                try:
                    body = json.loads(response.text)
                except ValueError:
                    return ApiResult.error(INVALID_RESPONSE_MESSAGE)
                if not isinstance(body, dict):
                    return ApiResult.error(INVALID_RESPONSE_MESSAGE)
                return ApiResult(success=True, message="Status checked successfully", data=body)

            if response.status_code == 401:
                return ApiResult.error(
                    "Authentication failed - token may be invalid",
                    data={"isLoggedIn": False},
                )
            return ApiResult.error("Server error checking status", data={"isLoggedIn": False})
        except Exception as e:
            logger.error("Status check failed unexpectedly: %s", e)
            return ApiResult.error(f"Network error checking status: {describe_error(e)}")

    # --- Sync operations ---

    async def update_location(
        self,
        session: Session,
        sample: LocationSample,
        telemetry: TelemetrySnapshot,
        aggressive: bool = False,
        device_descriptor: str | None = None,
    ) -> ApiResult:
        """Post a location fix with battery and signal state.

        Aggressive posts use the longer timeout, carry ``X-Sync-Type:
        aggressive`` and include the device descriptor.
        """
        request = _build_request(session, telemetry, sample, aggressive, device_descriptor)
        try:
            payload = request.location_payload()
        except ValueError as e:
            return ApiResult.error(describe_error(e))
        return await self._post_sync(UPDATE_LOCATION_ENDPOINT, request, payload, "updating location")

    async def heartbeat(
        self,
        session: Session,
        telemetry: TelemetrySnapshot,
        aggressive: bool = False,
        device_descriptor: str | None = None,
    ) -> ApiResult:
        """Post a location-less liveness update (status=online)."""
        request = _build_request(session, telemetry, None, aggressive, device_descriptor)
        return await self._post_sync(
            HEARTBEAT_ENDPOINT, request, request.heartbeat_payload(), "sending heartbeat"
        )

    async def send(self, request: SyncRequest) -> ApiResult:
        """Dispatch a SyncRequest as a location update or a heartbeat."""
        if request.sample is not None:
            return await self.update_location(
                request.session,
                request.sample,
                request.telemetry,
                aggressive=request.aggressive,
                device_descriptor=request.device_descriptor,
            )
        return await self.heartbeat(
            request.session,
            request.telemetry,
            aggressive=request.aggressive,
            device_descriptor=request.device_descriptor,
        )

    async def _post_sync(
        self,
        endpoint: str,
        request: SyncRequest,
        payload: dict[str, Any],
        action: str,
    ) -> ApiResult:
        timeout = (
            self.settings.aggressive_timeout if request.aggressive else self.settings.update_timeout
        )
        try:
            response = await self._transport.post(
                endpoint,
                request.session.token,
                payload,
                timeout=timeout,
                headers={"X-Sync-Type": request.sync_type.value},
            )
            if not response.ok:
                return ApiResult.error(f"Network error {action}: {_failure_message(response)}")

            # Session expired or logged out elsewhere; body is not inspected
            if response.status_code == 403:
                return ApiResult.error(SESSION_EXPIRED_MESSAGE)

            result = ApiResult.from_response(response.status_code, response.text)
            if result.success and request.aggressive:
                logger.debug("Aggressive %s succeeded", endpoint)
            _log_rejection(endpoint, response.status_code)
            return result
        except Exception as e:
            logger.error("Error %s: %s", action, e)
            return ApiResult.error(f"Network error {action}: {describe_error(e)}")

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()


def _now() -> str:
    return datetime.now().isoformat()


def _build_request(
    session: Session,
    telemetry: TelemetrySnapshot,
    sample: LocationSample | None,
    aggressive: bool,
    device_descriptor: str | None,
) -> SyncRequest:
    return SyncRequest(
        session=session,
        telemetry=telemetry,
        sample=sample,
        sync_type=SyncType.AGGRESSIVE if aggressive else SyncType.NORMAL,
        device_descriptor=device_descriptor if aggressive else None,
    )


def _log_rejection(endpoint: str, status_code: int | None) -> None:
    if status_code is None:
        return
    error = error_for_status(status_code)
    if error is not None:
        logger.warning("%s rejected: %s (%s)", endpoint, error.message, type(error).__name__)


def _failure_message(response: TransportResult) -> str:
    if response.error is not None:
        return response.error.message
    return describe_error(RuntimeError("no response"))
