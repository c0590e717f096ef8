"""Timed HTTP POST transport for the tracking API."""

import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from nexus import __version__
from nexus.errors import NetworkError, NexusError, RequestTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class TransportResult:
    """Raw outcome of one POST: either a response or a classified error."""

    status_code: int | None = None
    text: str = ""
    error: NexusError | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        """True when the server answered at all, whatever the status."""
        return self.error is None and self.status_code is not None


class HttpTransport:
    """Thin wrapper around httpx.AsyncClient issuing JSON POSTs.

    Every call carries its own timeout. Transport exceptions never escape:
    timeouts become RequestTimeoutError and everything else NetworkError,
    returned inside a TransportResult.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: API root, endpoint names are appended to it
            timeout: Default timeout when a call does not pass one
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": f"nexus-agent/{__version__}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def post(
        self,
        endpoint: str,
        token: str,
        payload: dict[str, Any],
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> TransportResult:
        """POST a JSON payload with a bearer token.

        Args:
            endpoint: Endpoint name (e.g. "checkStatus")
            token: Bearer token for the Authorization header
            payload: JSON-serializable request body
            timeout: Deadline for this call in seconds
            headers: Extra headers for this call

        Returns:
            TransportResult with status and body, or a classified error
        """
        request_headers = {"Authorization": f"Bearer {token}"}
        if headers:
            request_headers.update(headers)

        deadline = timeout if timeout is not None else self.timeout
        start = time.monotonic()
        try:
            response = await self._client.post(
                f"{self.base_url}/{endpoint}",
                json=payload,
                headers=request_headers,
                timeout=httpx.Timeout(deadline),
            )
        except httpx.TimeoutException as e:
            logger.debug("POST %s timed out after %.1fs: %s", endpoint, deadline, e)
            return TransportResult(
                error=RequestTimeoutError(),
                elapsed_ms=(time.monotonic() - start) * 1000,
            )
        except httpx.ConnectError as e:
            logger.debug("POST %s connection error: %s", endpoint, e)
            return TransportResult(
                error=NetworkError(),
                elapsed_ms=(time.monotonic() - start) * 1000,
            )
        except (httpx.HTTPError, OSError) as e:
            logger.debug("POST %s failed: %s", endpoint, e)
            return TransportResult(
                error=NetworkError(f"{NetworkError.default_message} ({type(e).__name__})"),
                elapsed_ms=(time.monotonic() - start) * 1000,
            )

        return TransportResult(
            status_code=response.status_code,
            text=response.text,
            elapsed_ms=(time.monotonic() - start) * 1000,
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
