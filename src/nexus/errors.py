"""Error taxonomy for the sync client.

Components below the CLI never let these escape their boundary: the
transport converts httpx failures into them, and the API client turns
them into ``ApiResult`` messages via ``describe_error``.
"""


class NexusError(Exception):
    """Base class for all agent errors."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NetworkError(NexusError):
    """Connection or transport level failure."""

    default_message = "Unable to reach the server. Check your connection."


class RequestTimeoutError(NexusError):
    """An operation-specific deadline was exceeded."""

    default_message = "Request timed out"


class AuthError(NexusError):
    """Server rejected the credentials (HTTP 401/403)."""

    default_message = "Authentication failed. Please login again."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServerError(NexusError):
    """Any other non-success HTTP status."""

    default_message = "Server error. Please try again later."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(NexusError):
    """Response body could not be decoded."""

    default_message = "Invalid response format from server"


class PermissionDeniedError(NexusError):
    """Location, battery or network information is unavailable."""

    default_message = "Required device permission is not granted"


def error_for_status(status_code: int) -> NexusError | None:
    """Classify an HTTP status code.

    Returns:
        None for 2xx, AuthError for 401/403, ServerError otherwise
    """
    if 200 <= status_code < 300:
        return None
    if status_code in (401, 403):
        return AuthError(status_code=status_code)
    return ServerError(f"Server error: {status_code}", status_code=status_code)


def describe_error(exc: BaseException) -> str:
    """Return a human-readable classification for any exception."""
    if isinstance(exc, NexusError):
        return exc.message
    if isinstance(exc, TimeoutError):
        return RequestTimeoutError.default_message
    if isinstance(exc, (ConnectionError, OSError)):
        return NetworkError.default_message
    if isinstance(exc, ValueError):
        return ParseError.default_message
    return f"{NexusError.default_message} ({type(exc).__name__})"
