"""
Service layer exceptions.

Every failure surfaced by ApiService is one of a closed set of kinds, each
backed by its own exception class so callers can catch exactly what they
handle.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    UNEXPECTED = "UNEXPECTED"
    NETWORK = "NETWORK"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


class ApiError(Exception):
    """Base exception for API layer errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class UnauthorizedError(ApiError):
    """Request rejected with 401 after the one-shot refresh, or no session."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized", url: str | None = None):
        super().__init__(message, status_code=401, url=url)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Not found", url: str | None = None):
        super().__init__(message, status_code=404, url=url)


class RequestTimeoutError(ApiError):
    """Server answered 408, or the client-side timeout elapsed."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        status_code: int | None = None,
    ):
        self.timeout = timeout
        if timeout is not None:
            message = f"Request to '{url}' timed out after {timeout}s"
        else:
            message = "Request timeout"
        super().__init__(message, status_code=status_code, url=url)


class UnexpectedStatusError(ApiError):
    """Any other non-2xx status."""

    kind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        url: str | None = None,
    ):
        super().__init__(
            message or f"Unexpected error ({status_code})",
            status_code=status_code,
            url=url,
        )


class NetworkError(ApiError):
    """Transport-level failure, no response received."""

    kind = ErrorKind.NETWORK


class MalformedResponseError(ApiError):
    """Response body does not have the shape the call site requires."""

    kind = ErrorKind.MALFORMED_RESPONSE


class CacheError(Exception):
    """Cache storage operation failed.

    Raised by stores only; CacheManager absorbs it and degrades to a miss.
    """

    pass
