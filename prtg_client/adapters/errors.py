"""Project-native typed exceptions for PRTG request and streaming failures."""

from __future__ import annotations

from typing import Any


class PrtgClientError(Exception):
    """Base exception for client-level PRTG failures.

    Attributes:
        descriptor: Optional request descriptor the failure belongs to.
    """

    def __init__(self, message: str, descriptor: Any | None = None):
        super().__init__(message)
        self.descriptor = descriptor


class PrtgTransportError(PrtgClientError, ConnectionError):
    """Transport-level failure while communicating with the PRTG server."""


class PrtgTimeoutError(PrtgTransportError, TimeoutError):
    """Request timed out before the server responded."""


class PrtgConnectionError(PrtgTransportError):
    """Connection could not be established, was reset, or broke mid-response."""


class PrtgHttpStatusError(PrtgTransportError):
    """Server answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: int, descriptor: Any | None = None):
        super().__init__(message=message, descriptor=descriptor)
        self.status_code = status_code


class PrtgAuthenticationError(PrtgClientError):
    """Credentials were rejected or the pass-hash response was malformed."""


class PrtgValidationError(PrtgClientError, ValueError):
    """Response rejected by a per-request validator."""


class PrtgDeserializationError(PrtgClientError, ValueError):
    """Response payload could not be deserialized."""


class PrtgRequestCancelledError(PrtgClientError):
    """Request abandoned because its cancellation signal was set."""


class PrtgStreamAbortedError(PrtgClientError):
    """Stream stopped while page fetches were still outstanding.

    Attributes:
        abandoned_count: Number of page fetches that had not completed.
    """

    def __init__(self, message: str, abandoned_count: int):
        super().__init__(message=message)
        self.abandoned_count = abandoned_count


def is_transient_transport_error(error: BaseException) -> bool:
    """Return whether a failure may be retried by the request engine.

    Besides timeouts and connection failures, 5xx responses are retried: PRTG
    answers 503 while its core server restarts or is overloaded, which clears
    like a dropped connection. 4xx responses are never retried.

    Args:
        error: Failure raised by a transport attempt.

    Returns:
        bool: True for timeouts, connection failures and 5xx responses.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if isinstance(error, (PrtgTimeoutError, PrtgConnectionError)):
        return True
    if isinstance(error, PrtgHttpStatusError):
        return error.status_code >= 500
    return False
