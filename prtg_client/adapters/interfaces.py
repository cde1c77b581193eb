"""Typed interfaces for adapter-layer responsibilities."""

from typing import Any, Callable, Protocol, Sequence

from prtg_client.domain import TypedResponse


class TransportPort(Protocol):
    """Port definition for sending one HTTP request to a PRTG server."""

    def adapter_send(
        self,
        method: str,
        url: str,
        query_parameters: Sequence[tuple[str, str]],
        timeout_seconds: float,
    ) -> str:
        """Send one request and return the decoded response body.

        Args:
            method: HTTP method, `GET` or `POST`.
            url: Absolute endpoint URL without query string.
            query_parameters: Ordered query items.
            timeout_seconds: Per-request timeout.

        Returns:
            str: Decoded response body.

        Raises:
            PrtgTimeoutError: Raised when the request timed out.
            PrtgConnectionError: Raised when the connection failed.
            PrtgHttpStatusError: Raised for non-success HTTP statuses.
            PrtgAuthenticationError: Raised when the server rejected credentials.
        """

    def adapter_close(self) -> None:
        """Release pooled transport resources."""


class DeserializerPort(Protocol):
    """Port definition for turning raw payloads into typed records."""

    def deserializer_parse(self, raw: str, record_type: Callable[[dict[str, str]], Any]) -> TypedResponse[Any]:
        """Parse one raw table or history payload.

        Args:
            raw: Raw response body.
            record_type: Callable building one record from its field mapping.

        Returns:
            TypedResponse: Records, reported total and server version.

        Raises:
            PrtgDeserializationError: Raised when the payload is malformed.
        """
