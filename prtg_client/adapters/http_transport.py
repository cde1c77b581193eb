"""httpx-backed transport adapter for PRTG HTTP API requests."""

from __future__ import annotations

import logging
from typing import Final, Sequence

import httpx

from .errors import (
    PrtgAuthenticationError,
    PrtgConnectionError,
    PrtgHttpStatusError,
    PrtgTimeoutError,
)
from .interfaces import TransportPort

logger = logging.getLogger(__name__)


def adapter_normalize_server(server: str) -> str:
    """Normalize a server address into a base URL.

    Args:
        server: Host name or URL; HTTPS is assumed when no scheme is given.

    Returns:
        str: Base URL without trailing slash.

    Raises:
        ValueError: Raised when server is blank.
    """

    normalized_server = server.strip()
    if not normalized_server:
        raise ValueError("server must not be blank")
    if "://" not in normalized_server:
        normalized_server = f"https://{normalized_server}"
    return normalized_server.rstrip("/")


def adapter_build_url(server: str, endpoint_path: str) -> str:
    """Join a base server URL and an endpoint path."""

    return f"{adapter_normalize_server(server)}/{endpoint_path.lstrip('/')}"


class HttpxTransportAdapter(TransportPort):
    """Transport implementation sharing one pooled `httpx.Client` across threads.

    The pooled client is created once and never reconfigured per request, so
    concurrently dispatched page fetches can use it safely.
    """

    _USER_AGENT: Final[str] = "prtg-stream-client/1.0 (Python/httpx)"
    _AUTHENTICATION_STATUS_CODES: Final[frozenset[int]] = frozenset({401, 403})

    def __init__(
        self,
        request_timeout_seconds: float = 30.0,
        verify_tls: bool = True,
        max_connections: int = 40,
        client: httpx.Client | None = None,
    ):
        """Initialize the transport adapter.

        Args:
            request_timeout_seconds: Default timeout for each request.
            verify_tls: Whether server certificates are verified.
            max_connections: Connection pool size shared by all worker threads.
            client: Optional preconfigured client, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when timeout or pool size is invalid.
        """

        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        self._request_timeout_seconds = request_timeout_seconds
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(request_timeout_seconds),
            verify=verify_tls,
            follow_redirects=True,
            headers={"User-Agent": self._USER_AGENT},
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections),
        )

    def adapter_send(
        self,
        method: str,
        url: str,
        query_parameters: Sequence[tuple[str, str]],
        timeout_seconds: float | None = None,
    ) -> str:
        """Execute one HTTP request and return the decoded response body.

        Args:
            method: HTTP method, `GET` or `POST`.
            url: Endpoint URL.
            query_parameters: Ordered query items.
            timeout_seconds: Optional timeout override.

        Returns:
            str: Response body text.

        Raises:
            PrtgTimeoutError: Raised when the request timed out.
            PrtgConnectionError: Raised for network and protocol failures.
            PrtgAuthenticationError: Raised for 401 and 403 responses.
            PrtgHttpStatusError: Raised for other non-success statuses.
            ValueError: Raised for unsupported HTTP methods.
        """

        normalized_method = method.strip().upper()
        timeout = httpx.Timeout(timeout_seconds or self._request_timeout_seconds)
        try:
            if normalized_method == "GET":
                response = self._client.get(url, params=list(query_parameters), timeout=timeout)
            elif normalized_method == "POST":
                response = self._client.post(url, data=_adapter_group_form_items(query_parameters), timeout=timeout)
            else:
                raise ValueError(f"unsupported HTTP method: {method}")
        except httpx.TimeoutException as error:
            raise PrtgTimeoutError("PRTG transport request timed out") from error
        except httpx.TransportError as error:
            raise PrtgConnectionError(f"PRTG transport request failed: {error}") from error

        status_code = int(response.status_code)
        if status_code in self._AUTHENTICATION_STATUS_CODES:
            raise PrtgAuthenticationError(
                f"PRTG rejected the supplied credentials (HTTP {status_code}). Verify username and pass-hash."
            )
        if status_code >= 400:
            raise PrtgHttpStatusError(f"PRTG upstream returned HTTP {status_code}", status_code=status_code)

        return response.text

    def adapter_close(self) -> None:
        """Close the pooled HTTP client."""

        logger.debug("Closing pooled PRTG HTTP client")
        self._client.close()

    def __enter__(self) -> HttpxTransportAdapter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.adapter_close()


def _adapter_group_form_items(query_parameters: Sequence[tuple[str, str]]) -> dict[str, str | list[str]]:
    grouped_items: dict[str, list[str]] = {}
    for key, value in query_parameters:
        grouped_items.setdefault(key, []).append(value)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped_items.items()}
