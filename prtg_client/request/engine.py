"""Request engine executing PRTG requests with linear retry backoff."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Final, Sequence

from prtg_client.adapters import (
    DeserializerPort,
    PrtgClientError,
    PrtgRequestCancelledError,
    PrtgValidationError,
    TransportPort,
    XmlTableDeserializer,
    adapter_build_url,
    deserializer_parse_pass_hash,
    is_transient_transport_error,
)
from prtg_client.domain import (
    ConnectionDetails,
    EndpointKind,
    RequestDescriptor,
    RetryState,
    TypedResponse,
)

from .events import EngineEventHub, RetryRequestEvent

logger = logging.getLogger(__name__)


class RequestEngine:
    """Execute one logical request at a time against a PRTG transport.

    Only transient transport failures are retried. The n-th retry waits
    `retry_delay_seconds * n` seconds. Authentication, validation and
    deserialization failures surface immediately.
    """

    _POST_ENDPOINT_KINDS: Final[frozenset[EndpointKind]] = frozenset({EndpointKind.OBJECT_PROPERTY_SET})

    def __init__(
        self,
        transport: TransportPort,
        connection: ConnectionDetails,
        deserializer: DeserializerPort | None = None,
        event_hub: EngineEventHub | None = None,
        retry_count: int = 1,
        retry_delay_seconds: float = 3.0,
        request_timeout_seconds: float = 30.0,
        executor: ThreadPoolExecutor | None = None,
        max_workers: int = 40,
        sleep_provider: Callable[[float], None] | None = None,
    ):
        """Initialize the request engine.

        Args:
            transport: Transport used for every attempt.
            connection: Server address and credentials.
            deserializer: Payload deserializer for table-style requests.
            event_hub: Subscriber hub for retry and verbose notifications.
            retry_count: Number of retries after the first attempt.
            retry_delay_seconds: Linear backoff unit in seconds.
            request_timeout_seconds: Per-attempt transport timeout.
            executor: Optional shared worker pool for asynchronous requests.
            max_workers: Worker pool size when the engine creates its own pool.
            sleep_provider: Optional wait override, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when retry or timeout configuration is invalid.
        """

        if retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        if retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be >= 0")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self._transport = transport
        self._connection = connection
        self._deserializer = deserializer or XmlTableDeserializer()
        self._event_hub = event_hub or EngineEventHub()
        self._retry_count = retry_count
        self._retry_delay_seconds = retry_delay_seconds
        self._request_timeout_seconds = request_timeout_seconds
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="prtg-request")
        self._sleep_provider = sleep_provider
        self._version_lock = threading.Lock()
        self._server_version: str | None = None

    @property
    def engine_event_hub(self) -> EngineEventHub:
        return self._event_hub

    @property
    def engine_connection(self) -> ConnectionDetails:
        return self._connection

    @property
    def engine_server_version(self) -> str | None:
        """Return the server version cached from the first response that carried one."""

        return self._server_version

    def engine_cache_server_version(self, server_version: str | None) -> None:
        """Cache the server version unless one is already cached."""

        if not server_version:
            return
        with self._version_lock:
            if self._server_version is None:
                self._server_version = server_version
                logger.info("Detected PRTG server version %s", server_version)

    def engine_request_pass_hash(self, password: str) -> str:
        """Exchange a password for a pass-hash and store it on the connection.

        Args:
            password: Account password.

        Returns:
            str: Numeric pass-hash returned by the server.

        Raises:
            PrtgAuthenticationError: Raised when the server did not return a numeric hash.
            PrtgTransportError: Raised when transport retries are exhausted.
        """

        descriptor = RequestDescriptor(endpoint_kind=EndpointKind.PASS_HASH)
        query_items = [("username", self._connection.username), ("password", password)]
        raw_response = self._engine_send_with_retry(descriptor=descriptor, query_items=query_items, cancel_event=None)
        pass_hash = deserializer_parse_pass_hash(raw_response)
        self._connection = replace(self._connection, pass_hash=pass_hash)
        return pass_hash

    def engine_execute(
        self,
        descriptor: RequestDescriptor,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Execute one request and return the validated raw body.

        Args:
            descriptor: Request to execute.
            cancel_event: Optional cancellation signal checked between attempts.

        Returns:
            str: Raw response body, transformed by the descriptor validator when it returns a value.

        Raises:
            ValueError: Raised when the endpoint kind is not recognized.
            PrtgTransportError: Raised when transient failures outlast the retry budget.
            PrtgAuthenticationError: Raised when credentials are rejected.
            PrtgValidationError: Raised when the validator rejects the response.
            PrtgRequestCancelledError: Raised when the cancellation signal is set.
        """

        if not isinstance(descriptor.endpoint_kind, EndpointKind):
            raise ValueError(f"unrecognized endpoint kind: {descriptor.endpoint_kind!r}")

        query_items = list(self._connection.connection_auth_parameters().items())
        query_items.extend(descriptor.parameters.parameters_query_items())
        raw_response = self._engine_send_with_retry(
            descriptor=descriptor,
            query_items=query_items,
            cancel_event=cancel_event,
        )
        return self._engine_apply_validator(descriptor=descriptor, raw_response=raw_response)

    def engine_execute_async(
        self,
        descriptor: RequestDescriptor,
        cancel_event: threading.Event | None = None,
    ) -> Future[str]:
        """Submit one request to the shared worker pool."""

        return self._executor.submit(self.engine_execute, descriptor, cancel_event)

    def engine_request_objects(
        self,
        descriptor: RequestDescriptor,
        record_type: Callable[[dict[str, str]], Any] = dict,
        cancel_event: threading.Event | None = None,
    ) -> TypedResponse[Any]:
        """Execute one table-style request and deserialize its records.

        Args:
            descriptor: Request to execute.
            record_type: Callable building one record from its field mapping.
            cancel_event: Optional cancellation signal.

        Returns:
            TypedResponse: Page records, reported total and server version.

        Raises:
            PrtgDeserializationError: Raised when the payload is malformed.
        """

        raw_response = self.engine_execute(descriptor=descriptor, cancel_event=cancel_event)
        typed_response = self._deserializer.deserializer_parse(raw_response, record_type)
        self.engine_cache_server_version(typed_response.server_version)
        return typed_response

    def engine_request_objects_async(
        self,
        descriptor: RequestDescriptor,
        record_type: Callable[[dict[str, str]], Any] = dict,
        cancel_event: threading.Event | None = None,
    ) -> Future[TypedResponse[Any]]:
        """Submit one table-style request to the shared worker pool."""

        return self._executor.submit(self.engine_request_objects, descriptor, record_type, cancel_event)

    def engine_submit(self, function: Callable[..., Any], *args: Any) -> Future[Any]:
        """Run an arbitrary fetch callable on the shared worker pool."""

        return self._executor.submit(function, *args)

    def engine_close(self) -> None:
        """Shut down the worker pool when this engine created it."""

        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _engine_send_with_retry(
        self,
        descriptor: RequestDescriptor,
        query_items: Sequence[tuple[str, str]],
        cancel_event: threading.Event | None,
    ) -> str:
        request_url = adapter_build_url(self._connection.server, descriptor.descriptor_endpoint_path())
        method = "POST" if descriptor.endpoint_kind in self._POST_ENDPOINT_KINDS else "GET"
        retry_state = RetryState(max_retries=self._retry_count, base_delay_seconds=self._retry_delay_seconds)

        while True:
            self._engine_raise_if_cancelled(descriptor=descriptor, cancel_event=cancel_event)
            self._event_hub.events_publish_log(
                message=f"Requesting {descriptor.descriptor_describe()}",
                stage="request",
                status="started",
                details={"endpoint": descriptor.endpoint_kind.value, "attempt": retry_state.attempt + 1},
            )
            try:
                return self._transport.adapter_send(
                    method,
                    request_url,
                    query_items,
                    self._request_timeout_seconds,
                )
            except PrtgClientError as error:
                if error.descriptor is None:
                    error.descriptor = descriptor
                if not is_transient_transport_error(error):
                    raise
                if not retry_state.retry_state_register_failure():
                    logger.error(
                        "PRTG request failed after %s attempts: %s",
                        retry_state.attempt,
                        descriptor.descriptor_describe(),
                    )
                    raise
                delay_seconds = retry_state.retry_state_next_delay_seconds()
                self._event_hub.events_publish_retry(
                    RetryRequestEvent(
                        attempt=retry_state.attempt,
                        descriptor=descriptor,
                        error=error,
                        delay_seconds=delay_seconds,
                    )
                )
                self._engine_wait(delay_seconds=delay_seconds, descriptor=descriptor, cancel_event=cancel_event)

    def _engine_apply_validator(self, descriptor: RequestDescriptor, raw_response: str) -> str:
        if descriptor.validator is None:
            return raw_response
        try:
            transformed_response = descriptor.validator(raw_response)
        except PrtgClientError as error:
            if error.descriptor is None:
                error.descriptor = descriptor
            raise
        except ValueError as error:
            raise PrtgValidationError(str(error), descriptor=descriptor) from error
        return raw_response if transformed_response is None else transformed_response

    def _engine_wait(
        self,
        delay_seconds: float,
        descriptor: RequestDescriptor,
        cancel_event: threading.Event | None,
    ) -> None:
        if self._sleep_provider is not None:
            self._sleep_provider(delay_seconds)
        elif cancel_event is not None:
            cancel_event.wait(delay_seconds)
        elif delay_seconds > 0:
            time.sleep(delay_seconds)
        self._engine_raise_if_cancelled(descriptor=descriptor, cancel_event=cancel_event)

    def _engine_raise_if_cancelled(
        self,
        descriptor: RequestDescriptor,
        cancel_event: threading.Event | None,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PrtgRequestCancelledError(
                f"PRTG request cancelled: {descriptor.descriptor_describe()}",
                descriptor=descriptor,
            )
