"""Client facade exposing PRTG queries, streams and raw actions."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Callable, Iterable, Iterator, Sequence

from prtg_client.adapters import (
    DeserializerPort,
    HttpxTransportAdapter,
    TransportPort,
    adapter_normalize_server,
    deserializer_parse_object_property,
    deserializer_parse_sensor_totals,
    deserializer_parse_settings_html,
    deserializer_parse_status,
    deserializer_status_version,
    validate_has_content,
    validate_sensor_history_response,
)
from prtg_client.config import AuthMode
from prtg_client.domain import (
    ConnectionDetails,
    ContentKind,
    EndpointKind,
    QueryParameters,
    RequestDescriptor,
    SearchFilter,
    SensorTotals,
    domain_build_log_parameters,
    domain_build_sensor_history_parameters,
    domain_build_total_objects_parameters,
)
from prtg_client.request import LogSubscriber, RequestEngine, RetrySubscriber
from prtg_client.streaming import DEFAULT_PAGE_SIZE, DEFAULT_SERIAL_THRESHOLD, PagingStreamer

logger = logging.getLogger(__name__)

RecordFactory = Callable[[dict[str, str]], Any]


class PrtgClient:
    """High-level PRTG API client built on the request engine and paging streamer.

    When `auth_mode` is `AuthMode.PASSWORD` the constructor exchanges the
    password for a pass-hash once; every later request authenticates with it.
    """

    def __init__(
        self,
        server: str,
        username: str,
        password: str,
        auth_mode: AuthMode = AuthMode.PASSWORD,
        retry_count: int = 1,
        retry_delay_seconds: float = 3.0,
        request_timeout_seconds: float = 30.0,
        stream_page_size: int = DEFAULT_PAGE_SIZE,
        stream_serial_threshold: int = DEFAULT_SERIAL_THRESHOLD,
        stream_max_workers: int = 40,
        verify_tls: bool = True,
        transport: TransportPort | None = None,
        deserializer: DeserializerPort | None = None,
        sleep_provider: Callable[[float], None] | None = None,
    ):
        """Initialize the client and resolve its pass-hash.

        Args:
            server: PRTG server host name or URL.
            username: Account name.
            password: Password or pass-hash, depending on `auth_mode`.
            auth_mode: Whether `password` must be exchanged for a pass-hash.
            retry_count: Retries after the first attempt for transient failures.
            retry_delay_seconds: Linear backoff unit between retries.
            request_timeout_seconds: Per-request transport timeout.
            stream_page_size: Records per page when streaming.
            stream_serial_threshold: Totals above this value stream serially.
            stream_max_workers: Worker pool size for parallel page fetches.
            verify_tls: Whether server certificates are verified.
            transport: Optional transport override.
            deserializer: Optional deserializer override.
            sleep_provider: Optional backoff wait override, mainly for tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when server, username or password is blank.
            PrtgAuthenticationError: Raised when the pass-hash exchange fails.
        """

        normalized_username = username.strip()
        if not normalized_username:
            raise ValueError("username must not be blank")
        if not password:
            raise ValueError("password must not be empty")

        resolved_auth_mode = AuthMode(auth_mode)
        self._transport = transport or HttpxTransportAdapter(
            request_timeout_seconds=request_timeout_seconds,
            verify_tls=verify_tls,
            max_connections=stream_max_workers,
        )
        connection = ConnectionDetails(
            server=adapter_normalize_server(server),
            username=normalized_username,
            pass_hash=password if resolved_auth_mode is AuthMode.PASSHASH else "",
        )
        self._engine = RequestEngine(
            transport=self._transport,
            connection=connection,
            deserializer=deserializer,
            retry_count=retry_count,
            retry_delay_seconds=retry_delay_seconds,
            request_timeout_seconds=request_timeout_seconds,
            max_workers=stream_max_workers,
            sleep_provider=sleep_provider,
        )
        self._streamer = PagingStreamer(
            engine=self._engine,
            page_size=stream_page_size,
            serial_threshold=stream_serial_threshold,
        )

        if resolved_auth_mode is AuthMode.PASSWORD:
            logger.debug("Exchanging password for pass-hash on %s", connection.server)
            try:
                self._engine.engine_request_pass_hash(password)
            except BaseException:
                self.client_close()
                raise

    @property
    def client_server(self) -> str:
        return self._engine.engine_connection.server

    @property
    def client_username(self) -> str:
        return self._engine.engine_connection.username

    @property
    def client_pass_hash(self) -> str:
        return self._engine.engine_connection.pass_hash

    @property
    def client_engine(self) -> RequestEngine:
        return self._engine

    @property
    def client_streamer(self) -> PagingStreamer:
        return self._streamer

    def client_subscribe_retry(self, callback: RetrySubscriber) -> None:
        """Register a callback invoked before each transient-failure retry."""

        self._engine.engine_event_hub.events_subscribe_retry(callback)

    def client_unsubscribe_retry(self, callback: RetrySubscriber) -> None:
        self._engine.engine_event_hub.events_unsubscribe_retry(callback)

    def client_subscribe_log(self, callback: LogSubscriber) -> None:
        """Register a callback receiving verbose processing messages."""

        self._engine.engine_event_hub.events_subscribe_log(callback)

    def client_unsubscribe_log(self, callback: LogSubscriber) -> None:
        self._engine.engine_event_hub.events_unsubscribe_log(callback)

    def client_get_objects(self, parameters: QueryParameters, record_type: RecordFactory = dict) -> list[Any]:
        """Retrieve one page of records described by `parameters`."""

        descriptor = RequestDescriptor(endpoint_kind=EndpointKind.TABLE_DATA, parameters=parameters)
        return self._engine.engine_request_objects(descriptor, record_type).items

    def client_get_objects_async(
        self,
        parameters: QueryParameters,
        record_type: RecordFactory = dict,
    ) -> Future[list[Any]]:
        """Retrieve one page of records on the shared worker pool."""

        return self._engine.engine_submit(self.client_get_objects, parameters, record_type)

    def client_get_total_objects(self, content: ContentKind, filters: Iterable[SearchFilter] = ()) -> int:
        """Return the number of objects of a content kind, optionally filtered."""

        descriptor = RequestDescriptor(
            endpoint_kind=EndpointKind.TABLE_DATA,
            parameters=domain_build_total_objects_parameters(content, filters),
        )
        return self._engine.engine_request_objects(descriptor).total_count

    def client_stream_objects(
        self,
        parameters: QueryParameters,
        serial: bool = False,
        record_type: RecordFactory = dict,
    ) -> Iterator[Any]:
        """Stream every record matching `parameters`.

        Unless `serial` is set or the total exceeds the serial threshold, all
        pages are requested at once and records arrive in page completion order.

        Args:
            parameters: Query parameters, typically with `content` set.
            serial: Request pages one at a time in page order.
            record_type: Callable building one record from its field mapping.

        Returns:
            Iterator[Any]: Lazy record sequence for one streaming session.
        """

        return self._streamer.streaming_stream_objects(parameters=parameters, serial=serial, record_type=record_type)

    def client_stream_logs(
        self,
        object_id: int | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        statuses: Sequence[str] = (),
        serial: bool = False,
        record_type: RecordFactory = dict,
    ) -> Iterator[Any]:
        """Stream log records, newest first within each page.

        The log table may report more records than it returns; serial streams
        stop at the first empty page.
        """

        parameters = domain_build_log_parameters(
            object_id=object_id,
            start_date=start_date,
            end_date=end_date,
            statuses=statuses,
        )
        return self._streamer.streaming_stream_objects(parameters=parameters, serial=serial, record_type=record_type)

    def client_get_sensor_history(
        self,
        sensor_id: int,
        average: int = 300,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        count: int | None = None,
        record_type: RecordFactory = dict,
    ) -> list[Any]:
        """Retrieve channel history records of a sensor for a time window."""

        descriptor = RequestDescriptor(
            endpoint_kind=EndpointKind.HISTORIC_DATA,
            parameters=domain_build_sensor_history_parameters(sensor_id, average, start_date, end_date, count),
            validator=validate_sensor_history_response,
        )
        return self._engine.engine_request_objects(descriptor, record_type).items

    def client_stream_sensor_history(
        self,
        sensor_id: int,
        average: int = 300,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        record_type: RecordFactory = dict,
    ) -> Iterator[Any]:
        """Stream channel history records serially, requesting pages as needed."""

        return self._streamer.streaming_stream_objects(
            parameters=domain_build_sensor_history_parameters(sensor_id, average, start_date, end_date),
            serial=True,
            record_type=record_type,
            endpoint_kind=EndpointKind.HISTORIC_DATA,
            validator=validate_sensor_history_response,
        )

    def client_get_status(self) -> dict[str, Any]:
        """Retrieve server status and cache the reported server version."""

        raw_response = self._engine.engine_execute(
            RequestDescriptor(
                endpoint_kind=EndpointKind.STATUS,
                parameters=QueryParameters(extra={"id": 0}),
                validator=validate_has_content,
            ),
        )
        status_payload = deserializer_parse_status(raw_response)
        self._engine.engine_cache_server_version(deserializer_status_version(status_payload))
        return status_payload

    def client_get_server_version(self) -> str | None:
        """Return the server version, requesting the status endpoint when none is cached yet.

        This call blocks on a `getstatus.htm` request only while no version is
        cached; the first response carrying a version fills the cache for the
        life of the client.
        """

        if self._engine.engine_server_version is None:
            self.client_get_status()
        return self._engine.engine_server_version

    def client_get_sensor_totals(self) -> SensorTotals:
        """Retrieve the number of sensors in each status across the server."""

        raw_response = self._engine.engine_execute(
            RequestDescriptor(endpoint_kind=EndpointKind.TREE_NODE_STATS, validator=validate_has_content)
        )
        return deserializer_parse_sensor_totals(raw_response)

    def client_get_sensor_totals_async(self) -> Future[SensorTotals]:
        """Retrieve sensor totals on the shared worker pool."""

        return self._engine.engine_submit(self.client_get_sensor_totals)

    def client_get_object_settings(self, object_id: int, object_type: str) -> dict[str, str]:
        """Read every property shown on an object settings page.

        Args:
            object_id: Object whose settings page is requested.
            object_type: PRTG object type, e.g. `sensor`, `device` or `notification`.

        Returns:
            dict[str, str]: Property name to current value.

        Raises:
            ValueError: Raised when object_type is blank.
            PrtgValidationError: Raised when the page is empty or has no form fields.
        """

        normalized_object_type = object_type.strip().lower()
        if not normalized_object_type:
            raise ValueError("object_type must not be blank")
        raw_response = self._engine.engine_execute(
            RequestDescriptor(
                endpoint_kind=EndpointKind.HTML_SETTINGS,
                parameters=QueryParameters(extra={"id": object_id, "objecttype": normalized_object_type}),
                validator=validate_has_content,
            )
        )
        return deserializer_parse_settings_html(raw_response)

    def client_get_object_property_raw(self, object_id: int, name: str) -> str:
        """Retrieve an unparsed object property; a trailing `_` in `name` is ignored."""

        normalized_name = name.strip().rstrip("_")
        if not normalized_name:
            raise ValueError("name must not be blank")
        raw_response = self._engine.engine_execute(
            RequestDescriptor(
                endpoint_kind=EndpointKind.OBJECT_PROPERTY_GET,
                parameters=QueryParameters(extra={"id": object_id, "name": normalized_name, "show": "nohtmlencode"}),
            )
        )
        return deserializer_parse_object_property(raw_response)

    def client_set_object_property_raw(self, object_ids: Sequence[int], name: str, value: Any) -> None:
        """Set an unparsed object property on one or more objects."""

        if not object_ids:
            raise ValueError("object_ids must not be empty")
        normalized_name = name.strip().rstrip("_")
        if not normalized_name:
            raise ValueError("name must not be blank")
        self._engine.engine_execute(
            RequestDescriptor(
                endpoint_kind=EndpointKind.OBJECT_PROPERTY_SET,
                parameters=QueryParameters(
                    extra={"id": ",".join(str(object_id) for object_id in object_ids), f"{normalized_name}_": value}
                ),
            )
        )

    def client_execute_action(self, action_name: str, object_id: int | None = None, **extra: Any) -> str:
        """Execute a generic `api/<action>.htm` command and return the raw body."""

        action_parameters = dict(extra)
        if object_id is not None:
            action_parameters["id"] = object_id
        return self._engine.engine_execute(
            RequestDescriptor(
                endpoint_kind=EndpointKind.ACTION,
                parameters=QueryParameters(extra=action_parameters),
                action_name=action_name,
            )
        )

    def client_close(self) -> None:
        """Stop the worker pool and close the transport."""

        self._engine.engine_close()
        self._transport.adapter_close()

    def __enter__(self) -> PrtgClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.client_close()
