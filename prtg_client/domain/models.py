"""Typed domain models shared across request and streaming layers.

This module provides the immutable data contracts exchanged between the
request engine, the paging streamer and the client facade.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Final, Generic, TypeVar

from .parameters import QueryParameters

RecordT = TypeVar("RecordT")


class EndpointKind(str, Enum):
    """Recognized PRTG endpoint families handled by the request engine."""

    TABLE_DATA = "table_data"
    HISTORIC_DATA = "historic_data"
    STATUS = "status"
    TREE_NODE_STATS = "tree_node_stats"
    ACTION = "action"
    OBJECT_PROPERTY_GET = "object_property_get"
    OBJECT_PROPERTY_SET = "object_property_set"
    HTML_SETTINGS = "html_settings"
    PASS_HASH = "pass_hash"


ENDPOINT_DEFAULT_PATHS: Final[dict[EndpointKind, str]] = {
    EndpointKind.TABLE_DATA: "api/table.xml",
    EndpointKind.HISTORIC_DATA: "api/historicdata.xml",
    EndpointKind.STATUS: "api/getstatus.htm",
    EndpointKind.TREE_NODE_STATS: "api/gettreenodestats.xml",
    EndpointKind.OBJECT_PROPERTY_GET: "api/getobjectproperty.htm",
    EndpointKind.OBJECT_PROPERTY_SET: "editsettings",
    EndpointKind.HTML_SETTINGS: "controls/objectdata.htm",
    EndpointKind.PASS_HASH: "api/getpasshash.htm",
}


class StreamStrategy(str, Enum):
    """Fetch mode chosen for one streaming session."""

    PARALLEL = "parallel"
    SERIAL = "serial"


ResponseValidator = Callable[[str], str | None]


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical request, immutable once dispatched.

    Attributes:
        endpoint_kind: Endpoint family the request targets.
        parameters: Immutable parameter bag rendered into the query string.
        validator: Optional callable that rejects unexpected raw responses or
            returns a transformed body.
        action_name: Command name for `EndpointKind.ACTION` requests, e.g. `pause`.
    """

    endpoint_kind: EndpointKind
    parameters: QueryParameters = field(default_factory=QueryParameters)
    validator: ResponseValidator | None = None
    action_name: str | None = None

    def descriptor_endpoint_path(self) -> str:
        """Return the server-relative path for this descriptor.

        Returns:
            str: Endpoint path without leading slash.

        Raises:
            ValueError: Raised when an action descriptor has no action name.
        """

        if self.endpoint_kind is EndpointKind.ACTION:
            normalized_action_name = (self.action_name or "").strip()
            if not normalized_action_name:
                raise ValueError("action_name must not be blank for action requests")
            if not normalized_action_name.endswith(".htm"):
                normalized_action_name = f"{normalized_action_name}.htm"
            return f"api/{normalized_action_name}"
        return ENDPOINT_DEFAULT_PATHS[self.endpoint_kind]

    def descriptor_describe(self) -> str:
        """Return a short human-readable label without credentials."""

        content = self.parameters.content.value if self.parameters.content is not None else "-"
        return (
            f"{self.descriptor_endpoint_path()} content={content} "
            f"start={self.parameters.start} count={self.parameters.count}"
        )


@dataclass(frozen=True)
class PageCursor:
    """Position of one page in a paginated query.

    Attributes:
        page_index: Zero-based page index.
        page_size: Number of records requested for this page.
        offset: Record offset of the first record of this page.
    """

    page_index: int
    page_size: int
    offset: int


@dataclass(frozen=True)
class StreamSession:
    """Planning state for one call of the streaming API.

    Attributes:
        total_count: Total record count reported by the count probe.
        page_size: Constant page size for the session.
        strategy: Chosen fetch strategy.
        content_kind: Content being streamed, when known.
    """

    total_count: int
    page_size: int
    strategy: StreamStrategy
    content_kind: str | None = None


@dataclass
class RetryState:
    """Retry bookkeeping private to one logical request.

    Attributes:
        max_retries: Number of retries allowed after the first attempt.
        base_delay_seconds: Linear backoff unit.
        attempt: Number of attempts that already failed transiently.
    """

    max_retries: int
    base_delay_seconds: float
    attempt: int = 0

    def retry_state_register_failure(self) -> bool:
        """Record one transient failure and report whether a retry is allowed.

        Returns:
            bool: True when another attempt may be made.
        """

        self.attempt += 1
        return self.attempt <= self.max_retries

    def retry_state_next_delay_seconds(self) -> float:
        """Return the linear backoff delay for the most recent failure."""

        return float(self.base_delay_seconds) * self.attempt


@dataclass(frozen=True)
class TypedResponse(Generic[RecordT]):
    """Deserialized page of records.

    Attributes:
        items: Records of this page in server order.
        total_count: Total count reported by the server, a planning hint only.
        server_version: Server version string embedded in the payload, if any.
    """

    items: list[RecordT]
    total_count: int
    server_version: str | None = None


@dataclass(frozen=True)
class ConnectionDetails:
    """Server address and credentials shared by every request.

    Attributes:
        server: Base server URL including scheme.
        username: Account name.
        pass_hash: Pass-hash used in place of a password.
    """

    server: str
    username: str
    pass_hash: str

    def connection_auth_parameters(self) -> dict[str, Any]:
        """Return authentication query parameters."""

        return {"username": self.username, "passhash": self.pass_hash}


@dataclass(frozen=True)
class SensorTotals:
    """Number of sensors in each status across the whole server.

    Attributes:
        up: Sensors in the Up state.
        down: Sensors in the Down state.
        warning: Sensors in the Warning state.
        partial_down: Sensors that are down on some cluster nodes.
        down_acknowledged: Down sensors that were acknowledged.
        paused: Paused sensors.
        unusual: Sensors reporting unusual values.
        undefined: Sensors with no data yet.
        total: All sensors.
    """

    up: int = 0
    down: int = 0
    warning: int = 0
    partial_down: int = 0
    down_acknowledged: int = 0
    paused: int = 0
    unusual: int = 0
    undefined: int = 0
    total: int = 0
