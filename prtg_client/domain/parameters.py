"""Immutable query parameter bags for PRTG table and history requests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Iterable, Mapping

if TYPE_CHECKING:
    from .models import PageCursor


class ContentKind(str, Enum):
    """Tables that can be queried through the table-data endpoint."""

    SENSORS = "sensors"
    DEVICES = "devices"
    GROUPS = "groups"
    PROBES = "probes"
    LOGS = "messages"
    NOTIFICATIONS = "notifications"
    SCHEDULES = "schedules"
    CHANNELS = "values"
    MODIFICATION_HISTORY = "history"
    SENSOR_HISTORY = "histdata"


class FilterOperator(str, Enum):
    """Comparison operators supported by PRTG `filter_` parameters."""

    EQUALS = "equals"
    NOT_EQUALS = "neq"
    GREATER_THAN = "above"
    LESS_THAN = "below"
    CONTAINS = "sub"


DEFAULT_COLUMNS: Final[dict[ContentKind, tuple[str, ...]]] = {
    ContentKind.SENSORS: ("objid", "name", "device", "group", "probe", "status", "lastvalue", "tags", "active"),
    ContentKind.DEVICES: ("objid", "name", "host", "group", "probe", "status", "tags", "active"),
    ContentKind.GROUPS: ("objid", "name", "probe", "status", "tags", "active"),
    ContentKind.PROBES: ("objid", "name", "status", "condition", "active"),
    ContentKind.LOGS: ("objid", "datetime", "parent", "type", "name", "status", "message"),
    ContentKind.NOTIFICATIONS: ("objid", "name", "active"),
    ContentKind.SCHEDULES: ("objid", "name", "active"),
    ContentKind.CHANNELS: ("name", "lastvalue"),
    ContentKind.MODIFICATION_HISTORY: ("dateonly", "timeonly", "user", "message"),
}

RESERVED_PARAMETER_KEYS: Final[frozenset[str]] = frozenset(
    {"content", "columns", "start", "count", "username", "passhash", "password"}
)

_PRTG_DATE_FORMAT: Final[str] = "%Y-%m-%d-%H-%M-%S"


def domain_format_prtg_datetime(value: datetime) -> str:
    """Format a datetime the way PRTG expects it in query parameters."""

    return value.strftime(_PRTG_DATE_FORMAT)


@dataclass(frozen=True)
class SearchFilter:
    """One property/operator/value filter predicate.

    Attributes:
        property_name: PRTG property name, e.g. `status` or `name`.
        value: Value or values to compare against; several values are ORed.
        operator: Comparison operator.
    """

    property_name: str
    value: Any
    operator: FilterOperator = FilterOperator.EQUALS

    def filter_parameter_name(self) -> str:
        """Return the query parameter name for this filter."""

        normalized_name = self.property_name.strip().lower()
        if not normalized_name:
            raise ValueError("property_name must not be blank")
        return f"filter_{normalized_name}"

    def filter_parameter_values(self) -> tuple[str, ...]:
        """Return rendered query values for this filter."""

        raw_values = self.value if isinstance(self.value, (list, tuple, set, frozenset)) else (self.value,)
        rendered_values: list[str] = []
        for raw_value in raw_values:
            text_value = _render_value(raw_value)
            if self.operator is FilterOperator.EQUALS:
                rendered_values.append(text_value)
            else:
                rendered_values.append(f"@{self.operator.value}({text_value})")
        return tuple(rendered_values)


def _render_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return domain_format_prtg_datetime(value)
    return str(value)


@dataclass(frozen=True)
class QueryParameters:
    """Immutable parameter bag for one request.

    Instances are never mutated after construction. Page-specific copies are
    produced with `with_cursor`, so concurrently dispatched fetches never share
    cursor state.

    Attributes:
        content: Table being queried, if any.
        columns: Columns to request; defaults per content kind when empty.
        filters: Filter predicates.
        start: Record offset of the requested page.
        count: Number of records requested.
        extra: Additional parameters keyed by unique query name.
    """

    content: ContentKind | None = None
    columns: tuple[str, ...] = ()
    filters: tuple[SearchFilter, ...] = ()
    start: int | None = None
    count: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen_extra = {str(key): value for key, value in dict(self.extra).items()}
        clashing_keys = RESERVED_PARAMETER_KEYS.intersection(frozen_extra)
        if clashing_keys:
            raise ValueError(f"extra parameters must not override reserved keys: {sorted(clashing_keys)}")
        filter_keys = {search_filter.filter_parameter_name() for search_filter in self.filters}
        clashing_filter_keys = filter_keys.intersection(frozen_extra)
        if clashing_filter_keys:
            raise ValueError(f"extra parameters must not duplicate filter keys: {sorted(clashing_filter_keys)}")
        if self.start is not None and self.start < 0:
            raise ValueError("start must be >= 0")
        if self.count is not None and self.count < 0:
            raise ValueError("count must be >= 0")
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "extra", MappingProxyType(frozen_extra))

    def with_cursor(self, cursor: PageCursor) -> QueryParameters:
        """Return a snapshot of this bag positioned at the given page.

        Args:
            cursor: Page cursor to apply.

        Returns:
            QueryParameters: New bag with `start` and `count` taken from the cursor.
        """

        return replace(self, start=cursor.offset, count=cursor.page_size, extra=dict(self.extra))

    def with_count(self, count: int) -> QueryParameters:
        """Return a copy of this bag requesting `count` records from offset zero."""

        return replace(self, start=None, count=count, extra=dict(self.extra))

    def parameters_query_items(self) -> list[tuple[str, str]]:
        """Render the bag into ordered query items.

        Returns:
            list[tuple[str, str]]: Query items; multi-valued filters repeat their key.
        """

        query_items: list[tuple[str, str]] = []
        if self.content is not None:
            query_items.append(("content", self.content.value))
            columns = self.columns or DEFAULT_COLUMNS.get(self.content, ())
            if columns:
                query_items.append(("columns", ",".join(columns)))
        elif self.columns:
            query_items.append(("columns", ",".join(self.columns)))
        if self.start is not None:
            query_items.append(("start", str(self.start)))
        if self.count is not None:
            query_items.append(("count", str(self.count)))

        grouped_filters: dict[str, list[str]] = {}
        for search_filter in self.filters:
            grouped_filters.setdefault(search_filter.filter_parameter_name(), []).extend(
                search_filter.filter_parameter_values()
            )
        for filter_key, filter_values in grouped_filters.items():
            query_items.extend((filter_key, filter_value) for filter_value in filter_values)

        for extra_key, extra_value in self.extra.items():
            if isinstance(extra_value, (list, tuple)):
                query_items.extend((extra_key, _render_value(item)) for item in extra_value)
            elif extra_value is not None:
                query_items.append((extra_key, _render_value(extra_value)))
        return query_items


def domain_build_total_objects_parameters(
    content: ContentKind,
    filters: Iterable[SearchFilter] = (),
) -> QueryParameters:
    """Build the zero-page-size count probe for a content kind.

    Args:
        content: Table to count.
        filters: Optional filters restricting the count.

    Returns:
        QueryParameters: Parameters requesting zero records.
    """

    return QueryParameters(content=content, columns=("objid",), filters=tuple(filters), count=0)


def domain_build_log_parameters(
    object_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    statuses: Iterable[str] = (),
) -> QueryParameters:
    """Build parameters for the log table.

    Logs are returned newest first, so `start_date` is the most recent bound
    and maps to `filter_dend` while `end_date` maps to `filter_dstart`.

    Args:
        object_id: Object to retrieve logs for; root group when None or 0.
        start_date: Most recent timestamp to include.
        end_date: Oldest timestamp to include.
        statuses: Log status names to include.

    Returns:
        QueryParameters: Log query parameters.
    """

    filters: list[SearchFilter] = []
    status_values = tuple(statuses)
    if status_values:
        filters.append(SearchFilter("status", status_values))
    extra: dict[str, Any] = {}
    if object_id:
        extra["id"] = object_id
    if start_date is not None:
        extra["filter_dend"] = start_date
    if end_date is not None:
        extra["filter_dstart"] = end_date
    return QueryParameters(content=ContentKind.LOGS, filters=tuple(filters), extra=extra)


def domain_build_sensor_history_parameters(
    sensor_id: int,
    average: int = 300,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    count: int | None = None,
) -> QueryParameters:
    """Build parameters for the historic-data endpoint.

    Args:
        sensor_id: Sensor to retrieve channel history for.
        average: Averaging interval in seconds; 0 uses the raw sensor interval.
        start_date: Most recent timestamp; defaults to now.
        end_date: Oldest timestamp; defaults to one hour before `start_date`.
        count: Optional number of records.

    Returns:
        QueryParameters: Historic-data query parameters.

    Raises:
        ValueError: Raised when average is negative.
    """

    if average < 0:
        raise ValueError("average must be >= 0")

    resolved_start_date = start_date or datetime.now()
    resolved_end_date = end_date or (resolved_start_date - timedelta(hours=1))
    return QueryParameters(
        count=count,
        extra={
            "id": sensor_id,
            "avg": average,
            "sdate": resolved_end_date,
            "edate": resolved_start_date,
            "usecaption": 1,
        },
    )
