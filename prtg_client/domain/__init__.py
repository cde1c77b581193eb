"""Domain models used across request and streaming layer boundaries."""

from .models import (
	ENDPOINT_DEFAULT_PATHS,
	ConnectionDetails,
	EndpointKind,
	PageCursor,
	RequestDescriptor,
	ResponseValidator,
	RetryState,
	SensorTotals,
	StreamSession,
	StreamStrategy,
	TypedResponse,
)
from .parameters import (
	DEFAULT_COLUMNS,
	ContentKind,
	FilterOperator,
	QueryParameters,
	SearchFilter,
	domain_build_log_parameters,
	domain_build_sensor_history_parameters,
	domain_build_total_objects_parameters,
	domain_format_prtg_datetime,
)
from .timeline import domain_build_stage_event

__all__ = [
	"DEFAULT_COLUMNS",
	"ENDPOINT_DEFAULT_PATHS",
	"ConnectionDetails",
	"ContentKind",
	"EndpointKind",
	"FilterOperator",
	"PageCursor",
	"QueryParameters",
	"RequestDescriptor",
	"ResponseValidator",
	"RetryState",
	"SearchFilter",
	"SensorTotals",
	"StreamSession",
	"StreamStrategy",
	"TypedResponse",
	"domain_build_log_parameters",
	"domain_build_sensor_history_parameters",
	"domain_build_stage_event",
	"domain_build_total_objects_parameters",
	"domain_format_prtg_datetime",
]
