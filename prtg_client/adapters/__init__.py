"""Adapter layer package for PRTG transport and payload boundaries."""

from .deserialization import (
	XmlTableDeserializer,
	deserializer_parse_object_property,
	deserializer_parse_pass_hash,
	deserializer_parse_sensor_totals,
	deserializer_parse_settings_html,
	deserializer_parse_status,
	deserializer_status_version,
	validate_has_content,
	validate_sensor_history_response,
)
from .errors import (
	PrtgAuthenticationError,
	PrtgClientError,
	PrtgConnectionError,
	PrtgDeserializationError,
	PrtgHttpStatusError,
	PrtgRequestCancelledError,
	PrtgStreamAbortedError,
	PrtgTimeoutError,
	PrtgTransportError,
	PrtgValidationError,
	is_transient_transport_error,
)
from .http_transport import HttpxTransportAdapter, adapter_build_url, adapter_normalize_server
from .interfaces import DeserializerPort, TransportPort

__all__ = [
	"DeserializerPort",
	"HttpxTransportAdapter",
	"PrtgAuthenticationError",
	"PrtgClientError",
	"PrtgConnectionError",
	"PrtgDeserializationError",
	"PrtgHttpStatusError",
	"PrtgRequestCancelledError",
	"PrtgStreamAbortedError",
	"PrtgTimeoutError",
	"PrtgTransportError",
	"PrtgValidationError",
	"TransportPort",
	"XmlTableDeserializer",
	"adapter_build_url",
	"adapter_normalize_server",
	"deserializer_parse_object_property",
	"deserializer_parse_pass_hash",
	"deserializer_parse_sensor_totals",
	"deserializer_parse_settings_html",
	"deserializer_parse_status",
	"deserializer_status_version",
	"is_transient_transport_error",
	"validate_has_content",
	"validate_sensor_history_response",
]
