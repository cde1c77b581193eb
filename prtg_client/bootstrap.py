"""Client bootstrap wiring for settings validation and dependency assembly."""

from prtg_client.adapters import DeserializerPort, HttpxTransportAdapter, TransportPort
from prtg_client.client import PrtgClient
from prtg_client.config import ClientSettings, config_load_settings


def bootstrap_create_client(
    settings: ClientSettings | None = None,
    transport: TransportPort | None = None,
    deserializer: DeserializerPort | None = None,
) -> PrtgClient:
    """Assemble a PRTG client from validated settings.

    Args:
        settings: Optional preloaded settings; loaded from the environment when omitted.
        transport: Optional transport override.
        deserializer: Optional deserializer override.

    Returns:
        PrtgClient: Client with its pass-hash resolved.

    Raises:
        SettingsLoadError: Raised when settings validation fails.
        PrtgAuthenticationError: Raised when the pass-hash exchange fails.
    """

    resolved_settings = settings or config_load_settings()
    resolved_transport = transport or HttpxTransportAdapter(
        request_timeout_seconds=resolved_settings.request_timeout_seconds,
        verify_tls=resolved_settings.verify_tls,
        max_connections=resolved_settings.stream_max_workers,
    )
    return PrtgClient(
        server=resolved_settings.server,
        username=resolved_settings.username,
        password=resolved_settings.password.get_secret_value(),
        auth_mode=resolved_settings.auth_mode,
        retry_count=resolved_settings.retry_count,
        retry_delay_seconds=resolved_settings.retry_delay_seconds,
        request_timeout_seconds=resolved_settings.request_timeout_seconds,
        stream_page_size=resolved_settings.stream_page_size,
        stream_serial_threshold=resolved_settings.stream_serial_threshold,
        stream_max_workers=resolved_settings.stream_max_workers,
        verify_tls=resolved_settings.verify_tls,
        transport=resolved_transport,
        deserializer=deserializer,
    )
