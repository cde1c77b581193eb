"""Typed client settings with dotenv support and startup validation."""

from enum import Enum

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsLoadError(RuntimeError):
    """Raised when client settings cannot be loaded or validated."""


class AuthMode(str, Enum):
    """Whether the configured secret is a password or an existing pass-hash."""

    PASSWORD = "password"
    PASSHASH = "passhash"


class ClientSettings(BaseSettings):
    """Connection, retry and streaming settings for the PRTG client.

    Environment variable names are field names in uppercase with a `PRTG_`
    prefix. Example: `retry_count` reads from `PRTG_RETRY_COUNT`.

    Attributes:
        server: PRTG server host name or URL; HTTPS is assumed without a scheme.
        username: Account name.
        password: Password or pass-hash, depending on `auth_mode`.
        auth_mode: Whether `password` must be exchanged for a pass-hash.
        retry_count: Retries after the first attempt for transient failures.
        retry_delay_seconds: Linear backoff unit between retries.
        request_timeout_seconds: Per-request transport timeout.
        stream_page_size: Records requested per page when streaming.
        stream_serial_threshold: Totals above this value are streamed serially.
        stream_max_workers: Worker pool size, bounding page fetches in flight.
        verify_tls: Whether server certificates are verified.
    """

    model_config = SettingsConfigDict(
        env_prefix="PRTG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    server: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: SecretStr
    auth_mode: AuthMode = Field(default=AuthMode.PASSWORD)
    retry_count: int = Field(default=1, ge=0, le=20)
    retry_delay_seconds: float = Field(default=3.0, ge=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    stream_page_size: int = Field(default=500, ge=1)
    stream_serial_threshold: int = Field(default=20000, ge=1)
    stream_max_workers: int = Field(default=40, ge=1, le=256)
    verify_tls: bool = Field(default=True)

    @field_validator("server", "username")
    @classmethod
    def _validate_non_empty_string(cls, value: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError("value must not be blank")
        return stripped_value

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("password must not be empty")
        return value

    @field_validator("stream_serial_threshold")
    @classmethod
    def _validate_threshold_bounds(cls, value: int, info) -> int:
        page_size = int(info.data.get("stream_page_size", 500))
        if value < page_size:
            raise ValueError("stream_serial_threshold must be greater than or equal to stream_page_size")
        return value


def config_load_settings(**overrides: object) -> ClientSettings:
    """Load and validate client settings from environment and dotenv.

    Args:
        **overrides: Explicit field values taking precedence over the environment.

    Returns:
        ClientSettings: Validated settings object.

    Raises:
        SettingsLoadError: Raised when required settings are missing or invalid.
    """

    try:
        return ClientSettings(**overrides)
    except ValidationError as error:
        raise SettingsLoadError(
            f"PRTG client configuration validation failed. Update .env or PRTG_* environment variables. Details: {error}"
        ) from error
