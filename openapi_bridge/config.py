"""Settings loading from the process environment and an optional .env file.

Single environment:
    API_SPEC_URL=https://api.example.com/openapi.json
    API_BASE_URL=https://api.example.com

Several environments:
    ENVIRONMENTS=dev,prod
    DEFAULT_ENVIRONMENT=dev
    API_SPEC_URL_DEV=https://dev.example.com/openapi.json
    API_BASE_URL_DEV=https://dev.example.com
    API_SPEC_URL_PROD=...
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

VERSION = "0.1.0"
DEFAULT_PORT = 3000


class TransportType(StrEnum):
    """MCP server transport types."""

    STDIO = "stdio"
    HTTP = "http"


class LogLevel(StrEnum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EnvironmentConfig(BaseModel):
    """Where one environment's spec and API live."""

    name: str
    spec_url: str | None = None
    base_url: str | None = None


class Settings(BaseSettings):
    """Bridge settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environments: str = "default"
    default_environment: str | None = None
    api_spec_url: str | None = None
    api_base_url: str | None = None

    # HTTP client
    api_timeout: float = Field(default=30.0, gt=0)
    spec_refresh_interval: float = Field(default=0.0, ge=0)
    verify_tls: bool = True

    # Rate limiting
    rate_limit_enabled: bool = False
    rate_limit_max_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)

    # Server
    transport: TransportType | None = None
    host: str = "127.0.0.1"
    port: int | None = None
    server_name: str = "openapi-bridge"

    # Logging
    mcp_verbose: bool = False
    log_level: LogLevel = LogLevel.INFO
    log_json: bool = False

    # Naming
    action_words: str = ""

    environment_configs: dict[str, EnvironmentConfig] = Field(default_factory=dict)

    @field_validator("transport", mode="before")
    @classmethod
    def normalize_transport(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int | None) -> int | None:
        """Validate server port range."""
        if v is not None and not 1 <= v <= 65535:
            raise ValueError("Server port must be between 1 and 65535")
        return v

    @property
    def environment_names(self) -> list[str]:
        return _split_list(self.environments)

    @property
    def extra_action_words(self) -> list[str]:
        return _split_list(self.action_words)

    @property
    def effective_default_environment(self) -> str:
        if self.default_environment:
            return self.default_environment
        names = self.environment_names
        return names[0] if names else "default"

    @property
    def effective_transport(self) -> TransportType:
        """Explicit TRANSPORT wins; otherwise a configured PORT implies HTTP."""
        if self.transport is not None:
            return self.transport
        return TransportType.HTTP if self.port is not None else TransportType.STDIO

    @property
    def effective_port(self) -> int:
        return self.port if self.port is not None else DEFAULT_PORT


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_key(prefix: str, environment: str) -> str:
    return f"{prefix}_{re.sub(r'[^A-Za-z0-9]', '_', environment).upper()}"


def resolve_environment_configs(
    settings: Settings,
    values: Mapping[str, str | None],
) -> dict[str, EnvironmentConfig]:
    """Read API_SPEC_URL_<ENV> / API_BASE_URL_<ENV>, falling back to the plain keys."""
    lookup = {key.upper(): value for key, value in values.items() if value}
    configs: dict[str, EnvironmentConfig] = {}
    for name in settings.environment_names:
        configs[name] = EnvironmentConfig(
            name=name,
            spec_url=lookup.get(_env_key("API_SPEC_URL", name)) or settings.api_spec_url,
            base_url=lookup.get(_env_key("API_BASE_URL", name)) or settings.api_base_url,
        )
    return configs


def load_settings(
    env_file: Path | None = Path(".env"),
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> Settings:
    """Build validated settings.

    Raises:
        ConfigurationError: If a value is invalid or the default environment is unknown
    """
    environ = os.environ if environ is None else environ
    try:
        settings = Settings(_env_file=env_file, **overrides)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            "Fix the listed values in your environment or .env file.",
        ) from e

    if not settings.environment_names:
        raise ConfigurationError(
            "ENVIRONMENTS is empty.",
            "Set ENVIRONMENTS, e.g. ENVIRONMENTS=prod, or leave it unset for a single environment.",
        )

    default = settings.effective_default_environment
    if default not in settings.environment_names:
        raise ConfigurationError(
            f'DEFAULT_ENVIRONMENT "{default}" is not listed in ENVIRONMENTS '
            f"({', '.join(settings.environment_names)}).",
            "Pick one of the configured environments.",
        )

    values: dict[str, str | None] = {}
    if env_file is not None and env_file.exists():
        values.update(dotenv_values(env_file))
    values.update(environ)

    configs = resolve_environment_configs(settings, values)
    return settings.model_copy(update={"environment_configs": configs})
