"""Configuration management for the Reach RPC client."""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from reach_rpc.errors import ConfigurationError

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_API_KEY = "opensesame"


class ReachSettings(BaseSettings):
    """Connection and runtime settings."""

    model_config = SettingsConfigDict(
        env_prefix="REACH_RPC_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default=DEFAULT_HOST, min_length=1, description="Hostname of the Reach RPC Server")
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536, description="TCP port of the Reach RPC Server")
    key: str = Field(default=DEFAULT_API_KEY, description="API key sent as X-API-Key")
    verify: bool = Field(default=True, description="Verify the server TLS certificate")
    timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for the server to respond")

    # Interactive calls
    max_steps: int | None = Field(default=None, gt=0, description="Upper bound on callbacks per interactive call")

    # Logging
    debug: bool = Field(default=False, description="Log every request and response body")
    log_level: str = Field(default="INFO", description="Log level")


def load_settings(**overrides: Any) -> ReachSettings:
    """Load settings from the environment, applying non-None overrides."""

    updates = {key: value for key, value in overrides.items() if value is not None}
    try:
        return ReachSettings(**updates)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid reach_rpc settings: {exc}") from exc


def update_settings(settings: ReachSettings, **overrides: Any) -> ReachSettings:
    """Return a validated copy of ``settings`` with non-None overrides applied."""

    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings
    try:
        return ReachSettings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as exc:
        raise ConfigurationError(f"invalid reach_rpc settings: {exc}") from exc
