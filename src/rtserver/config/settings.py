"""Configuration management for rtserver.

Loads settings from a YAML configuration file with environment variable
overrides (``RTSERVER_`` prefix, ``__`` as nested delimiter). Supports
.env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/rtserver.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class SocketConfig(BaseModel):
    ping_interval: float = Field(default=25.0, gt=0, description="Seconds between WebSocket pings")
    ping_timeout: float = Field(default=60.0, gt=0, description="Seconds to wait for a pong")
    max_backlog: int = Field(
        default=256, ge=1, description="Frames queued for one peer before it is dropped"
    )


class RelayConfig(BaseModel):
    slots: int = Field(default=2, ge=1, description="Number of device slots")
    channels: int = Field(default=4, ge=1, description="Relay channels per slot")


class GpioConfig(BaseModel):
    enabled: bool = Field(default=False, description="Drive local relays through sysfs GPIO")
    slot: int = Field(default=0, ge=0, description="Slot the local relay board represents")
    sysfs_root: str = Field(default="/sys/class/gpio")
    pins: dict[int, int] = Field(
        default_factory=lambda: {1: 456, 2: 488},
        description="Channel number -> GPIO line number",
    )


class AuthConfig(BaseModel):
    token: SecretStr = Field(default=SecretStr(""), description="Shared WebSocket token; empty disables auth")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the relay server.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "RTSERVER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    socket: SocketConfig = Field(default_factory=SocketConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    gpio: GpioConfig = Field(default_factory=GpioConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs and must lose to the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply the unprefixed PORT / HOST variables used by process managers."""
    port = os.environ.get("PORT", "")
    host = os.environ.get("HOST", "")
    if not port and not host:
        return

    server = yaml_data.setdefault("server", {})
    if port:
        server["port"] = int(port)
    if host:
        server["host"] = host
