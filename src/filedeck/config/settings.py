"""Configuration management for filedeck.

Loads settings from a YAML configuration file with environment variable
overrides (FILEDECK_ prefix, ``__`` for nested keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from filedeck.domain.models import UserContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/filedeck.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)


class TransportConfig(BaseModel):
    """How WebSocket connections are accepted and closed.

    Built once at startup and handed to every route.
    """

    subprotocol: str | None = Field(default=None)
    normal_close_code: int = Field(default=1000, ge=1000, le=4999)
    error_close_code: int = Field(default=1011, ge=1000, le=4999)


class CommandConfig(BaseModel):
    flush_interval: float = Field(
        default=0.1, gt=0, description="Seconds between output flushes to the client"
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)
    loggers: dict[str, str] = Field(
        default_factory=lambda: {"uvicorn.access": "WARNING"},
        description="Level overrides for individual loggers",
    )


class Settings(BaseSettings):
    """Root configuration for the filedeck service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "FILEDECK_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    command: CommandConfig = Field(default_factory=CommandConfig)
    user: UserContext = Field(default_factory=UserContext)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    # Init kwargs outrank env sources in pydantic-settings, so prefixed
    # env vars are folded back over the YAML values here.
    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv(env_path: Path = Path(".env")) -> None:
    """Load a .env file into os.environ without clobbering set values."""
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            if not os.environ.get(key):
                os.environ[key] = value.strip().strip('"')


def _apply_env_overrides(yaml_data: dict) -> None:
    """Overlay FILEDECK_SECTION__FIELD variables onto the YAML mapping."""
    prefix = Settings.model_config["env_prefix"]
    for name, value in os.environ.items():
        if not name.upper().startswith(prefix):
            continue
        keys = name[len(prefix):].lower().split("__")
        if len(keys) != 2 or keys[0] not in Settings.model_fields:
            continue
        section, field = keys
        current = yaml_data.get(section)
        if not isinstance(current, dict):
            current = {}
            yaml_data[section] = current
        current[field] = _coerce_env_value(value)


def _coerce_env_value(value: str):
    """Parse list-valued overrides (e.g. commands) written as YAML."""
    if value.startswith(("[", "{")):
        return yaml.safe_load(value)
    return value
