"""
Camera Transformer Configuration
================================

This module handles configuration loading for the camera transformer.

Configuration Sources (in order of precedence):
    1. Command-line options (applied by main.py)
    2. Environment variables
    3. config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    CAMERA_TRANSFORMER_URL                 -> transport.url
    CAMERA_TRANSFORMER_RECONNECT_BACKOFF_MS -> transport.reconnect_backoff_ms
    CAMERA_TRANSFORMER_MAX_RECONNECTS      -> transport.max_reconnect_attempts
    CAMERA_TRANSFORMER_STATUS_PORT         -> server.port (and enables the server)
    CAMERA_TRANSFORMER_LOG_LEVEL           -> logging.level

Example:
    from camera_transformer.config import load_config

    settings = load_config("config.yaml")
    print(settings.transport.url)
    print(settings.cameras)
"""

import os
import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


ENV_PREFIX = "CAMERA_TRANSFORMER_"


# =============================================================================
# Configuration Models
# =============================================================================

class RelayConfig(BaseModel):
    """Per-stream queue configuration."""

    publish_queue_size: int = Field(
        default=5,
        ge=1,
        description="Outbound queue size per output stream",
    )
    subscribe_queue_size: int = Field(
        default=10,
        ge=1,
        description="Inbound queue length requested per input stream",
    )


class TransportConfig(BaseModel):
    """rosbridge connection configuration."""

    url: str = Field(
        default="ws://localhost:9090",
        description="WebSocket URL of the rosbridge server",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum consecutive failed reconnection attempts (0 = unlimited)",
    )


class ServerConfig(BaseModel):
    """Status API server configuration."""

    enabled: bool = Field(default=False, description="Serve the status API")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the camera transformer.

    ``cameras`` holds one token list per stream pair, in the same form as
    the ``--camera`` option: ``[input, output]`` or
    ``[input, output, rotation]``. Token lists are validated by
    TransformRegistry, not here, so that malformed entries surface as
    configuration errors naming the offending camera.
    """

    relay: RelayConfig = Field(default_factory=RelayConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    cameras: List[List[str]] = Field(default_factory=list)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("cameras", mode="before")
    @classmethod
    def _stringify_tokens(cls, value: Any) -> Any:
        # YAML turns "180" into an int
        if isinstance(value, list):
            return [
                [str(token) for token in entry] if isinstance(entry, list) else entry
                for entry in value
            ]
        return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config.yaml. If None, searches the working
            directory for config.yaml / config.yml.

    Returns:
        Settings: Loaded configuration

    Raises:
        FileNotFoundError: If ``config_path`` is given but does not exist
        ValueError: If the file is not a mapping or an environment value is
            malformed
        ValidationError: If a setting fails validation
    """
    if config_path is None:
        for path in (Path("config.yaml"), Path("config.yml")):
            if path.exists():
                config_path = str(path)
                break
    elif not Path(config_path).exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    config_data = {}
    if config_path:
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError(
                f"Config file {config_path} must contain a mapping, "
                f"got {type(config_data).__name__}"
            )
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Transport settings
    if env_url := os.environ.get(f"{ENV_PREFIX}URL"):
        _section(config_data, "transport")["url"] = env_url
    if env_backoff := os.environ.get(f"{ENV_PREFIX}RECONNECT_BACKOFF_MS"):
        _section(config_data, "transport")["reconnect_backoff_ms"] = _env_int("RECONNECT_BACKOFF_MS", env_backoff)
    if env_max := os.environ.get(f"{ENV_PREFIX}MAX_RECONNECTS"):
        _section(config_data, "transport")["max_reconnect_attempts"] = _env_int("MAX_RECONNECTS", env_max)

    # Status server
    if env_port := os.environ.get(f"{ENV_PREFIX}STATUS_PORT"):
        server = _section(config_data, "server")
        server["port"] = _env_int("STATUS_PORT", env_port)
        server["enabled"] = True

    # Logging settings
    if env_log := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        _section(config_data, "logging")["level"] = env_log


def _section(config_data: dict, name: str) -> dict:
    section = config_data.setdefault(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
