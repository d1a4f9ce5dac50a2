"""
Configuration module for the HANDCAST server.

Handles loading server settings and applying the overrides the CLI exports
through HANDCAST_* environment variables.
"""

import logging
import os
from pathlib import Path

from handcast.shared.constants import CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH
from handcast.shared.types import ServerSettings

logger = logging.getLogger(__name__)

# Environment variable -> ServerSettings field
ENV_OVERRIDES: dict[str, str] = {
    "HANDCAST_HOST": "host",
    "HANDCAST_PORT": "port",
    "HANDCAST_WS_PATH": "ws_path",
    "HANDCAST_SEND_TIMEOUT": "send_timeout_s",
    "HANDCAST_SENSOR": "sensor",
    "HANDCAST_REPLAY_PATH": "replay_path",
    "HANDCAST_SENSOR_RATE": "sensor_rate_hz",
    "HANDCAST_LOG_LEVEL": "log_level",
}


def get_default_settings() -> ServerSettings:
    """
    Create default settings if no settings file exists.
    """
    return ServerSettings()


def load_settings(filepath: str | None = None) -> ServerSettings:
    """
    Load server settings from JSON file.

    Args:
        filepath (str | None): Path to settings file. If None, uses the path from
                               the HANDCAST_CONFIG_PATH environment variable or the
                               default path (config/handcast.json).

    Returns:
        ServerSettings: Loaded settings.

    Raises:
        pydantic.ValidationError: If the file content is invalid.
    """
    if filepath is None:
        filepath = os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)

    path = Path(filepath)

    # If file does not exist or is empty, return default settings
    if not path.exists() or path.stat().st_size == 0:
        logger.warning(f"Settings file not found or empty: {filepath}")
        logger.info("Using default settings.")
        return get_default_settings()

    with open(path) as f:
        data = f.read()

    return ServerSettings.model_validate_json(data)


def settings_from_env(filepath: str | None = None) -> ServerSettings:
    """
    Load settings and apply HANDCAST_* environment overrides on top.

    Overrides are validated together with the file values, so a bad value in the
    environment raises the same pydantic.ValidationError as a bad file.
    """
    settings = load_settings(filepath)

    overrides = {
        field: os.environ[env_name]
        for env_name, field in ENV_OVERRIDES.items()
        if os.environ.get(env_name)
    }
    if not overrides:
        return settings

    logger.debug(f"Applying environment overrides: {sorted(overrides)}")
    return ServerSettings.model_validate(settings.model_dump() | overrides)
