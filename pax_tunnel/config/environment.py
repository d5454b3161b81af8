"""Environment variable loading and validation."""

import os
from typing import Any, Optional

from dotenv import load_dotenv

from .models import AppConfig, DEFAULT_API_URL
from ..utils.exceptions import ConfigurationError
from ..utils.logging import get_logger

logger = get_logger("config")

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_environment_config(env_file: Optional[str] = None, **overrides: Any) -> AppConfig:
    """
    Load and validate configuration from environment variables.

    Values passed as keyword overrides (typically from the command line)
    take precedence over the environment; ``None`` overrides are ignored.

    Args:
        env_file: Optional path to .env file
        **overrides: AppConfig field values

    Returns:
        Validated application configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    logger.debug("Loading configuration from environment variables")

    try:
        values: dict[str, Any] = {
            "api_url": os.getenv("PAX_API_URL", DEFAULT_API_URL),
            "api_timeout": float(os.getenv("PAX_TIMEOUT", "10")),
            "host": os.getenv("PAX_HOST") or None,
            "user": os.getenv("PAX_USER") or None,
            "ssh_port": int(os.getenv("PAX_SSH_PORT", "22")),
            "password": os.getenv("PAX_PASSWORD") or None,
            "private_key": os.getenv("PAX_PRIVATE_KEY") or None,
            "local_host": os.getenv("PAX_LOCAL_HOST", "127.0.0.1"),
            "local_port": int(os.getenv("PAX_LOCAL_PORT", "1080")),
            "connect_timeout": float(os.getenv("PAX_CONNECT_TIMEOUT", "10")),
            "silent": _get_bool_env("PAX_SILENT"),
        }

        unknown = set(overrides) - set(AppConfig.__dataclass_fields__)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {sorted(unknown)}")

        values.update({key: value for key, value in overrides.items() if value is not None})

        config = AppConfig(**values)

        logger.debug("Configuration loaded and validated successfully")
        return config

    except (ValueError, KeyError) as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def _get_bool_env(key: str) -> bool:
    """Interpret an environment variable as a boolean flag."""
    return os.getenv(key, "").strip().lower() in _TRUE_VALUES
