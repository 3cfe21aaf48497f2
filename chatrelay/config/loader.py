"""Configuration loader.

Loads relay configuration from a JSON file:
- ``.env`` is read first (python-dotenv) so secrets can live outside the file
- ``${ENV_VAR}`` tokens are substituted from the environment
- The result is validated against ``RelayConfig``
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from .schema import RelayConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CHATRELAY_CONFIG"

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


class ConfigError(ValueError):
    """Raised when a config file cannot be parsed or fails validation."""


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ``${VAR}`` with environment values (unset vars stay as-is)."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v) for v in obj]
    return obj


def resolve_config_path(config_path: str | Path | None = None) -> Path | None:
    """Explicit path, then ``$CHATRELAY_CONFIG``, then well-known locations."""
    if config_path:
        return Path(config_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    candidates = [
        Path.cwd() / "chatrelay.json",
        Path.cwd() / "config" / "chatrelay.json",
        Path.home() / ".chatrelay" / "config.json",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config_raw(path: Path) -> dict[str, Any]:
    """Parse a config file and substitute environment variables."""
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    if not isinstance(obj, dict):
        raise ConfigError(f"Config root must be an object: {path}")

    return _substitute_env_vars(obj)


def load_config(
    config_path: str | Path | None = None,
    load_env: bool = True,
) -> RelayConfig:
    """Load relay configuration.

    Args:
        config_path: Optional explicit config file
        load_env: Read a ``.env`` file into the environment first

    Returns:
        Validated configuration (defaults when no file is found)

    Raises:
        ConfigError: If the file exists but is invalid
    """
    if load_env:
        load_dotenv()

    path = resolve_config_path(config_path)
    if path is None or not path.exists():
        if config_path:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.info("No config file found, using defaults")
        return RelayConfig()

    data = load_config_raw(path)
    try:
        config = RelayConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e

    logger.info(f"Loaded config from {path} (channels={list(config.channels)})")
    return config


__all__ = [
    "ConfigError",
    "load_config",
    "load_config_raw",
    "resolve_config_path",
]
