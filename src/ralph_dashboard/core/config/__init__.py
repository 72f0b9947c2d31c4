"""Configuration loading for the Ralph dashboard.

Configuration comes from an optional ``ralph-dashboard.yaml`` in the project
root (or an explicit path / dict) and is held in a module singleton.

Example:
    >>> config = load_config({"git": {"poll_interval": 30}})
    >>> get_config().git.poll_interval
    30.0

"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ralph_dashboard.core.exceptions import ConfigError

from .models import DashboardConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "ralph-dashboard.yaml"

_config: DashboardConfig | None = None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def load_config(source: dict[str, Any] | Path | None = None) -> DashboardConfig:
    """Load configuration and install it as the active singleton.

    Args:
        source: Mapping, path to a YAML file, or None for defaults.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation.

    """
    global _config

    if source is None:
        data: dict[str, Any] = {}
    elif isinstance(source, Path):
        data = _read_yaml(source)
        logger.info("Loaded configuration from %s", source)
    else:
        data = source

    try:
        _config = DashboardConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    return _config


def load_project_config(project_root: Path, config_path: Path | None = None) -> DashboardConfig:
    """Load explicit config, else project ralph-dashboard.yaml, else defaults."""
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        return load_config(config_path)

    candidate = project_root / CONFIG_FILENAME
    if candidate.exists():
        return load_config(candidate)
    logger.debug("No %s in %s, using defaults", CONFIG_FILENAME, project_root)
    return load_config(None)


def get_config() -> DashboardConfig:
    """Return the active configuration, loading defaults on first use."""
    if _config is None:
        return load_config(None)
    return _config


def _reset_config() -> None:
    """Clear the singleton (tests only)."""
    global _config
    _config = None


__all__ = [
    "CONFIG_FILENAME",
    "DashboardConfig",
    "get_config",
    "load_config",
    "load_project_config",
]
