"""Configuration loading functions."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from static_boiler.core.config.constants import (
    DEFAULT_CACHE_ID,
    MAX_CONFIG_SIZE,
    PROJECT_CONFIG_NAME,
    PROJECT_METADATA_NAME,
)
from static_boiler.core.config.models import Config
from static_boiler.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with safety checks.

    An empty file is treated as an empty mapping: every config section has
    defaults.

    Args:
        path: Path to YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigError: If file cannot be read, is too large, is a directory,
            or YAML is invalid.

    """
    try:
        # Read with size limit to avoid TOCTOU vulnerability
        with path.open("r", encoding="utf-8") as f:
            content = f.read(MAX_CONFIG_SIZE + 1)

        if len(content) > MAX_CONFIG_SIZE:
            raise ConfigError(
                f"Config file {path} exceeds 1MB limit "
                f"(read {len(content):,} bytes before stopping)."
            )

        parsed = yaml.safe_load(content)
        if parsed is None:
            return {}

        if not isinstance(parsed, dict):
            raise ConfigError(
                f"Config file {path} must contain a YAML mapping, got {type(parsed).__name__}."
            )

        return parsed
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except IsADirectoryError as e:
        raise ConfigError(f"{path} is a directory, not a config file.") from e
    except PermissionError as e:
        raise ConfigError(f"Permission denied reading {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e


def load_config(data: dict[str, Any] | None = None) -> Config:
    """Validate a configuration dictionary.

    Args:
        data: Raw configuration mapping. None yields all defaults.

    Returns:
        Validated, frozen Config.

    Raises:
        ConfigError: If validation fails.

    """
    try:
        return Config.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e


def load_project_config(project_root: Path) -> Config:
    """Load static-boiler.yaml from the project root, if present.

    Args:
        project_root: Project directory.

    Returns:
        Validated Config (defaults when the file does not exist).

    Raises:
        ConfigError: If the file exists but is unreadable or invalid.

    """
    config_path = project_root / PROJECT_CONFIG_NAME
    if not config_path.exists():
        logger.debug("No %s in %s, using defaults", PROJECT_CONFIG_NAME, project_root)
        return load_config()

    logger.debug("Loading config from %s", config_path)
    data = _load_yaml_file(config_path)
    try:
        return load_config(data)
    except ConfigError as e:
        raise ConfigError(f"{config_path}: {e}") from e


def read_project_name(project_root: Path) -> str | None:
    """Read the project name from package.json.

    Returns:
        The "name" field, or None when the file is absent, unreadable or
        has no usable name.

    """
    metadata_path = project_root / PROJECT_METADATA_NAME
    try:
        metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable %s: %s", metadata_path, e)
        return None

    name = metadata.get("name") if isinstance(metadata, dict) else None
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def resolve_cache_id(config: Config, project_root: Path) -> str:
    """Pick the offline-cache identifier.

    Order: explicit service_worker.cache_id, package.json name, default.
    """
    if config.service_worker.cache_id:
        return config.service_worker.cache_id
    return read_project_name(project_root) or DEFAULT_CACHE_ID
