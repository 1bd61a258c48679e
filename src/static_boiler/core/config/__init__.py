"""Pydantic configuration models and loaders for static-boiler.

Usage:
    from static_boiler.core.config import load_project_config

    config = load_project_config(project_root)
    print(config.server.port)  # 3000
"""

from static_boiler.core.config.constants import (
    DEFAULT_CACHE_ID,
    MAX_CONFIG_SIZE,
    PROJECT_CONFIG_NAME,
    PROJECT_METADATA_NAME,
)
from static_boiler.core.config.loaders import (
    load_config,
    load_project_config,
    read_project_name,
    resolve_cache_id,
)
from static_boiler.core.config.models import (
    Config,
    CopyConfig,
    ImagesConfig,
    PathsConfig,
    ScriptsConfig,
    ServerConfig,
    ServiceWorkerConfig,
    StylesConfig,
    WatchConfig,
)

__all__ = [
    "DEFAULT_CACHE_ID",
    "MAX_CONFIG_SIZE",
    "PROJECT_CONFIG_NAME",
    "PROJECT_METADATA_NAME",
    "Config",
    "CopyConfig",
    "ImagesConfig",
    "PathsConfig",
    "ScriptsConfig",
    "ServerConfig",
    "ServiceWorkerConfig",
    "StylesConfig",
    "WatchConfig",
    "load_config",
    "load_project_config",
    "read_project_name",
    "resolve_cache_id",
]
