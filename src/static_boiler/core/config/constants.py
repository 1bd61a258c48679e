"""Shared constants for configuration modules."""

PROJECT_CONFIG_NAME: str = "static-boiler.yaml"
PROJECT_METADATA_NAME: str = "package.json"
DEFAULT_CACHE_ID: str = "static-boiler"
MAX_CONFIG_SIZE: int = 1_048_576  # 1MB - protection against YAML bombs

# sw-precache default: files above this are left to runtime caching
DEFAULT_MAXIMUM_FILE_SIZE: int = 2 * 1024 * 1024
