"""Centralized path resolution for the Source, Temporary and Output trees.

Single source of truth for all build paths. Tasks receive a ProjectPaths
instance through their BuildContext and never construct tree paths locally.

Usage:
    from static_boiler.core.paths import ProjectPaths

    paths = ProjectPaths(project_root, config.paths)
    paths.dist_styles  # <root>/dist/styles
"""

import logging
from functools import cached_property
from pathlib import Path

from static_boiler.core.config.models import PathsConfig

logger = logging.getLogger(__name__)


class ProjectPaths:
    """Resolves all project paths from configuration.

    Relative locations are resolved against the project root; absolute
    locations are used as-is.

    Attributes:
        project_root: The root directory of the project.

    """

    def __init__(self, project_root: Path, config: PathsConfig | None = None) -> None:
        """Initialize ProjectPaths.

        Args:
            project_root: The root directory of the project.
            config: Optional tree location overrides.

        """
        self.project_root = project_root.resolve()
        self._config = config or PathsConfig()

    def resolve(self, location: str) -> Path:
        """Resolve a configured location to an absolute Path.

        Args:
            location: Absolute path, or path relative to project_root.

        Returns:
            Resolved absolute Path. Empty input falls back to project_root.

        """
        if not location or not location.strip():
            logger.warning("Empty path, falling back to project_root")
            return self.project_root

        path = Path(location).expanduser()
        if path.is_absolute():
            return path.resolve()
        return (self.project_root / path).resolve()

    # =========================================================================
    # Tree roots
    # =========================================================================

    @cached_property
    def source(self) -> Path:
        """Source Tree root (app/)."""
        return self.resolve(self._config.source)

    @cached_property
    def tmp(self) -> Path:
        """Temporary Tree root (.tmp/)."""
        return self.resolve(self._config.tmp)

    @cached_property
    def dist(self) -> Path:
        """Output Tree root (dist/)."""
        return self.resolve(self._config.dist)

    @cached_property
    def cache(self) -> Path:
        """Persistent cache root, survives clean."""
        return self.resolve(self._config.cache)

    @cached_property
    def keep(self) -> list[Path]:
        """Paths the cleaner must preserve, inside the Output Tree."""
        return [self.dist / entry for entry in self._config.keep]

    # =========================================================================
    # Per-category directories
    # =========================================================================

    @property
    def source_images(self) -> Path:
        return self.source / "images"

    @property
    def source_styles(self) -> Path:
        return self.source / "styles"

    @property
    def source_scripts(self) -> Path:
        return self.source / "scripts"

    @property
    def tmp_styles(self) -> Path:
        return self.tmp / "styles"

    @property
    def tmp_scripts(self) -> Path:
        return self.tmp / "scripts"

    @property
    def dist_images(self) -> Path:
        return self.dist / "images"

    @property
    def dist_styles(self) -> Path:
        return self.dist / "styles"

    @property
    def dist_scripts(self) -> Path:
        return self.dist / "scripts"

    @property
    def dist_sw_scripts(self) -> Path:
        """Staging directory for the service worker's imported scripts."""
        return self.dist / "scripts" / "sw"

    @property
    def image_cache(self) -> Path:
        return self.cache / "images"
