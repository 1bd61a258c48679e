"""Shared types for build tasks.

BuildContext is built once per CLI invocation and handed to every task
action; StepReport is what each asset step returns and logs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from static_boiler.core.config import Config, load_project_config, resolve_cache_id
from static_boiler.core.io import format_size, write_if_changed
from static_boiler.core.paths import ProjectPaths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildContext:
    """Everything a task needs to locate inputs and outputs.

    Attributes:
        project_root: Project directory.
        config: Validated configuration.
        paths: Resolved tree locations.
        cache_id: Offline-cache identifier.

    """

    project_root: Path
    config: Config
    paths: ProjectPaths
    cache_id: str

    @classmethod
    def from_project(cls, project_root: Path, config: Config | None = None) -> BuildContext:
        """Create a context, loading static-boiler.yaml when no config is given.

        Raises:
            ConfigError: If the project config file is invalid.

        """
        root = project_root.resolve()
        if config is None:
            config = load_project_config(root)
        return cls(
            project_root=root,
            config=config,
            paths=ProjectPaths(root, config.paths),
            cache_id=resolve_cache_id(config, root),
        )

    def relative(self, path: Path) -> str:
        """Path relative to the project root, for log messages."""
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return str(path)


@dataclass
class StepReport:
    """Aggregate result of one asset transform step.

    Attributes:
        title: Step name used in the size report.
        written: Files written (changed content).
        unchanged: Outputs that already held identical bytes.
        skipped: Inputs skipped by the newer-than check.
        total_bytes: Size of every output the step produced this run.

    """

    title: str
    written: list[Path] = field(default_factory=list)
    unchanged: int = 0
    skipped: int = 0
    total_bytes: int = 0

    def emit(self, path: Path, data: bytes | str) -> bool:
        """Write an output if it changed and account for it.

        Returns:
            True if the file was written.

        """
        payload = data.encode("utf-8") if isinstance(data, str) else data
        self.total_bytes += len(payload)
        if write_if_changed(path, payload):
            self.written.append(path)
            return True
        self.unchanged += 1
        return False

    def log(self) -> None:
        """Log the aggregate output size ("styles all files 1.2 kB")."""
        logger.info("%s all files %s", self.title, format_size(self.total_bytes))
        if self.skipped:
            logger.debug("%s skipped %d up-to-date input(s)", self.title, self.skipped)
