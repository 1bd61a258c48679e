"""Exception hierarchy for static-boiler.

All errors raised by the build pipeline derive from StaticBoilerError so the
CLI can map them to exit codes in one place.
"""

from pathlib import Path


class StaticBoilerError(Exception):
    """Base exception for all static-boiler errors."""


class ConfigError(StaticBoilerError):
    """Configuration file is missing required data, unreadable or invalid."""


class TaskGraphError(StaticBoilerError):
    """Task graph is malformed.

    Raised at startup for duplicate task names, dependencies on tasks that
    were never declared, and dependency cycles.
    """


class BuildStepError(StaticBoilerError):
    """Base class for failures inside a single asset transform step."""


class AssetInputError(BuildStepError):
    """A source asset could not be parsed or transformed.

    Attributes:
        path: Offending source file.
        reason: Human-readable cause.

    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class AssetFileError(BuildStepError):
    """A required file is missing or a filesystem operation failed."""


class TranspilerError(BuildStepError):
    """The configured script transpiler is missing, could not start or timed out."""


class TaskFailedError(StaticBoilerError):
    """A task in the graph failed.

    Attributes:
        task_name: Name of the task whose action raised.
        cause: Original exception.

    """

    def __init__(self, task_name: str, cause: BaseException) -> None:
        self.task_name = task_name
        self.cause = cause
        super().__init__(f"'{task_name}' errored: {cause}")


class DevServerError(StaticBoilerError):
    """Development server could not be started."""
