"""Shared CLI helpers: console output, logging setup, exit codes.

Kept separate from cli.py so command modules and tests can import the
helpers without pulling in the Typer app.
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_SIGINT = 130

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """Configure root logging with a Rich handler.

    Args:
        verbose: DEBUG level (wins over quiet).
        quiet: WARNING level.

    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_path=verbose,
                rich_tracebacks=verbose,
                markup=False,
            )
        ],
        force=True,
    )
    # Keep third-party chatter out of normal runs
    for name in ("watchdog", "PIL"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def _uvicorn_log_level(verbose: bool, quiet: bool) -> str:
    """Map CLI verbosity to a uvicorn log level."""
    if verbose:
        return "debug"
    if quiet:
        return "error"
    return "warning"


def _error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def _success(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")


def _warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def _info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {escape(message)}")


def _validate_project_path(project: str) -> Path:
    """Resolve and validate the --project option.

    Args:
        project: Path given on the command line.

    Returns:
        Absolute project directory.

    Raises:
        typer.Exit: With EXIT_ERROR if the path is missing or not a directory.

    """
    project_path = Path(project).expanduser().resolve()
    if not project_path.exists():
        _error(f"Project directory not found: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)
    if not project_path.is_dir():
        _error(f"Project path must be a directory: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)
    return project_path
