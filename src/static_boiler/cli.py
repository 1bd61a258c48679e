"""Typer CLI entry point for static-boiler.

This module only parses arguments, wires the task graph, runner and dev
server together, and maps failures to exit codes.
"""

import asyncio
import logging

import typer
from rich.markup import escape
from rich.tree import Tree

from static_boiler import __version__
from static_boiler.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SIGINT,
    _error,
    _info,
    _setup_logging,
    _success,
    _uvicorn_log_level,
    _validate_project_path,
    _warning,
    console,
)
from static_boiler.core.exceptions import (
    ConfigError,
    DevServerError,
    TaskFailedError,
    TaskGraphError,
)
from static_boiler.devserver import ChangeDispatcher, DevServer, ReloadBroadcaster
from static_boiler.orchestrator import (
    DEFAULT_TASK,
    DEV_TASKS,
    TaskGraph,
    TaskRunner,
    build_task_graph,
)
from static_boiler.tasks.base import BuildContext

logger = logging.getLogger(__name__)


app = typer.Typer(
    name="static-boiler",
    help="Build, serve and offline-cache a static site",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"static-boiler {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Build, serve and offline-cache a static site."""


# =============================================================================
# Shared option definitions
# =============================================================================

PROJECT_OPTION = typer.Option(".", "--project", "-p", help="Path to project directory")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose (debug) output")
QUIET_OPTION = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors")


def _load_context(project: str) -> BuildContext:
    """Validate --project and load its configuration.

    Raises:
        typer.Exit: EXIT_ERROR for a bad path, EXIT_CONFIG_ERROR for bad config.

    """
    project_path = _validate_project_path(project)
    try:
        return BuildContext.from_project(project_path)
    except ConfigError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None


def _load_graph() -> TaskGraph:
    try:
        return build_task_graph()
    except TaskGraphError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None


def _run_tasks(ctx: BuildContext, graph: TaskGraph, *names: str) -> None:
    """Run tasks to completion, exiting non-zero on the first failure."""
    runner = TaskRunner(graph, ctx)
    try:
        asyncio.run(runner.run(*names))
    except TaskFailedError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except KeyboardInterrupt:
        _warning("Interrupted")
        raise typer.Exit(code=EXIT_SIGINT) from None


def _print_server_banner(server: DevServer, ctx: BuildContext) -> None:
    prefix = escape(f"[{ctx.config.server.log_prefix}]")
    console.print(f"{prefix} Access URLs:")
    console.print(f"    Local: [bold]{server.url}[/bold]")
    roots = ", ".join(ctx.relative(root) for root in server.roots)
    console.print(f"{prefix} Serving files from: {roots}")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def build(
    project: str = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Production build into the Output Tree (the 'default' task)."""
    _setup_logging(verbose, quiet)
    ctx = _load_context(project)
    _run_tasks(ctx, _load_graph(), DEFAULT_TASK)
    _success(f"Build complete: {ctx.relative(ctx.paths.dist)}")


@app.command()
def clean(
    project: str = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Delete the Temporary Tree and the Output Tree contents."""
    _setup_logging(verbose, quiet)
    ctx = _load_context(project)
    _run_tasks(ctx, _load_graph(), "clean")
    _success("Clean complete")


@app.command(name="run")
def run_command(
    task_names: list[str] = typer.Argument(..., metavar="TASK...", help="Tasks to run"),
    project: str = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Run the named tasks (and their dependencies) concurrently."""
    _setup_logging(verbose, quiet)
    ctx = _load_context(project)
    graph = _load_graph()
    unknown = [name for name in task_names if name not in graph]
    if unknown:
        _error(f"Unknown task(s): {', '.join(unknown)}. Run 'static-boiler tasks' to list.")
        raise typer.Exit(code=EXIT_ERROR)
    _run_tasks(ctx, graph, *task_names)


@app.command(name="tasks")
def tasks_command() -> None:
    """Show the task tree."""
    graph = _load_graph()
    tree = Tree("[bold]Tasks[/bold]")
    for task in graph:
        label = f"[cyan]{escape(task.name)}[/cyan]"
        if task.description:
            label += f"  [dim]{escape(task.description)}[/dim]"
        node = tree.add(label)
        if task.deps:
            node.add(f"deps: {', '.join(task.deps)}")
        for i, step in enumerate(task.steps(), start=1):
            joined = " + ".join(step)
            node.add(f"{i}. {joined}" if len(step) == 1 else f"{i}. ({joined})")
    console.print(tree)


async def _serve_dev(
    ctx: BuildContext, graph: TaskGraph, host: str, port: int, log_level: str
) -> None:
    runner = TaskRunner(graph, ctx)
    try:
        await runner.run(*DEV_TASKS)
    except TaskFailedError as e:
        _warning(f"{e}. Serving anyway; saving a fix rebuilds.")

    broadcaster = ReloadBroadcaster()
    server = DevServer(
        [ctx.paths.tmp, ctx.paths.source],
        host,
        port,
        broadcaster=broadcaster,
        dispatcher=ChangeDispatcher.for_context(runner, broadcaster, ctx),
        port_attempts=ctx.config.server.port_attempts,
    )
    server.bind_port()
    _print_server_banner(server, ctx)
    await server.run(log_level)


async def _serve_dist(
    ctx: BuildContext, graph: TaskGraph, host: str, port: int, log_level: str
) -> None:
    await TaskRunner(graph, ctx).run(DEFAULT_TASK)
    server = DevServer(
        [ctx.paths.dist],
        host,
        port,
        live_reload=False,
        port_attempts=ctx.config.server.port_attempts,
    )
    server.bind_port()
    _print_server_banner(server, ctx)
    await server.run(log_level)


def _serve(
    dist: bool,
    project: str,
    host: str | None,
    port: int | None,
    verbose: bool,
    quiet: bool,
) -> None:
    _setup_logging(verbose, quiet)
    ctx = _load_context(project)
    graph = _load_graph()
    settings = ctx.config.server
    host = host or settings.host
    if port is None:
        port = settings.dist_port if dist else settings.port

    serve_fn = _serve_dist if dist else _serve_dev
    try:
        asyncio.run(serve_fn(ctx, graph, host, port, _uvicorn_log_level(verbose, quiet)))
    except TaskFailedError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except DevServerError as e:
        _error(str(e))
        raise typer.Exit(code=EXIT_ERROR) from None
    except KeyboardInterrupt:
        raise typer.Exit(code=EXIT_SIGINT) from None
    _info("Server stopped")


@app.command()
def serve(
    port: int | None = typer.Option(None, "--port", help="Port (default from config: 3000)"),
    host: str | None = typer.Option(None, "--host", help="Bind address (default 127.0.0.1)"),
    project: str = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Compile styles and scripts, then serve .tmp + app with live reload."""
    _serve(False, project, host, port, verbose, quiet)


@app.command(name="serve:dist")
def serve_dist(
    port: int | None = typer.Option(None, "--port", help="Port (default from config: 3001)"),
    host: str | None = typer.Option(None, "--host", help="Bind address (default 127.0.0.1)"),
    project: str = PROJECT_OPTION,
    verbose: bool = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Run the production build, then serve the Output Tree."""
    _serve(True, project, host, port, verbose, quiet)


if __name__ == "__main__":
    app()
