"""Source Tree watcher: maps file changes to task reruns and reload signals.

watchdog's observer thread hands changed paths to the event loop through an
asyncio.Queue. A single dispatcher coroutine consumes them in batches: it
takes one path, waits out the debounce window, drains whatever else arrived,
then runs each matching binding's tasks once and emits one signal for the
whole batch. Changes that land while a batch is rebuilding wait in the queue
and fold into the next batch.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from static_boiler.core.exceptions import StaticBoilerError, TaskFailedError
from static_boiler.core.globs import match_path
from static_boiler.devserver.sse import ReloadBroadcaster
from static_boiler.orchestrator.runner import TaskRunner
from static_boiler.tasks.base import BuildContext

logger = logging.getLogger(__name__)

__all__ = [
    "ChangeDispatcher",
    "WatchBinding",
    "default_bindings",
]

Signal = Literal["reload", "inject"]

# watchdog event types that change file content
CONTENT_EVENTS = {"created", "modified", "deleted", "moved"}


@dataclass(frozen=True)
class WatchBinding:
    """Globs (relative to the Source Tree) -> tasks to rerun -> browser signal.

    Attributes:
        name: Label for logs.
        patterns: Globs matched against Source Tree relative paths.
        tasks: Tasks run in order when a matching file changes.
        signal: What the browser does after the tasks succeed.

    """

    name: str
    patterns: tuple[str, ...]
    tasks: tuple[str, ...] = ()
    signal: Signal = "reload"

    def matches(self, rel_path: str) -> bool:
        return match_path(self.patterns, rel_path)


def default_bindings() -> list[WatchBinding]:
    """Watch bindings for the fixed project layout."""
    return [
        WatchBinding("html", ("**/*.html",)),
        WatchBinding("styles", ("styles/**/*.css",), ("styles",), "inject"),
        WatchBinding("scripts", ("scripts/**/*.js",), ("scripts",)),
        WatchBinding("images", ("images/**/*",)),
    ]


class _ChangeHandler(FileSystemEventHandler):
    """Forwards file events from the observer thread to the dispatcher."""

    def __init__(self, dispatcher: ChangeDispatcher) -> None:
        super().__init__()
        self._dispatcher = dispatcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CONTENT_EVENTS:
            return
        for raw in (event.src_path, getattr(event, "dest_path", "")):
            if raw:
                path = raw.decode() if isinstance(raw, bytes) else raw
                self._dispatcher.notify_threadsafe(Path(path))


class ChangeDispatcher:
    """Debounced, coalescing rebuild loop for the dev server.

    Args:
        runner: Runner the rebuild tasks go through.
        broadcaster: Where reload/inject/build-error signals are sent.
        bindings: Watch bindings, in priority order.
        source_root: Watched directory; binding globs are relative to it.
        debounce: Seconds to wait after the first change of a batch.

    """

    def __init__(
        self,
        runner: TaskRunner,
        broadcaster: ReloadBroadcaster,
        bindings: Sequence[WatchBinding],
        source_root: Path,
        debounce: float = 0.1,
    ) -> None:
        self.runner = runner
        self.broadcaster = broadcaster
        self.bindings = list(bindings)
        self.source_root = source_root
        self.debounce = debounce
        self._queue: asyncio.Queue[Path] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._observer: Observer | None = None

    @classmethod
    def for_context(
        cls, runner: TaskRunner, broadcaster: ReloadBroadcaster, ctx: BuildContext
    ) -> ChangeDispatcher:
        """Dispatcher with the default bindings and configured debounce."""
        return cls(
            runner,
            broadcaster,
            default_bindings(),
            ctx.paths.source,
            debounce=ctx.config.watch.debounce_ms / 1000,
        )

    # =========================================================================
    # Event intake
    # =========================================================================

    def notify(self, path: Path) -> None:
        """Queue a changed path. Call from the event loop thread."""
        self._queue.put_nowait(path)

    def notify_threadsafe(self, path: Path) -> None:
        """Queue a changed path from a watchdog observer thread."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, path)

    async def next_batch(self) -> set[Path]:
        """Wait for a change, debounce, and drain everything queued since."""
        batch = {await self._queue.get()}
        await asyncio.sleep(self.debounce)
        while True:
            try:
                batch.add(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return batch

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _relative(self, path: Path) -> str | None:
        try:
            return path.relative_to(self.source_root).as_posix()
        except ValueError:
            return None

    def match(self, changed: Iterable[Path]) -> tuple[list[WatchBinding], list[str]]:
        """Find the bindings a batch triggers.

        Returns:
            (bindings in declaration order without duplicates, matched
            Source Tree relative paths sorted).

        """
        hit: list[WatchBinding] = []
        matched: set[str] = set()
        for path in changed:
            rel = self._relative(path)
            if rel is None:
                continue
            for binding in self.bindings:
                if binding.matches(rel):
                    matched.add(rel)
                    if binding not in hit:
                        hit.append(binding)
        hit.sort(key=self.bindings.index)
        return hit, sorted(matched)

    async def dispatch(self, changed: Iterable[Path]) -> str | None:
        """Rerun the tasks a batch triggers and signal the browsers once.

        Returns:
            The event type sent ("reload", "inject" or "build-error"), or
            None when no binding matched.

        """
        bindings, matched = self.match(changed)
        if not bindings:
            return None
        logger.info("Changed: %s", ", ".join(matched))

        for binding in bindings:
            for name in binding.tasks:
                try:
                    await self.runner.run(name)
                except StaticBoilerError as e:
                    task_name = e.task_name if isinstance(e, TaskFailedError) else name
                    logger.error("%s", e)
                    await self.broadcaster.broadcast_event(
                        "build-error", {"task": task_name, "message": str(e)}
                    )
                    return "build-error"

        if all(binding.signal == "inject" for binding in bindings):
            urls = [f"/{rel}" for rel in matched]
            await self.broadcaster.broadcast_event("inject", urls)
            return "inject"
        await self.broadcaster.broadcast_event("reload")
        return "reload"

    async def run(self) -> None:
        """Consume batches forever."""
        while True:
            batch = await self.next_batch()
            try:
                await self.dispatch(batch)
            except Exception:
                logger.exception("Watch dispatch failed")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the dispatcher task and the filesystem observer."""
        self._loop = asyncio.get_running_loop()
        self._task = asyncio.create_task(self.run(), name="watch-dispatcher")
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.source_root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.debug("Watching %s", self.source_root)

    async def stop(self) -> None:
        """Stop the observer and the dispatcher task."""
        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join, 2.0)
            self._observer = None
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._loop = None
