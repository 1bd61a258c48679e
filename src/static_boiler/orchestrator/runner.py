"""Task runner: executes a validated TaskGraph.

Each call to TaskRunner.run() is one session. Within a session every task
runs at most once: the first request starts it and later requests await the
same asyncio task. Concurrent groups (a task's deps, a parallel sequence
step, the names passed to run()) always wait for every member they started,
then surface the first failure in declaration order. Running tasks are
never cancelled; later steps simply never start.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from static_boiler.core.exceptions import TaskFailedError
from static_boiler.orchestrator.graph import TaskGraph
from static_boiler.tasks.base import BuildContext

logger = logging.getLogger(__name__)

__all__ = [
    "TaskRecord",
    "TaskRunner",
    "format_duration",
]


@dataclass(frozen=True)
class TaskRecord:
    """One task execution.

    Attributes:
        name: Task name.
        started: perf_counter() when the task started (after its deps).
        finished: perf_counter() when the task and its sequence finished.
        ok: Whether it succeeded.

    """

    name: str
    started: float
    finished: float
    ok: bool

    @property
    def duration_ms(self) -> int:
        return int((self.finished - self.started) * 1000)


@dataclass
class _Session:
    tasks: dict[str, asyncio.Task[None]] = field(default_factory=dict)
    records: list[TaskRecord] = field(default_factory=list)


def format_duration(seconds: float) -> str:
    """Format elapsed time the way task logs show it ("12 ms", "1.4 s")."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f} s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)} min {rest:.0f} s"


class TaskRunner:
    """Runs tasks of a graph against one BuildContext.

    Args:
        graph: Task graph; validated here so bad graphs fail before any
            task runs.
        ctx: Context handed to every task action.

    Attributes:
        records: Records of the most recent session; earlier sessions are
            dropped.

    Raises:
        TaskGraphError: If the graph is invalid.

    """

    def __init__(self, graph: TaskGraph, ctx: BuildContext) -> None:
        graph.validate()
        self.graph = graph
        self.ctx = ctx
        self.records: list[TaskRecord] = []

    async def run(self, *names: str) -> list[TaskRecord]:
        """Run the named tasks (concurrently) in a new session.

        Returns:
            Records of every task executed in this session, in completion
            order.

        Raises:
            TaskGraphError: If a name is not in the graph.
            TaskFailedError: For the first failing task.

        """
        for name in names:
            self.graph.get(name)
        session = _Session()
        self.records = session.records
        await self._run_group(names, session)
        return list(session.records)

    async def _run_group(self, names: Sequence[str], session: _Session) -> None:
        results = await asyncio.gather(
            *(self._execute(name, session) for name in names),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def _execute(self, name: str, session: _Session) -> asyncio.Task[None]:
        task = session.tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._run_task(name, session))
            session.tasks[name] = task
        return task

    async def _run_task(self, name: str, session: _Session) -> None:
        task = self.graph.get(name)
        if task.deps:
            await self._run_group(task.deps, session)

        logger.info("Starting '%s'...", name)
        started = time.perf_counter()
        try:
            if task.action is not None:
                try:
                    await task.action(self.ctx)
                except TaskFailedError:
                    raise
                except Exception as e:
                    raise TaskFailedError(name, e) from e
            for step in task.steps():
                await self._run_group(step, session)
        except BaseException:
            finished = time.perf_counter()
            session.records.append(TaskRecord(name, started, finished, ok=False))
            logger.error("'%s' errored after %s", name, format_duration(finished - started))
            raise

        finished = time.perf_counter()
        session.records.append(TaskRecord(name, started, finished, ok=True))
        logger.info("Finished '%s' after %s", name, format_duration(finished - started))
