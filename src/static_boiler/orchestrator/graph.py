"""Task dependency graph.

A TaskGraph is an explicit object: it is built once, validated, and handed
by reference to the runner. Nothing registers tasks globally.

Two kinds of edges exist:
    deps: tasks that must finish (concurrently with each other) before the
        task's own action starts.
    sequence: steps run after the action, one after another; each step is
        a task name or a tuple of names run concurrently.

"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from static_boiler.core.exceptions import TaskGraphError

if TYPE_CHECKING:
    from static_boiler.tasks.base import BuildContext

logger = logging.getLogger(__name__)

__all__ = [
    "SequenceStep",
    "Task",
    "TaskAction",
    "TaskGraph",
]

TaskAction = Callable[["BuildContext"], Awaitable[Any]]
SequenceStep = str | tuple[str, ...]


@dataclass(frozen=True)
class Task:
    """A named unit of work.

    Attributes:
        name: Unique task name.
        action: Coroutine function run with the BuildContext; None for
            purely composite tasks.
        deps: Tasks completed before the action starts.
        sequence: Steps run after the action, in order.
        description: One line shown by the task listing.

    """

    name: str
    action: TaskAction | None = None
    deps: tuple[str, ...] = ()
    sequence: tuple[SequenceStep, ...] = ()
    description: str = ""

    def steps(self) -> list[tuple[str, ...]]:
        """Sequence steps normalized to tuples."""
        return [(step,) if isinstance(step, str) else tuple(step) for step in self.sequence]

    def references(self) -> list[str]:
        """Every task name this task waits on, deps first."""
        return [*self.deps, *(name for step in self.steps() for name in step)]


class TaskGraph:
    """Directed acyclic graph of named tasks."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            self.add(task)

    def add(self, task: Task) -> Task:
        """Add a task.

        Raises:
            TaskGraphError: If a task with the same name exists.

        """
        if task.name in self._tasks:
            raise TaskGraphError(f"Duplicate task name: {task.name!r}")
        self._tasks[task.name] = task
        return task

    def get(self, name: str) -> Task:
        """Look up a task by name.

        Raises:
            TaskGraphError: If no such task exists.

        """
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskGraphError(f"Task {name!r} is not in the task graph") from None

    def names(self) -> list[str]:
        """Task names in declaration order."""
        return list(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def validate(self) -> None:
        """Check every reference resolves and no task waits on itself.

        Raises:
            TaskGraphError: On a reference to an undeclared task or on a
                cycle (the message spells out the cycle path).

        """
        for task in self._tasks.values():
            for ref in task.references():
                if ref not in self._tasks:
                    raise TaskGraphError(f"Task {task.name!r} references unknown task {ref!r}")

        # Iterative DFS with three colours; grey nodes are on the current path
        white, grey, black = 0, 1, 2
        colour = dict.fromkeys(self._tasks, white)
        for root in self._tasks:
            if colour[root] != white:
                continue
            path: list[str] = [root]
            stack: list[Iterator[str]] = [iter(self._tasks[root].references())]
            colour[root] = grey
            while stack:
                ref = next(stack[-1], None)
                if ref is None:
                    colour[path.pop()] = black
                    stack.pop()
                    continue
                if colour[ref] == grey:
                    cycle = [*path[path.index(ref) :], ref]
                    raise TaskGraphError(f"Task dependency cycle: {' -> '.join(cycle)}")
                if colour[ref] == white:
                    colour[ref] = grey
                    path.append(ref)
                    stack.append(iter(self._tasks[ref].references()))
        logger.debug("Task graph valid: %d tasks", len(self._tasks))
