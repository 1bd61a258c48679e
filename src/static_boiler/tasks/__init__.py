"""Asset transform steps, cleaner and offline-cache generator.

Each step module exposes a coroutine task action that takes the shared
BuildContext and does its blocking file work in a worker thread; the
orchestrator pipeline wires them into the task graph.

Public API:
    BuildContext: Shared inputs for every task action
    StepReport: Aggregate result of one asset step
"""

from static_boiler.tasks.base import BuildContext, StepReport

__all__ = [
    "BuildContext",
    "StepReport",
]
