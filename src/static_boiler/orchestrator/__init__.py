"""Task orchestration: dependency graph, runner and the build pipeline.

Public API:
    build_task_graph: Declare the project's tasks
    TaskGraph, Task: Graph types
    TaskRunner, TaskRecord: Session-based executor and its execution log
"""

from static_boiler.orchestrator.graph import Task, TaskGraph
from static_boiler.orchestrator.pipeline import DEFAULT_TASK, DEV_TASKS, build_task_graph
from static_boiler.orchestrator.runner import TaskRecord, TaskRunner, format_duration

__all__ = [
    "DEFAULT_TASK",
    "DEV_TASKS",
    "Task",
    "TaskGraph",
    "TaskRecord",
    "TaskRunner",
    "build_task_graph",
    "format_duration",
]
