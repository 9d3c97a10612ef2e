"""Exception types raised by the planning engine.

Only structural problems are raised: a dependency cycle, an unknown task id,
an illegal explicit status change, or bad configuration. Diagnostic
conditions (contention, bottlenecks, size bounds) are reported through
``get_status_report()`` instead.
"""

from __future__ import annotations

from typing import Optional


class PlannerError(Exception):
    """Base class for engine errors."""


class CircularDependencyError(PlannerError, ValueError):
    """Adding a HARD dependency would close a cycle (self-dependency included)."""

    def __init__(self, task_id: str, dependency_id: str, cycle: Optional[list[str]] = None) -> None:
        self.task_id = task_id
        self.dependency_id = dependency_id
        self.cycle = list(cycle or [task_id, dependency_id, task_id])
        super().__init__(f"Circular dependency: {task_id} -> {dependency_id} ({' -> '.join(self.cycle)})")


class TaskNotFoundError(PlannerError, KeyError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidTransitionError(PlannerError, ValueError):
    def __init__(self, task_id: str, current: str, target: str) -> None:
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition {task_id} from {current} to {target}")


class ConfigError(PlannerError, ValueError):
    """Planner configuration could not be validated."""
