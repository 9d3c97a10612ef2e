"""In-memory task store and computed task metrics.

The store keeps tasks in insertion order (ready-task ties and plan output
rely on it) and owns the derived ``depth`` and ``criticality_score`` fields.
"""

from __future__ import annotations

import math
from collections import deque
from typing import Iterator, Optional

from ..constants import (
    CRITICALITY_DEPENDENT_WEIGHT,
    CRITICALITY_DEPTH_BASELINE,
    CRITICALITY_DEPTH_WEIGHT,
    CRITICALITY_DURATION_WEIGHT,
    CRITICALITY_RESOURCE_WEIGHT,
)
from ..errors import TaskNotFoundError
from .dependencies import DependencyGraph
from .model import Task, TaskStatus


class TaskStore:
    """Insertion-ordered collection of :class:`Task` records."""

    def __init__(self, graph: DependencyGraph) -> None:
        self._graph = graph
        self._tasks: dict[str, Task] = {}

    # -- lookups ------------------------------------------------------------

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks.values()))

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def ids(self) -> list[str]:
        return list(self._tasks)

    def by_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self._tasks.values() if t.status == status]

    def count(self, status: TaskStatus) -> int:
        return sum(1 for t in self._tasks.values() if t.status == status)

    # -- mutations ----------------------------------------------------------

    def add(self, task: Task) -> Task:
        if task.id in self._tasks:
            raise ValueError(f"Task {task.id} already exists")
        self._tasks[task.id] = task
        return task

    # -- metrics ------------------------------------------------------------

    def compute_depth(self, task_id: str) -> int:
        """``1 + max(depth of HARD dependencies)``, or 0 without any.

        Dependencies that are not in the store yet count as depth 0.
        """
        depths = []
        for dep_id in self._graph.hard_dependencies_of(task_id):
            dep = self._tasks.get(dep_id)
            depths.append(dep.depth if dep is not None else 0)
        return 1 + max(depths) if depths else 0

    def compute_criticality(self, task_id: str) -> float:
        task = self.require(task_id)
        score = float(len(self._graph.dependents_of(task_id)) * CRITICALITY_DEPENDENT_WEIGHT)
        score += task.priority
        if task.estimated_duration:
            score += math.log(task.estimated_duration + 1) * CRITICALITY_DURATION_WEIGHT
        score += (CRITICALITY_DEPTH_BASELINE - task.depth) * CRITICALITY_DEPTH_WEIGHT
        score += len(task.resource_requirements) * CRITICALITY_RESOURCE_WEIGHT
        return score

    def refresh_metrics(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        task.depth = self.compute_depth(task_id)
        task.criticality_score = self.compute_criticality(task_id)

    def refresh_criticality(self, task_id: str) -> None:
        if task_id in self._tasks:
            self._tasks[task_id].criticality_score = self.compute_criticality(task_id)

    def propagate_depth(self, task_id: str) -> list[str]:
        """Re-derive depth for every transitive HARD dependent of ``task_id``.

        Needed when a task is added after tasks that already referenced it, or
        when an existing task gains a dependency. Returns the ids whose depth
        changed.
        """
        changed: list[str] = []
        queue: deque[str] = deque(self._graph.hard_dependents_of(task_id))
        while queue:
            current = queue.popleft()
            task = self._tasks.get(current)
            if task is None:
                continue
            depth = self.compute_depth(current)
            if depth == task.depth:
                continue
            task.depth = depth
            task.criticality_score = self.compute_criticality(current)
            changed.append(current)
            queue.extend(self._graph.hard_dependents_of(current))
        return changed
