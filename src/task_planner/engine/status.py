"""Per-task status evaluation.

A task is READY exactly when every HARD dependency is COMPLETED and every
resource it requires is either unheld or held by the task itself; otherwise
it is BLOCKED. RUNNING and terminal tasks are never re-evaluated.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from loguru import logger

from ..events import EventBus, TaskReady
from .dependencies import DependencyGraph
from .model import TaskStatus
from .resources import ResourceLedger
from .store import TaskStore


@dataclass
class BlockingReason:
    """Why a task is not READY."""

    dependencies: list[str] = field(default_factory=list)  # known, not completed
    missing_dependencies: list[str] = field(default_factory=list)  # never added
    resources: list[str] = field(default_factory=list)  # held by another task

    @property
    def is_blocked(self) -> bool:
        return bool(self.dependencies or self.missing_dependencies or self.resources)


class StatusEngine:
    def __init__(
        self,
        store: TaskStore,
        graph: DependencyGraph,
        ledger: ResourceLedger,
        bus: EventBus,
    ) -> None:
        self._store = store
        self._graph = graph
        self._ledger = ledger
        self._bus = bus
        self._blocked: set[str] = set()

    @property
    def blocked_ids(self) -> list[str]:
        """Blocked task ids in insertion order."""
        return [tid for tid in self._store.ids() if tid in self._blocked]

    def explain(self, task_id: str) -> BlockingReason:
        task = self._store.require(task_id)
        reason = BlockingReason()
        for dep_id in self._graph.hard_dependencies_of(task_id):
            dep = self._store.get(dep_id)
            if dep is None:
                reason.missing_dependencies.append(dep_id)
            elif dep.status != TaskStatus.COMPLETED:
                reason.dependencies.append(dep_id)
        reason.resources = [
            res for res in task.resource_requirements if not self._ledger.is_free_for(res, task_id)
        ]
        return reason

    def evaluate(self, task_id: str) -> TaskStatus:
        """Re-derive the status of one task. Safe to call any number of times."""
        task = self._store.require(task_id)
        if task.status == TaskStatus.RUNNING or task.is_terminal:
            self._blocked.discard(task_id)
            return task.status

        previous = task.status
        if self.explain(task_id).is_blocked:
            task.status = TaskStatus.BLOCKED
            self._blocked.add(task_id)
        else:
            task.status = TaskStatus.READY
            self._blocked.discard(task_id)

        if task.status != previous:
            logger.debug("Task {} status {} -> {}", task_id, previous.value, task.status.value)
            if task.status == TaskStatus.READY:
                self._bus.emit(TaskReady(task_id=task_id, task=task))
        return task.status

    def evaluate_many(self, task_ids: list[str]) -> list[str]:
        """Evaluate each known id; returns those that are READY afterwards."""
        ready: list[str] = []
        for task_id in task_ids:
            if task_id not in self._store:
                continue
            if self.evaluate(task_id) == TaskStatus.READY:
                ready.append(task_id)
        return ready

    def waiting_on_resource(self, resource: str) -> list[str]:
        """Non-terminal, non-running tasks that require ``resource``."""
        return [
            t.id
            for t in self._store
            if resource in t.resource_requirements
            and not t.is_terminal
            and t.status != TaskStatus.RUNNING
        ]

    def cascade_targets(self, task_id: str) -> list[str]:
        """Transitive HARD dependents that a failure policy would terminate, breadth first."""
        targets: list[str] = []
        seen: set[str] = {task_id}
        queue: deque[str] = deque(self._graph.hard_dependents_of(task_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            task = self._store.get(current)
            if task is None or task.is_terminal or task.status == TaskStatus.RUNNING:
                continue
            targets.append(current)
            queue.extend(self._graph.hard_dependents_of(current))
        return targets

    def forget(self, task_id: str) -> None:
        self._blocked.discard(task_id)
