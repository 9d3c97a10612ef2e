"""Execution planning over the HARD dependency graph.

This module turns the current graph into parallel stages using a
topological sort, finds the critical path, clusters structurally
independent tasks and reports resource contention. Every function here is a
read over the current snapshot and has no side effects.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any

from loguru import logger

from ..constants import CONFLICT_TYPE_RESOURCE_CONTENTION
from .dependencies import DependencyGraph
from .model import TaskStatus
from .store import TaskStore


@dataclass
class ResourceConflict:
    """Tasks that could run in parallel but need the same resource."""

    resource: str
    tasks: list[str]
    pairs: list[tuple[str, str]] = field(default_factory=list)
    type: str = CONFLICT_TYPE_RESOURCE_CONTENTION


@dataclass
class ExecutionPlan:
    """Execution plan with stages."""

    stages: list[list[str]]  # Each stage can run in parallel
    topological_order: list[str]
    critical_path: list[str]
    estimated_duration: float  # Sum of durations along the critical path
    parallelization_opportunities: list[list[str]]
    resource_conflicts: list[ResourceConflict]
    total_tasks: int = 0
    max_parallelism: int = 0  # Largest stage

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["resource_conflicts"] = [
            {**asdict(c), "pairs": [list(p) for p in c.pairs]} for c in self.resource_conflicts
        ]
        return data


class ExecutionPlanner:
    """Read-side planning computations over a store and its dependency graph."""

    def __init__(self, store: TaskStore, graph: DependencyGraph) -> None:
        self._store = store
        self._graph = graph

    def _known_hard_deps(self, task_id: str) -> list[str]:
        return [d for d in self._graph.hard_dependencies_of(task_id) if d in self._store]

    # ------------------------------------------------------------------
    # Ready tasks
    # ------------------------------------------------------------------

    def ready_tasks(self) -> list[str]:
        """READY task ids, highest ``priority + criticality_score`` first.

        ``sorted`` is stable, so equal scores keep insertion order.
        """
        ready = self._store.by_status(TaskStatus.READY)
        ready = sorted(ready, key=lambda t: t.priority + t.criticality_score, reverse=True)
        return [t.id for t in ready]

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def topological_sort(self) -> list[str]:
        """Kahn's algorithm restricted to HARD edges between known tasks."""
        in_degree: dict[str, int] = {tid: len(self._known_hard_deps(tid)) for tid in self._store.ids()}
        queue: deque[str] = deque(tid for tid, deg in in_degree.items() if deg == 0)
        order: list[str] = []

        while queue:
            task_id = queue.popleft()
            order.append(task_id)
            for dependent in self._graph.hard_dependents_of(task_id):
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        # Sanity check: the HARD subgraph is kept acyclic on insert
        if len(order) != len(in_degree):
            missing = [tid for tid in in_degree if tid not in set(order)]
            logger.warning("Topological sort left tasks unvisited: {}", missing)
        return order

    def group_into_stages(self, order: list[str]) -> list[list[str]]:
        """Stage = 1 + max(stage of HARD dependencies), or 0 without any."""
        stage_of: dict[str, int] = {}
        stages: list[list[str]] = []
        for task_id in order:
            dep_stages = [stage_of[d] for d in self._known_hard_deps(task_id) if d in stage_of]
            stage = 1 + max(dep_stages) if dep_stages else 0
            stage_of[task_id] = stage
            while len(stages) <= stage:
                stages.append([])
            stages[stage].append(task_id)
        return stages

    # ------------------------------------------------------------------
    # Critical path
    # ------------------------------------------------------------------

    def critical_path(self, order: list[str] | None = None) -> tuple[list[str], float]:
        """Longest duration-weighted HARD chain and its total duration.

        Path lengths are filled in topological order, which makes the search
        iterative while keeping the memoized longest-path recurrence. Ties go
        to the dependency (or task) seen first.
        """
        if order is None:
            order = self.topological_sort()

        best: dict[str, tuple[float, list[str]]] = {}
        for task_id in order:
            task = self._store.require(task_id)
            longest: tuple[float, list[str]] | None = None
            for dep_id in self._known_hard_deps(task_id):
                sub = best.get(dep_id)
                if sub is not None and (longest is None or sub[0] > longest[0]):
                    longest = sub
            prefix_duration, prefix = longest if longest is not None else (0, [])
            best[task_id] = (prefix_duration + task.duration_or_default, prefix + [task_id])

        critical: tuple[float, list[str]] | None = None
        for task_id in self._store.ids():
            candidate = best.get(task_id)
            if candidate is not None and (critical is None or candidate[0] > critical[0]):
                critical = candidate
        if critical is None:
            return [], 0
        return critical[1], critical[0]

    # ------------------------------------------------------------------
    # Parallelism and contention
    # ------------------------------------------------------------------

    def parallelization_opportunities(self) -> list[list[str]]:
        """Groups of two or more tasks that share an identical HARD dependency set."""
        groups: dict[frozenset[str], list[str]] = {}
        for task_id in self._store.ids():
            key = frozenset(self._graph.hard_dependencies_of(task_id))
            groups.setdefault(key, []).append(task_id)
        return [group for group in groups.values() if len(group) > 1]

    def can_run_in_parallel(self, first: str, second: str) -> bool:
        """True when neither task is a transitive HARD ancestor of the other."""
        if first == second:
            return False
        return first not in self._graph.ancestors(second) and second not in self._graph.ancestors(first)

    def resource_conflicts(self) -> list[ResourceConflict]:
        usage: dict[str, list[str]] = {}
        for task in self._store:
            for resource in task.resource_requirements:
                usage.setdefault(resource, []).append(task.id)

        conflicts: list[ResourceConflict] = []
        for resource, task_ids in usage.items():
            if len(task_ids) < 2:
                continue
            involved: list[str] = []
            pairs: list[tuple[str, str]] = []
            for i, first in enumerate(task_ids):
                for second in task_ids[i + 1:]:
                    if not self.can_run_in_parallel(first, second):
                        continue
                    pairs.append((first, second))
                    for tid in (first, second):
                        if tid not in involved:
                            involved.append(tid)
            if pairs:
                conflicts.append(ResourceConflict(resource=resource, tasks=involved, pairs=pairs))
        return conflicts

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def calculate(self) -> ExecutionPlan:
        order = self.topological_sort()
        stages = self.group_into_stages(order)
        path, duration = self.critical_path(order)
        return ExecutionPlan(
            stages=stages,
            topological_order=order,
            critical_path=path,
            estimated_duration=duration,
            parallelization_opportunities=self.parallelization_opportunities(),
            resource_conflicts=self.resource_conflicts(),
            total_tasks=len(self._store),
            max_parallelism=max((len(s) for s in stages), default=0),
        )
