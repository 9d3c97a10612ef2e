"""Dependency graph with cycle detection.

Edges are stored twice: forward (``dependent -> [Dependency]``) and reverse
(``dependency -> [dependent ids]``) so completion can reach every dependent
without scanning the whole graph. Only HARD edges take part in cycle
detection, depth, ordering and blocking.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Iterator, Optional

from loguru import logger

from ..errors import CircularDependencyError
from .model import Dependency, DependencyType


class DependencyGraph:
    """Forward and reverse adjacency for every task the engine knows about."""

    def __init__(self) -> None:
        self._forward: dict[str, list[Dependency]] = {}
        self._reverse: dict[str, list[str]] = {}
        self.cycles_detected = 0

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def normalize(self, task_id: str, entries: Optional[Iterable[Any]]) -> list[Dependency]:
        """Normalize and validate dependency declarations for a new task.

        Nothing is committed here: the caller commits only when every entry
        passed validation.

        Raises:
            CircularDependencyError: On self-dependency, or when a HARD
                dependency's target already reaches ``task_id``.
            ValueError: On a malformed declaration.
        """
        processed: list[Dependency] = []
        seen: set[tuple[str, DependencyType]] = set()
        for entry in entries or []:
            dep = Dependency.normalize(entry)
            if dep.task_id == task_id:
                self._reject(task_id, dep.task_id, [task_id, task_id])
            if dep.is_hard:
                cycle = self.find_cycle(task_id, dep.task_id)
                if cycle:
                    self._reject(task_id, dep.task_id, cycle)
            key = (dep.task_id, dep.type)
            if key in seen:
                continue
            seen.add(key)
            processed.append(dep)
        return processed

    def _reject(self, task_id: str, dependency_id: str, cycle: list[str]) -> None:
        self.cycles_detected += 1
        logger.error("Circular dependency detected: {}", " -> ".join(cycle))
        raise CircularDependencyError(task_id, dependency_id, cycle)

    def find_cycle(self, task_id: str, target: str) -> Optional[list[str]]:
        """Return the cycle closed by a HARD edge ``task_id -> target``, if any.

        Walks HARD dependencies from ``target`` with an explicit stack. A cycle
        exists when the walk reaches ``task_id`` or re-enters a node that is
        still on the current path.
        """
        if task_id == target:
            return [task_id, task_id]

        path: list[str] = [task_id]
        on_path: set[str] = {task_id}
        visited: set[str] = set()
        # Each frame: (node, iterator over its HARD dependency ids)
        stack: list[tuple[str, Iterator[str]]] = []

        def push(node: str) -> None:
            visited.add(node)
            on_path.add(node)
            path.append(node)
            stack.append((node, iter(self.hard_dependencies_of(node))))

        push(target)
        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if child in on_path:
                    start = path.index(child)
                    return path[start:] + [child]
                if child not in visited:
                    push(child)
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_path.discard(node)
                path.pop()
        return None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def commit(self, task_id: str, deps: list[Dependency]) -> None:
        """Record validated dependencies for a newly added task."""
        self._forward[task_id] = list(deps)
        self._reverse.setdefault(task_id, [])
        for dep in deps:
            self._add_reverse(dep.task_id, task_id)

    def add_edge(self, task_id: str, dep: Dependency) -> bool:
        """Append one edge to an existing task; returns False if it already exists."""
        deps = self._forward.setdefault(task_id, [])
        if any(d.task_id == dep.task_id and d.type == dep.type for d in deps):
            return False
        deps.append(dep)
        self._add_reverse(dep.task_id, task_id)
        return True

    def _add_reverse(self, dependency_id: str, dependent_id: str) -> None:
        dependents = self._reverse.setdefault(dependency_id, [])
        if dependent_id not in dependents:
            dependents.append(dependent_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def dependencies_of(self, task_id: str) -> list[Dependency]:
        return list(self._forward.get(task_id, []))

    def hard_dependencies_of(self, task_id: str) -> list[str]:
        return [d.task_id for d in self._forward.get(task_id, []) if d.is_hard]

    def dependents_of(self, task_id: str) -> list[str]:
        """Every task with an edge of any type pointing at ``task_id``."""
        return list(self._reverse.get(task_id, []))

    def hard_dependents_of(self, task_id: str) -> list[str]:
        return [tid for tid in self._reverse.get(task_id, []) if task_id in self.hard_dependencies_of(tid)]

    def ancestors(self, task_id: str) -> set[str]:
        """All tasks reachable from ``task_id`` through HARD dependencies."""
        seen: set[str] = set()
        queue: deque[str] = deque(self.hard_dependencies_of(task_id))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.hard_dependencies_of(current))
        return seen

    def edges(self) -> list[tuple[str, Dependency]]:
        return [(tid, dep) for tid, deps in self._forward.items() for dep in deps]

    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._forward.values())
