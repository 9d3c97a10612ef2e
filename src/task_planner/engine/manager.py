"""Dependency manager: the public entry point of the planning engine.

The manager owns every component (task store, dependency graph, knowledge
tracker, resource ledger, status engine, planner and event bus) for one
planning context. Each public call runs under a single re-entrant lock and
finishes its whole cascade of updates before returning, so callers never
observe a half-updated graph even when completions arrive from several
worker threads.

Resource locks follow a caller-owned, two-step contract: callers record a
holder with :meth:`DependencyManager.acquire_resource` and drop it with
:meth:`DependencyManager.release_resource`. The manager re-evaluates every
task waiting on the resource after either call, and releases a task's
resources when it reaches a terminal status. Starting a task never acquires
anything.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger

from ..config import PlannerConfig
from ..constants import DEFAULT_PRIORITY
from ..errors import InvalidTransitionError
from ..events import (
    EventBus,
    MetricsUpdated,
    PlanCalculated,
    ResourceAcquired,
    ResourceReleased,
    TaskAdded,
    TaskCompleted,
    TaskFailed,
    TaskRunning,
    TaskSkipped,
    TasksUnblocked,
)
from .dependencies import DependencyGraph
from .diagnostics import (
    BlockedTaskInfo,
    CriticalPathInfo,
    EngineMetrics,
    GraphEdge,
    GraphNode,
    ResourceUsage,
    StatusReport,
    StatusSummary,
    Visualization,
    generate_recommendations,
)
from .knowledge import KnowledgeTracker
from .model import Dependency, DependencyType, FailurePolicy, Task, TaskStatus
from .planner import ExecutionPlan, ExecutionPlanner
from .resources import ResourceLedger
from .status import StatusEngine
from .store import TaskStore


class DependencyManager:
    """Track tasks, their typed dependencies and their readiness.

    Parameters
    ----------
    config:
        Engine settings; defaults are used when omitted.
    bus:
        Event bus to publish on. A private bus is created when omitted.
    """

    def __init__(self, config: Optional[PlannerConfig] = None, bus: Optional[EventBus] = None) -> None:
        self.config = config or PlannerConfig()
        self.bus = bus or EventBus(history_limit=self.config.event_history_limit)
        self.graph = DependencyGraph()
        self.store = TaskStore(self.graph)
        self.knowledge = KnowledgeTracker()
        self.ledger = ResourceLedger()
        self.status_engine = StatusEngine(self.store, self.graph, self.ledger, self.bus)
        self.planner = ExecutionPlanner(self.store, self.graph)
        self.metrics = EngineMetrics()
        self.execution_plan: Optional[ExecutionPlan] = None
        self._lock = threading.RLock()
        logger.info("Dependency manager initialized (failure_policy={})", self.config.failure_policy.value)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(
        self,
        task_id: str,
        *,
        name: Optional[str] = None,
        description: str = "",
        priority: int = DEFAULT_PRIORITY,
        estimated_duration: Optional[float] = None,
        dependencies: Optional[Iterable[Any]] = None,
        produces: Optional[Iterable[str]] = None,
        requires: Optional[Iterable[str]] = None,
        resource_requirements: Optional[Iterable[str]] = None,
        metadata: Optional[dict[str, Any]] = None,
        **extra: Any,
    ) -> bool:
        """Add a task and wire up its dependencies.

        Extra keyword options (``specialist``, ``department``, ...) are kept
        in ``metadata`` untouched.

        Returns:
            True when added, False when ``task_id`` already exists.

        Raises:
            CircularDependencyError: A HARD dependency would close a cycle.
                Nothing is committed in that case.
        """
        with self._lock:
            if task_id in self.store:
                logger.warning("Task {} already exists", task_id)
                return False

            deps = self.graph.normalize(task_id, dependencies)

            task = Task(
                id=task_id,
                name=name or task_id,
                description=description,
                priority=int(priority),
                estimated_duration=float(estimated_duration) if estimated_duration is not None else None,
                resource_requirements=list(resource_requirements or []),
                produces=list(produces or []),
                requires=list(requires or []),
                metadata={**dict(metadata or {}), **extra},
            )
            self.store.add(task)
            self.graph.commit(task_id, deps)

            for dep in deps:
                if dep.is_hard and dep.task_id not in self.store:
                    logger.warning("Task {} depends on unknown task {}; it stays blocked until that task is added", task_id, dep.task_id)

            for link in self.knowledge.register(task_id, task.produces, task.requires):
                knowledge_dep = Dependency(
                    task_id=link.producer,
                    type=DependencyType.KNOWLEDGE,
                    weight=self.config.knowledge_weight,
                    metadata={"data_type": link.data_type, "synthesized": True},
                )
                if self.graph.add_edge(task_id, knowledge_dep):
                    logger.info(
                        "Knowledge dependency added: {} requires {} from {}",
                        task_id,
                        link.data_type,
                        link.producer,
                    )

            self._refresh_metrics_around(task_id)
            self.status_engine.evaluate(task_id)
            self._sync_counts()

            self.bus.emit(TaskAdded(task=task, dependencies=self.graph.dependencies_of(task_id)))
            logger.info("Task {} added ({} dependencies, status {})", task_id, len(self.graph.dependencies_of(task_id)), task.status.value)

            if self.config.auto_planning:
                self._calculate_plan()
            return True

    def add_dependency(self, task_id: str, dependency: Any) -> Optional[Dependency]:
        """Add a dependency to an existing task.

        Returns the recorded :class:`Dependency`, or None if an identical
        edge (same target and type) already exists.

        Raises:
            TaskNotFoundError: ``task_id`` is unknown.
            CircularDependencyError: The edge would close a HARD cycle; the
                task's dependencies are left unchanged.
        """
        with self._lock:
            self.store.require(task_id)
            (dep,) = self.graph.normalize(task_id, [dependency])
            if not self.graph.add_edge(task_id, dep):
                return None
            self._refresh_metrics_around(task_id)
            if dep.is_hard:
                self.status_engine.evaluate(task_id)
            self._sync_counts()
            logger.info("Dependency added: {} -> {} ({})", task_id, dep.task_id, dep.type.value)
            return dep

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self.store.get(task_id)

    def list_tasks(self, status: Optional[str] = None) -> list[Task]:
        with self._lock:
            if status is None:
                return list(self.store)
            return self.store.by_status(TaskStatus(status))

    def evaluate_task(self, task_id: str) -> TaskStatus:
        """Re-run the readiness rule for one task and return its status."""
        with self._lock:
            return self.status_engine.evaluate(task_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mark_task_running(self, task_id: str) -> Task:
        """Record that a caller started a READY task.

        The engine does not run tasks; this only moves the task to RUNNING so
        reports and readiness reflect it. No resources are acquired.
        """
        with self._lock:
            task = self.store.require(task_id)
            if task.status != TaskStatus.READY:
                raise InvalidTransitionError(task_id, task.status.value, TaskStatus.RUNNING.value)
            task.status = TaskStatus.RUNNING
            task.started_at = time.time()
            self.status_engine.forget(task_id)
            self.bus.emit(TaskRunning(task_id=task_id, task=task))
            self._update_metrics()
            return task

    def mark_task_completed(self, task_id: str, outputs: Optional[dict[str, Any]] = None) -> list[str]:
        """Complete a task and return the dependents that became READY.

        Raises:
            TaskNotFoundError: ``task_id`` is unknown.
            InvalidTransitionError: The task already FAILED or was SKIPPED.
        """
        with self._lock:
            task = self.store.require(task_id)
            if task.status == TaskStatus.COMPLETED:
                return []
            if task.is_terminal:
                raise InvalidTransitionError(task_id, task.status.value, TaskStatus.COMPLETED.value)

            task.status = TaskStatus.COMPLETED
            task.completed_at = time.time()
            task.outputs = dict(outputs or {})
            self.status_engine.forget(task_id)

            # Statuses before the release: freeing a resource may already flip a dependent to READY
            before = {
                dependent_id: self.store.require(dependent_id).status
                for dependent_id in self.graph.dependents_of(task_id)
                if dependent_id in self.store
            }
            self._release_held_resources(task_id)

            unblocked: list[str] = []
            for dependent_id, previous in before.items():
                if self.status_engine.evaluate(dependent_id) == TaskStatus.READY and previous != TaskStatus.READY:
                    unblocked.append(dependent_id)

            self.bus.emit(TaskCompleted(task_id=task_id, task=task, outputs=task.outputs))
            if unblocked:
                self.bus.emit(TasksUnblocked(tasks=list(unblocked)))
            logger.info("Task {} completed; unblocked: {}", task_id, unblocked or "none")
            self._update_metrics()
            return unblocked

    def mark_task_failed(self, task_id: str, error: Optional[str] = None) -> list[str]:
        """Fail a task; returns the dependents terminated by the failure policy."""
        return self._terminate(task_id, TaskStatus.FAILED, error)

    def mark_task_skipped(self, task_id: str, reason: Optional[str] = None) -> list[str]:
        """Skip a task; returns the dependents terminated by the failure policy."""
        return self._terminate(task_id, TaskStatus.SKIPPED, reason)

    def _terminate(self, task_id: str, status: TaskStatus, message: Optional[str]) -> list[str]:
        with self._lock:
            task = self.store.require(task_id)
            if task.is_terminal:
                if task.status == status:
                    return []
                raise InvalidTransitionError(task_id, task.status.value, status.value)

            self._set_terminal(task, status, message)
            logger.info("Task {} {}: {}", task_id, status.value, message or "no reason given")

            affected: list[str] = []
            policy = self.config.failure_policy
            if policy == FailurePolicy.BLOCK:
                # Dependents stay BLOCKED: a HARD dependency that is not COMPLETED never unblocks
                self.status_engine.evaluate_many(self.graph.dependents_of(task_id))
            else:
                cascade_status = TaskStatus.SKIPPED if policy == FailurePolicy.SKIP else TaskStatus.FAILED
                for dependent_id in self.status_engine.cascade_targets(task_id):
                    dependent = self.store.require(dependent_id)
                    self._set_terminal(
                        dependent,
                        cascade_status,
                        f"Dependency {task_id} {status.value}",
                        cascaded_from=task_id,
                    )
                    affected.append(dependent_id)
                if affected:
                    logger.warning("{} dependent task(s) of {} marked {}: {}", len(affected), task_id, cascade_status.value, affected)

            self._update_metrics()
            return affected

    def _set_terminal(
        self,
        task: Task,
        status: TaskStatus,
        message: Optional[str],
        cascaded_from: Optional[str] = None,
    ) -> None:
        task.status = status
        task.completed_at = time.time()
        task.error = message
        self.status_engine.forget(task.id)
        self._release_held_resources(task.id)
        if status == TaskStatus.FAILED:
            self.bus.emit(TaskFailed(task_id=task.id, task=task, error=message, cascaded_from=cascaded_from))
        else:
            self.bus.emit(TaskSkipped(task_id=task.id, task=task, reason=message, cascaded_from=cascaded_from))

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def acquire_resource(self, resource: str, task_id: str) -> Optional[str]:
        """Record ``task_id`` as the holder of ``resource``.

        Last writer wins; the previous holder is returned. Every task waiting
        on the resource is re-evaluated, so a READY task that needs it may
        become BLOCKED.
        """
        with self._lock:
            self.store.require(task_id)
            previous = self.ledger.acquire(resource, task_id)
            if previous and previous != task_id:
                logger.warning("Resource {} taken over by {} from {}", resource, task_id, previous)
            self.bus.emit(ResourceAcquired(resource=resource, task_id=task_id, previous_holder=previous))
            self.status_engine.evaluate_many(self.status_engine.waiting_on_resource(resource))
            return previous

    def release_resource(self, resource: str, task_id: Optional[str] = None) -> bool:
        """Drop the holder of ``resource`` and re-evaluate tasks waiting on it.

        With ``task_id`` set the resource is only released if that task holds
        it. Returns True when a holder was removed.
        """
        with self._lock:
            holder = self.ledger.holder(resource)
            if not self.ledger.release(resource, task_id):
                return False
            self.bus.emit(ResourceReleased(resource=resource, task_id=holder or ""))
            self.status_engine.evaluate_many(self.status_engine.waiting_on_resource(resource))
            return True

    def _release_held_resources(self, task_id: str) -> None:
        for resource in self.ledger.held_by(task_id):
            self.ledger.release(resource, task_id)
            self.bus.emit(ResourceReleased(resource=resource, task_id=task_id))
            self.status_engine.evaluate_many(self.status_engine.waiting_on_resource(resource))

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def get_ready_tasks(self) -> list[str]:
        with self._lock:
            return self.planner.ready_tasks()

    def calculate_execution_plan(self) -> ExecutionPlan:
        """Compute the execution plan for the current graph.

        The computation is a pure read; the result is also kept for
        :meth:`generate_visualization` and published as ``plan:calculated``.
        """
        with self._lock:
            return self._calculate_plan()

    def _calculate_plan(self) -> ExecutionPlan:
        plan = self.planner.calculate()
        self.execution_plan = plan
        self.metrics.conflicts_detected = len(plan.resource_conflicts)
        logger.info(
            "Execution plan: {} stages, max parallelism {}, critical path {} ({} units)",
            len(plan.stages),
            plan.max_parallelism,
            " -> ".join(plan.critical_path) or "empty",
            plan.estimated_duration,
        )
        self.bus.emit(PlanCalculated(plan=plan))
        return plan

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_status_report(self) -> StatusReport:
        with self._lock:
            counts = {status: self.store.count(status) for status in TaskStatus}
            total = len(self.store)
            path, duration = self.planner.critical_path()
            conflicts = self.planner.resource_conflicts()

            blocked: list[BlockedTaskInfo] = []
            missing: dict[str, list[str]] = {}
            for task_id in self.status_engine.blocked_ids:
                task = self.store.require(task_id)
                reason = self.status_engine.explain(task_id)
                blocked.append(
                    BlockedTaskInfo(
                        id=task_id,
                        name=task.name,
                        blocking_tasks=reason.dependencies,
                        missing_dependencies=reason.missing_dependencies,
                        blocking_resources=reason.resources,
                    )
                )
                if reason.missing_dependencies:
                    missing[task_id] = reason.missing_dependencies

            utilization = []
            for resource, holder in self.ledger.items():
                holder_task = self.store.get(holder)
                utilization.append(
                    ResourceUsage(resource=resource, locked_by=holder, task=holder_task.name if holder_task else None)
                )

            deep = {t.id: t.depth for t in self.store if t.depth > self.config.max_depth}
            recommendations = generate_recommendations(
                blocked=counts[TaskStatus.BLOCKED],
                running=counts[TaskStatus.RUNNING],
                ready=counts[TaskStatus.READY],
                conflicts=conflicts,
                deep_tasks=deep,
                max_depth=self.config.max_depth,
                missing_dependencies=missing,
                knowledge_conflicts=self.knowledge.conflicting_producers(),
            )

            summary = StatusSummary(
                total=total,
                completed=counts[TaskStatus.COMPLETED],
                running=counts[TaskStatus.RUNNING],
                ready=counts[TaskStatus.READY],
                blocked=counts[TaskStatus.BLOCKED],
                pending=counts[TaskStatus.PENDING],
                failed=counts[TaskStatus.FAILED],
                skipped=counts[TaskStatus.SKIPPED],
                progress=(counts[TaskStatus.COMPLETED] / total) * 100 if total else 0.0,
            )
            return StatusReport(
                summary=summary,
                critical_path=CriticalPathInfo(tasks=path, estimated_duration=duration),
                blocked_tasks=blocked,
                resource_utilization=utilization,
                metrics=self.get_metrics(),
                recommendations=recommendations,
            )

    def generate_visualization(self) -> Visualization:
        """Export nodes, typed edges, the last calculated stages and the critical path."""
        with self._lock:
            nodes = [
                GraphNode(
                    id=t.id,
                    label=t.name,
                    status=t.status.value,
                    department=t.department,
                    specialist=t.specialist,
                    criticality=t.criticality_score,
                    depth=t.depth,
                )
                for t in self.store
            ]
            edges = [
                GraphEdge(source=task_id, to=dep.task_id, type=dep.type.value, weight=dep.weight)
                for task_id, dep in self.graph.edges()
            ]
            path, _ = self.planner.critical_path()
            return Visualization(
                nodes=nodes,
                edges=edges,
                stages=self.execution_plan.stages if self.execution_plan else [],
                critical_path=path,
                metrics=self.get_metrics(),
            )

    def get_metrics(self) -> EngineMetrics:
        with self._lock:
            self._sync_counts()
            return self.metrics.model_copy()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def export_snapshot(self, path: Path) -> Path:
        from .snapshot import save_snapshot

        with self._lock:
            return save_snapshot(self, path)

    @classmethod
    def load_snapshot(cls, path: Path, config: Optional[PlannerConfig] = None) -> "DependencyManager":
        from .snapshot import load_snapshot

        return load_snapshot(path, config=config)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh_metrics_around(self, task_id: str) -> None:
        """Recompute depth/criticality for a task, its targets and its dependents."""
        self.store.refresh_metrics(task_id)
        for dep in self.graph.dependencies_of(task_id):
            self.store.refresh_criticality(dep.task_id)
        changed = [task_id] + self.store.propagate_depth(task_id)
        for tid in changed:
            task = self.store.get(tid)
            if task is not None and task.depth > self.config.max_depth:
                logger.warning("Task {} depth {} exceeds max depth {}", tid, task.depth, self.config.max_depth)

    def _sync_counts(self) -> None:
        self.metrics.total_tasks = len(self.store)
        self.metrics.total_dependencies = self.graph.edge_count()
        self.metrics.cycles_detected = self.graph.cycles_detected

    def _update_metrics(self) -> None:
        self._sync_counts()
        total = len(self.store)
        running = self.store.count(TaskStatus.RUNNING)
        completed = self.store.count(TaskStatus.COMPLETED)
        self.metrics.parallelization_ratio = (running + completed) / total if total else 0.0
        self.bus.emit(MetricsUpdated(metrics=self.metrics.model_dump()))
