"""Typed engine events.

Each event is a frozen dataclass; ``name`` is the wire-style identifier
collaborators subscribe to (``task:ready``, ``tasks:unblocked``, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Optional

if TYPE_CHECKING:
    from ..engine.model import Dependency, Task
    from ..engine.planner import ExecutionPlan


@dataclass(frozen=True)
class EngineEvent:
    name: ClassVar[str] = "engine:event"


@dataclass(frozen=True)
class TaskAdded(EngineEvent):
    name: ClassVar[str] = "task:added"
    task: "Task"
    dependencies: list["Dependency"] = field(default_factory=list)


@dataclass(frozen=True)
class TaskReady(EngineEvent):
    name: ClassVar[str] = "task:ready"
    task_id: str
    task: "Task"


@dataclass(frozen=True)
class TaskRunning(EngineEvent):
    name: ClassVar[str] = "task:running"
    task_id: str
    task: "Task"


@dataclass(frozen=True)
class TaskCompleted(EngineEvent):
    name: ClassVar[str] = "task:completed"
    task_id: str
    task: "Task"
    outputs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TaskFailed(EngineEvent):
    name: ClassVar[str] = "task:failed"
    task_id: str
    task: "Task"
    error: Optional[str] = None
    # Set when the failure was cascaded from a failed/skipped dependency
    cascaded_from: Optional[str] = None


@dataclass(frozen=True)
class TaskSkipped(EngineEvent):
    name: ClassVar[str] = "task:skipped"
    task_id: str
    task: "Task"
    reason: Optional[str] = None
    cascaded_from: Optional[str] = None


@dataclass(frozen=True)
class TasksUnblocked(EngineEvent):
    name: ClassVar[str] = "tasks:unblocked"
    tasks: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ResourceAcquired(EngineEvent):
    name: ClassVar[str] = "resource:acquired"
    resource: str
    task_id: str
    previous_holder: Optional[str] = None


@dataclass(frozen=True)
class ResourceReleased(EngineEvent):
    name: ClassVar[str] = "resource:released"
    resource: str
    task_id: str


@dataclass(frozen=True)
class PlanCalculated(EngineEvent):
    name: ClassVar[str] = "plan:calculated"
    plan: "ExecutionPlan"


@dataclass(frozen=True)
class MetricsUpdated(EngineEvent):
    name: ClassVar[str] = "metrics:updated"
    metrics: dict[str, Any] = field(default_factory=dict)


EVENT_TYPES: dict[str, type[EngineEvent]] = {
    cls.name: cls
    for cls in (
        TaskAdded,
        TaskReady,
        TaskRunning,
        TaskCompleted,
        TaskFailed,
        TaskSkipped,
        TasksUnblocked,
        ResourceAcquired,
        ResourceReleased,
        PlanCalculated,
        MetricsUpdated,
    )
}
