from .bus import EventBus
from .types import (
    EVENT_TYPES,
    EngineEvent,
    MetricsUpdated,
    PlanCalculated,
    ResourceAcquired,
    ResourceReleased,
    TaskAdded,
    TaskCompleted,
    TaskFailed,
    TaskReady,
    TaskRunning,
    TaskSkipped,
    TasksUnblocked,
)

__all__ = [
    "EVENT_TYPES",
    "EngineEvent",
    "EventBus",
    "MetricsUpdated",
    "PlanCalculated",
    "ResourceAcquired",
    "ResourceReleased",
    "TaskAdded",
    "TaskCompleted",
    "TaskFailed",
    "TaskReady",
    "TaskRunning",
    "TaskSkipped",
    "TasksUnblocked",
]
