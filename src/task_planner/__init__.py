"""Task dependency tracking and execution planning."""

from .config import PlannerConfig, load_planner_config
from .engine.manager import DependencyManager
from .engine.model import Dependency, DependencyType, FailurePolicy, Task, TaskStatus
from .engine.planner import ExecutionPlan, ResourceConflict
from .errors import (
    CircularDependencyError,
    ConfigError,
    InvalidTransitionError,
    PlannerError,
    TaskNotFoundError,
)
from .events import EventBus

__all__ = [
    "CircularDependencyError",
    "ConfigError",
    "Dependency",
    "DependencyManager",
    "DependencyType",
    "EventBus",
    "ExecutionPlan",
    "FailurePolicy",
    "InvalidTransitionError",
    "PlannerConfig",
    "PlannerError",
    "ResourceConflict",
    "Task",
    "TaskNotFoundError",
    "TaskStatus",
    "load_planner_config",
]

__version__ = "0.1.0"
