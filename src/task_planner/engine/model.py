"""Task and dependency model for the planning engine.

Tasks are plain dataclasses owned by :class:`~task_planner.engine.store.TaskStore`.
They serialize to YAML/JSON-friendly dicts so snapshots can be written and
replayed.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from ..constants import DEFAULT_DEPENDENCY_WEIGHT, DEFAULT_PRIORITY, DEFAULT_TASK_DURATION
from ..utils import _coerce_string_list


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DependencyType(str, Enum):
    """How strongly a task is tied to one of its dependencies."""

    HARD = "hard"  # Blocking, must complete first
    SOFT = "soft"  # Preferential, better if first
    RESOURCE = "resource"
    KNOWLEDGE = "knowledge"  # Synthesized from produces/requires
    TEMPORAL = "temporal"


class TaskStatus(str, Enum):
    PENDING = "pending"
    BLOCKED = "blocked"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED})


class FailurePolicy(str, Enum):
    """What happens to dependents of a task that ends FAILED or SKIPPED."""

    BLOCK = "block"  # Stay BLOCKED until someone intervenes
    SKIP = "skip"  # Cascade SKIPPED through HARD dependents
    FAIL = "fail"  # Cascade FAILED through HARD dependents


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------

@dataclass
class Dependency:
    """A directed edge from a dependent task to ``task_id``."""

    task_id: str
    type: DependencyType = DependencyType.HARD
    weight: float = DEFAULT_DEPENDENCY_WEIGHT
    condition: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_hard(self) -> bool:
        return self.type == DependencyType.HARD

    @classmethod
    def normalize(cls, entry: Any) -> "Dependency":
        """Coerce a dependency declaration into a :class:`Dependency`.

        Accepts a bare task id (HARD, weight 1.0), an existing
        :class:`Dependency`, or a mapping with ``id``/``task_id`` and optional
        ``type``, ``weight``, ``condition`` and ``metadata``.
        """
        if isinstance(entry, Dependency):
            return entry
        if isinstance(entry, str):
            task_id = entry.strip()
            if not task_id:
                raise ValueError("Dependency id must be a non-empty string")
            return cls(task_id=task_id)
        if isinstance(entry, Mapping):
            task_id = str(entry.get("task_id") or entry.get("id") or "").strip()
            if not task_id:
                raise ValueError(f"Dependency {dict(entry)!r} is missing 'id'")
            raw_type = entry.get("type") or DependencyType.HARD
            try:
                dep_type = DependencyType(raw_type)
            except ValueError:
                valid = sorted(t.value for t in DependencyType)
                raise ValueError(f"Dependency type must be one of {valid}, got {raw_type!r}") from None
            weight = entry.get("weight")
            return cls(
                task_id=task_id,
                type=dep_type,
                weight=float(weight) if weight is not None else DEFAULT_DEPENDENCY_WEIGHT,
                condition=entry.get("condition"),
                metadata=dict(entry.get("metadata") or {}),
            )
        raise ValueError(f"Unsupported dependency declaration: {entry!r}")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Dependency":
        return cls.normalize(data)


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of work tracked by the engine.

    ``depth`` and ``criticality_score`` are computed by the store; ``status``
    is owned by the status engine. Terminal tasks are never deleted.
    """

    # Identity
    id: str
    name: str = ""
    description: str = ""

    # Scheduling inputs
    priority: int = DEFAULT_PRIORITY
    estimated_duration: Optional[float] = None
    resource_requirements: list[str] = field(default_factory=list)
    produces: list[str] = field(default_factory=list)
    requires: list[str] = field(default_factory=list)

    # Computed
    status: TaskStatus = TaskStatus.PENDING
    depth: int = 0
    criticality_score: float = 0.0

    # Lifecycle
    added_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    outputs: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    # Opaque to the engine (specialist, department, ...)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.id
        self.resource_requirements = _coerce_string_list(self.resource_requirements)
        self.produces = _coerce_string_list(self.produces)
        self.requires = _coerce_string_list(self.requires)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_or_default(self) -> float:
        """Estimated duration, or one unit when no estimate was given."""
        if self.estimated_duration is None:
            return DEFAULT_TASK_DURATION
        return self.estimated_duration

    @property
    def specialist(self) -> Optional[str]:
        return self.metadata.get("specialist")

    @property
    def department(self) -> Optional[str]:
        return self.metadata.get("department")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        data: dict[str, Any] = {}
        for k, v in asdict(self).items():
            if isinstance(v, Enum):
                data[k] = v.value
            else:
                data[k] = v
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing the status gracefully."""
        d = dict(data)
        raw_status = d.pop("status", None)
        try:
            status = TaskStatus(raw_status) if raw_status is not None else TaskStatus.PENDING
        except ValueError:
            status = TaskStatus.PENDING
        duration = d.pop("estimated_duration", None)
        return cls(
            id=str(d.pop("id")),
            name=str(d.pop("name", "") or ""),
            description=str(d.pop("description", "") or ""),
            priority=int(d.pop("priority", DEFAULT_PRIORITY) or 0),
            estimated_duration=float(duration) if duration is not None else None,
            resource_requirements=list(d.pop("resource_requirements", []) or []),
            produces=list(d.pop("produces", []) or []),
            requires=list(d.pop("requires", []) or []),
            status=status,
            depth=int(d.pop("depth", 0) or 0),
            criticality_score=float(d.pop("criticality_score", 0.0) or 0.0),
            added_at=float(d.pop("added_at", None) or time.time()),
            started_at=d.pop("started_at", None),
            completed_at=d.pop("completed_at", None),
            outputs=dict(d.pop("outputs", {}) or {}),
            error=d.pop("error", None),
            metadata=dict(d.pop("metadata", {}) or {}),
        )
