"""Status reports, recommendations and graph export.

The pydantic models here are the response shapes handed to dashboards and
supervisory agents. Recommendations are advisory text plus a severity; they
are never raised.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from ..constants import (
    BOTTLENECK_BLOCKED_RATIO,
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    UNDERUTILIZED_MAX_RUNNING,
    UNDERUTILIZED_MIN_READY,
)
from .planner import ResourceConflict


class EngineMetrics(BaseModel):
    total_tasks: int = 0
    total_dependencies: int = 0
    cycles_detected: int = 0
    conflicts_detected: int = 0
    parallelization_ratio: float = 0.0  # (running + completed) / total


class StatusSummary(BaseModel):
    total: int = 0
    completed: int = 0
    running: int = 0
    ready: int = 0
    blocked: int = 0
    pending: int = 0
    failed: int = 0
    skipped: int = 0
    progress: float = 0.0  # percent completed


class CriticalPathInfo(BaseModel):
    tasks: list[str] = Field(default_factory=list)
    estimated_duration: float = 0.0


class BlockedTaskInfo(BaseModel):
    id: str
    name: str
    blocking_tasks: list[str] = Field(default_factory=list)
    missing_dependencies: list[str] = Field(default_factory=list)
    blocking_resources: list[str] = Field(default_factory=list)


class ResourceUsage(BaseModel):
    resource: str
    locked_by: str
    task: Optional[str] = None  # holder's name, None if the holder is unknown


class Recommendation(BaseModel):
    type: str
    message: str
    severity: str
    details: dict[str, Any] = Field(default_factory=dict)


class StatusReport(BaseModel):
    summary: StatusSummary
    critical_path: CriticalPathInfo
    blocked_tasks: list[BlockedTaskInfo] = Field(default_factory=list)
    resource_utilization: list[ResourceUsage] = Field(default_factory=list)
    metrics: EngineMetrics
    recommendations: list[Recommendation] = Field(default_factory=list)


class GraphNode(BaseModel):
    id: str
    label: str
    status: str
    department: Optional[str] = None
    specialist: Optional[str] = None
    criticality: float = 0.0
    depth: int = 0


class GraphEdge(BaseModel):
    # "from" is a keyword, so the field is aliased for export
    source: str = Field(serialization_alias="from")
    to: str
    type: str
    weight: float


class Visualization(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    stages: list[list[str]] = Field(default_factory=list)
    critical_path: list[str] = Field(default_factory=list)
    metrics: EngineMetrics


def generate_recommendations(
    *,
    blocked: int,
    running: int,
    ready: int,
    conflicts: list[ResourceConflict],
    deep_tasks: Optional[dict[str, int]] = None,
    max_depth: int = 0,
    missing_dependencies: Optional[dict[str, list[str]]] = None,
    knowledge_conflicts: Optional[dict[str, list[str]]] = None,
) -> list[Recommendation]:
    """Derive optimization hints from live counts and planner output."""
    recommendations: list[Recommendation] = []

    if blocked > running * BOTTLENECK_BLOCKED_RATIO:
        recommendations.append(
            Recommendation(
                type="bottleneck",
                message="Many tasks are blocked. Consider reviewing dependencies.",
                severity=SEVERITY_HIGH,
                details={"blocked": blocked, "running": running},
            )
        )

    if conflicts:
        recommendations.append(
            Recommendation(
                type="resource_conflict",
                message=f"{len(conflicts)} resource conflicts detected",
                severity=SEVERITY_MEDIUM,
                details={"conflicts": [{"resource": c.resource, "tasks": list(c.tasks)} for c in conflicts]},
            )
        )

    if ready >= UNDERUTILIZED_MIN_READY and running < UNDERUTILIZED_MAX_RUNNING:
        recommendations.append(
            Recommendation(
                type="underutilization",
                message="Multiple tasks ready but few running. Increase parallelization.",
                severity=SEVERITY_LOW,
                details={"ready": ready, "running": running},
            )
        )

    if deep_tasks:
        recommendations.append(
            Recommendation(
                type="depth_exceeded",
                message=f"{len(deep_tasks)} task(s) exceed the maximum dependency depth of {max_depth}",
                severity=SEVERITY_MEDIUM,
                details={"tasks": dict(deep_tasks), "max_depth": max_depth},
            )
        )

    if missing_dependencies:
        recommendations.append(
            Recommendation(
                type="missing_dependency",
                message=f"{len(missing_dependencies)} task(s) depend on tasks that were never added",
                severity=SEVERITY_MEDIUM,
                details={"tasks": {k: list(v) for k, v in missing_dependencies.items()}},
            )
        )

    if knowledge_conflicts:
        recommendations.append(
            Recommendation(
                type="knowledge_conflict",
                message=f"{len(knowledge_conflicts)} data type(s) have more than one producer; the last one wins",
                severity=SEVERITY_LOW,
                details={"data_types": {k: list(v) for k, v in knowledge_conflicts.items()}},
            )
        )

    return recommendations
