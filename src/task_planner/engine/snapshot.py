"""YAML snapshots of a planning context.

A snapshot stores each task's declared inputs together with its lifecycle
fields, plus the resource ledger. Loading replays ``add_task`` in the
original insertion order, which rebuilds the graph, the knowledge edges and
every derived metric. Terminal and running statuses are then restored, and
every other task is re-evaluated against the restored state.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from ..config import PlannerConfig
from ..constants import SNAPSHOT_VERSION
from ..errors import PlannerError
from ..io_utils import _load_data_with_error, _save_data
from .model import TERMINAL_STATUSES, Task, TaskStatus

if TYPE_CHECKING:
    from .manager import DependencyManager

_LIFECYCLE_STATUSES = TERMINAL_STATUSES | {TaskStatus.RUNNING}


def snapshot_dict(manager: "DependencyManager") -> dict[str, Any]:
    tasks: list[dict[str, Any]] = []
    for task in manager.store:
        data = task.to_dict()
        # Synthesized knowledge edges are rebuilt from produces/requires on load
        data["dependencies"] = [
            dep.to_dict()
            for dep in manager.graph.dependencies_of(task.id)
            if not dep.metadata.get("synthesized")
        ]
        tasks.append(data)
    return {
        "version": SNAPSHOT_VERSION,
        "tasks": tasks,
        "resources": dict(manager.ledger.items()),
    }


def save_snapshot(manager: "DependencyManager", path: Path) -> Path:
    path = Path(path)
    data = snapshot_dict(manager)
    _save_data(path, data)
    logger.info("Snapshot with {} task(s) written to {}", len(data["tasks"]), path)
    return path


def restore(data: dict[str, Any], config: Optional[PlannerConfig] = None) -> "DependencyManager":
    """Rebuild a manager from a snapshot mapping."""
    from .manager import DependencyManager

    version = data.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise PlannerError(f"Unsupported snapshot version {version!r} (expected {SNAPSHOT_VERSION})")

    manager = DependencyManager(config=config)
    restored: list[Task] = []
    for raw in data.get("tasks") or []:
        if not isinstance(raw, dict) or not raw.get("id"):
            logger.warning("Skipping malformed snapshot task entry: {!r}", raw)
            continue
        saved = Task.from_dict({k: v for k, v in raw.items() if k != "dependencies"})
        manager.add_task(
            saved.id,
            name=saved.name,
            description=saved.description,
            priority=saved.priority,
            estimated_duration=saved.estimated_duration,
            dependencies=raw.get("dependencies") or [],
            produces=saved.produces,
            requires=saved.requires,
            resource_requirements=saved.resource_requirements,
            metadata=saved.metadata,
        )
        restored.append(saved)

    for saved in restored:
        task = manager.store.require(saved.id)
        task.added_at = saved.added_at
        if saved.status in _LIFECYCLE_STATUSES:
            task.status = saved.status
            task.started_at = saved.started_at
            task.completed_at = saved.completed_at
            task.outputs = dict(saved.outputs)
            task.error = saved.error

    for resource, holder in (data.get("resources") or {}).items():
        if holder in manager.store:
            manager.ledger.acquire(str(resource), str(holder))
        else:
            logger.warning("Dropping lock on {} held by unknown task {}", resource, holder)

    for task_id in manager.store.ids():
        manager.status_engine.evaluate(task_id)
    manager._update_metrics()
    return manager


def load_snapshot(path: Path, config: Optional[PlannerConfig] = None) -> "DependencyManager":
    """Load a snapshot file written by :func:`save_snapshot`.

    Raises:
        PlannerError: The file is unreadable or has an unsupported version.
    """
    path = Path(path)
    if not path.exists():
        raise PlannerError(f"Snapshot not found: {path}")
    data, err = _load_data_with_error(path, {})
    if err:
        raise PlannerError(f"Unable to read snapshot: {err}")
    manager = restore(data, config=config)
    logger.info("Snapshot loaded from {} ({} task(s))", path, len(manager.store))
    return manager
