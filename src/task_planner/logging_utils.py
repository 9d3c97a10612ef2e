"""Configure loguru and format engine events for log lines."""

from __future__ import annotations

import json
import sys
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def summarize_event(event: Any) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of an engine event.

    Args:
        event: Event dataclass instance (or None).

    Returns:
        A dictionary suitable for logging or serialization. Task objects are
        reduced to their id and status, long lists to their size and a sample.
    """
    if event is None:
        return {"event": None}

    d: dict[str, Any] = {"event": getattr(event, "name", event.__class__.__name__)}
    if not is_dataclass(event):
        return d

    for f in fields(event):
        value = getattr(event, f.name)
        if f.name == "task" and value is not None:
            d["task_id"] = getattr(value, "id", None)
            status = getattr(value, "status", None)
            d["status"] = status.value if isinstance(status, Enum) else status
        elif f.name == "plan" and value is not None:
            d["stages_n"] = len(getattr(value, "stages", []) or [])
            d["critical_path"] = list(getattr(value, "critical_path", []) or [])
            d["estimated_duration"] = getattr(value, "estimated_duration", None)
        elif isinstance(value, (list, tuple)):
            items = list(value)
            d[f"{f.name}_n"] = len(items)
            sample = [getattr(item, "task_id", item) for item in items[:3]]
            d[f"{f.name}_sample"] = [str(s) for s in sample]
        elif isinstance(value, dict):
            d[f"{f.name}_keys"] = sorted(str(k) for k in value)[:5]
        elif isinstance(value, Enum):
            d[f.name] = value.value
        else:
            d[f.name] = value
    return d


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable logs.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
