"""Load optional planner configuration from `.task_planner/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .constants import (
    CONFIG_FILE,
    DEFAULT_EVENT_HISTORY,
    DEFAULT_KNOWLEDGE_WEIGHT,
    DEFAULT_MAX_DEPTH,
    STATE_DIR_NAME,
)
from .engine.model import FailurePolicy
from .errors import ConfigError
from .io_utils import _load_data_with_error


class PlannerConfig(BaseModel):
    """Engine settings. Every field has a working default."""

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)
    auto_planning: bool = False
    failure_policy: FailurePolicy = FailurePolicy.BLOCK
    knowledge_weight: float = Field(default=DEFAULT_KNOWLEDGE_WEIGHT, gt=0.0)
    event_history_limit: int = Field(default=DEFAULT_EVENT_HISTORY, ge=0)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any] | None) -> "PlannerConfig":
        """Build a config from a plain mapping, raising :class:`ConfigError` on bad values."""
        try:
            return cls.model_validate(dict(raw or {}))
        except ValidationError as exc:
            raise ConfigError(f"Invalid planner config: {exc}") from exc


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def get_planner_block(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the `planner` block from the raw config file contents.

    Args:
        config: Raw configuration dictionary.

    Returns:
        The `planner` mapping, or an empty dict if not present.
    """
    raw = _get_nested(config, "planner")
    return raw if isinstance(raw, dict) else {}


def load_planner_config(project_dir: Path) -> tuple[PlannerConfig, str | None]:
    """Load the optional planner config file.

    Args:
        project_dir: Directory holding the `.task_planner/` state directory.

    Returns:
        A tuple of `(config, error_message)`. A missing file yields defaults
        and no error; an unreadable or invalid file yields defaults and the
        error text.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return PlannerConfig(), None
    data, err = _load_data_with_error(path, {})
    if err:
        return PlannerConfig(), err
    try:
        return PlannerConfig.from_mapping(get_planner_block(data)), None
    except ConfigError as exc:
        return PlannerConfig(), str(exc)
