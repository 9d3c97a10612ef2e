from __future__ import annotations

import pytest

from task_planner import DependencyManager, PlannerConfig
from task_planner.events import EngineEvent


@pytest.fixture
def manager() -> DependencyManager:
    return DependencyManager()


@pytest.fixture
def make_manager():
    """Build a manager with config overrides, e.g. ``make_manager(failure_policy="skip")``."""

    def _make(**overrides) -> DependencyManager:
        return DependencyManager(config=PlannerConfig(**overrides))

    return _make


@pytest.fixture
def events(manager: DependencyManager) -> list[EngineEvent]:
    """Every event emitted by the ``manager`` fixture, in order."""
    received: list[EngineEvent] = []
    manager.bus.subscribe_all(received.append)
    return received
