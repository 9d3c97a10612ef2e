"""Tests for dependency normalization, cycle detection and depth."""

from __future__ import annotations

import math

import pytest

from task_planner import (
    CircularDependencyError,
    Dependency,
    DependencyManager,
    DependencyType,
    TaskNotFoundError,
)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

class TestDependencyNormalize:
    def test_bare_id_is_hard(self) -> None:
        dep = Dependency.normalize("design")
        assert dep.task_id == "design"
        assert dep.type == DependencyType.HARD
        assert dep.weight == 1.0

    def test_mapping_with_type_and_weight(self) -> None:
        dep = Dependency.normalize({"id": "docs", "type": "soft", "weight": 0.3})
        assert dep.task_id == "docs"
        assert dep.type == DependencyType.SOFT
        assert dep.weight == pytest.approx(0.3)
        assert not dep.is_hard

    def test_task_id_key_accepted(self) -> None:
        assert Dependency.normalize({"task_id": "a"}).task_id == "a"

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError, match="type must be one of"):
            Dependency.normalize({"id": "a", "type": "blocking"})

    def test_missing_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="missing 'id'"):
            Dependency.normalize({"type": "hard"})

    def test_duplicate_declarations_collapse(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a", "a", {"id": "a", "type": "soft"}])
        deps = manager.graph.dependencies_of("b")
        assert [(d.task_id, d.type) for d in deps] == [
            ("a", DependencyType.HARD),
            ("a", DependencyType.SOFT),
        ]


# ---------------------------------------------------------------------------
# Adding tasks
# ---------------------------------------------------------------------------

class TestAddTask:
    def test_duplicate_add_returns_false(self, manager: DependencyManager) -> None:
        assert manager.add_task("a", priority=3) is True
        assert manager.add_task("a", priority=9) is False
        assert manager.get_task("a").priority == 3
        assert manager.get_metrics().total_tasks == 1

    def test_extra_options_kept_in_metadata(self, manager: DependencyManager) -> None:
        manager.add_task("api", specialist="backend-dev", department="engineering")
        task = manager.get_task("api")
        assert task.specialist == "backend-dev"
        assert task.department == "engineering"

    def test_name_defaults_to_id(self, manager: DependencyManager) -> None:
        manager.add_task("api")
        assert manager.get_task("api").name == "api"

    def test_reverse_edges_recorded(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a"])
        manager.add_task("c", dependencies=[{"id": "a", "type": "soft"}])
        assert manager.graph.dependents_of("a") == ["b", "c"]
        assert manager.graph.hard_dependents_of("a") == ["b"]


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------

class TestCycleDetection:
    def test_self_dependency_rejected(self, manager: DependencyManager) -> None:
        with pytest.raises(CircularDependencyError) as exc:
            manager.add_task("a", dependencies=["a"])
        assert exc.value.cycle == ["a", "a"]
        assert manager.get_task("a") is None
        assert manager.get_metrics().cycles_detected == 1

    def test_soft_self_dependency_rejected(self, manager: DependencyManager) -> None:
        with pytest.raises(CircularDependencyError):
            manager.add_task("a", dependencies=[{"id": "a", "type": "soft"}])

    def test_wiring_existing_task_into_cycle_rejected(self, manager: DependencyManager) -> None:
        manager.add_task("X")
        manager.add_task("Y", dependencies=["X"])
        manager.add_task("X2", dependencies=["Y"])

        with pytest.raises(CircularDependencyError) as exc:
            manager.add_dependency("X", "X2")

        assert exc.value.task_id == "X"
        assert exc.value.dependency_id == "X2"
        assert exc.value.cycle == ["X", "X2", "Y", "X"]
        assert manager.graph.dependencies_of("X") == []
        assert manager.graph.dependents_of("X2") == []

    def test_forward_reference_cycle_rejected(self, manager: DependencyManager) -> None:
        manager.add_task("a", dependencies=["b"])
        with pytest.raises(CircularDependencyError) as exc:
            manager.add_task("b", dependencies=["a"])
        assert exc.value.cycle == ["b", "a", "b"]
        assert manager.get_task("b") is None

    def test_rejected_add_leaves_graph_untouched(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        with pytest.raises(CircularDependencyError):
            manager.add_task("c", dependencies=["a", "c"])
        assert manager.get_task("c") is None
        assert manager.graph.dependents_of("a") == []
        assert manager.get_metrics().total_dependencies == 0

    def test_error_is_value_error(self, manager: DependencyManager) -> None:
        with pytest.raises(ValueError, match="Circular dependency"):
            manager.add_task("a", dependencies=["a"])

    def test_soft_back_edge_allowed(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a"])
        dep = manager.add_dependency("a", {"id": "b", "type": "soft"})
        assert dep is not None
        assert dep.type == DependencyType.SOFT
        assert manager.get_task("a").status.value == "ready"

    def test_long_chain_cycle_detected_without_recursion(self, manager: DependencyManager) -> None:
        manager.add_task("t0")
        for i in range(1, 1500):
            manager.add_task(f"t{i}", dependencies=[f"t{i - 1}"])
        with pytest.raises(CircularDependencyError):
            manager.add_dependency("t0", "t1499")


class TestAddDependency:
    def test_unknown_task_raises(self, manager: DependencyManager) -> None:
        with pytest.raises(TaskNotFoundError, match="Task nope not found"):
            manager.add_dependency("nope", "a")

    def test_duplicate_edge_returns_none(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a"])
        assert manager.add_dependency("b", "a") is None

    def test_new_hard_edge_blocks_ready_task(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b")
        assert manager.get_task("b").status.value == "ready"
        manager.add_dependency("b", "a")
        assert manager.get_task("b").status.value == "blocked"
        assert manager.get_task("b").depth == 1
        assert manager.get_metrics().total_dependencies == 1


# ---------------------------------------------------------------------------
# Depth and criticality
# ---------------------------------------------------------------------------

class TestMetrics:
    def test_chain_depth(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a"])
        manager.add_task("c", dependencies=["b"])
        assert [manager.get_task(t).depth for t in "abc"] == [0, 1, 2]

    def test_soft_edges_do_not_add_depth(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=[{"id": "a", "type": "soft"}])
        assert manager.get_task("b").depth == 0

    def test_depth_propagates_after_forward_reference(self, manager: DependencyManager) -> None:
        manager.add_task("c", dependencies=["b"])
        manager.add_task("b", dependencies=["a"])
        assert manager.get_task("c").depth == 2
        manager.add_task("a", dependencies=["root"])
        assert manager.get_task("b").depth == 2
        assert manager.get_task("c").depth == 3

    def test_criticality_formula(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        # priority 5 + (10 - depth 0) * 2
        assert manager.get_task("a").criticality_score == pytest.approx(25.0)

        manager.add_task("b", dependencies=["a"], estimated_duration=3, resource_requirements=["db"])
        # "a" gained one dependent
        assert manager.get_task("a").criticality_score == pytest.approx(35.0)
        expected_b = 5 + math.log(4) * 5 + (10 - 1) * 2 + 3
        assert manager.get_task("b").criticality_score == pytest.approx(expected_b)

    def test_depth_over_max_is_warning_only(self, make_manager) -> None:
        mgr = make_manager(max_depth=2)
        mgr.add_task("a")
        mgr.add_task("b", dependencies=["a"])
        mgr.add_task("c", dependencies=["b"])
        mgr.add_task("d", dependencies=["c"])
        assert mgr.get_task("d").depth == 3
        kinds = [r.type for r in mgr.get_status_report().recommendations]
        assert "depth_exceeded" in kinds
