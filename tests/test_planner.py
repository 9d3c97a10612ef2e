"""Tests for execution planning: ordering, stages, critical path, contention."""

from __future__ import annotations

import pytest

from task_planner import DependencyManager
from task_planner.events import EngineEvent, PlanCalculated


@pytest.fixture
def diamond(manager: DependencyManager) -> DependencyManager:
    manager.add_task("design", estimated_duration=2)
    manager.add_task("backend", dependencies=["design"], estimated_duration=5)
    manager.add_task("frontend", dependencies=["design"], estimated_duration=3)
    manager.add_task("qa", dependencies=["backend", "frontend"], estimated_duration=1)
    return manager


class TestStages:
    def test_independent_tasks_share_first_stage(self, manager: DependencyManager) -> None:
        for tid in ("db-setup", "cache-setup", "queue-setup"):
            manager.add_task(tid)
        plan = manager.calculate_execution_plan()
        assert plan.stages[0] == ["db-setup", "cache-setup", "queue-setup"]
        assert plan.max_parallelism == 3

    def test_diamond_stages(self, diamond: DependencyManager) -> None:
        plan = diamond.calculate_execution_plan()
        assert plan.stages == [["design"], ["backend", "frontend"], ["qa"]]
        assert plan.total_tasks == 4

    def test_topological_order_respects_hard_edges(self, diamond: DependencyManager) -> None:
        order = diamond.calculate_execution_plan().topological_order
        position = {tid: i for i, tid in enumerate(order)}
        for task_id, dep in diamond.graph.edges():
            if dep.is_hard:
                assert position[dep.task_id] < position[task_id]

    def test_unknown_dependencies_ignored_in_order(self, manager: DependencyManager) -> None:
        manager.add_task("a", dependencies=["missing"])
        manager.add_task("b", dependencies=["a"])
        plan = manager.calculate_execution_plan()
        assert plan.topological_order == ["a", "b"]
        assert plan.stages == [["a"], ["b"]]

    def test_soft_edges_do_not_create_stages(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=[{"id": "a", "type": "soft"}])
        assert manager.calculate_execution_plan().stages == [["a", "b"]]

    def test_empty_plan(self, manager: DependencyManager) -> None:
        plan = manager.calculate_execution_plan()
        assert plan.stages == []
        assert plan.critical_path == []
        assert plan.estimated_duration == 0
        assert plan.max_parallelism == 0


class TestCriticalPath:
    def test_chain_duration(self, manager: DependencyManager) -> None:
        manager.add_task("A", estimated_duration=2)
        manager.add_task("B", dependencies=["A"], estimated_duration=3)
        manager.add_task("C", dependencies=["B"], estimated_duration=1)
        plan = manager.calculate_execution_plan()
        assert plan.critical_path == ["A", "B", "C"]
        assert plan.estimated_duration == 6

    def test_diamond_takes_longest_branch(self, diamond: DependencyManager) -> None:
        plan = diamond.calculate_execution_plan()
        assert plan.critical_path == ["design", "backend", "qa"]
        assert plan.estimated_duration == 8

    def test_missing_duration_counts_as_one(self, manager: DependencyManager) -> None:
        manager.add_task("a")
        manager.add_task("b", dependencies=["a"])
        plan = manager.calculate_execution_plan()
        assert plan.estimated_duration == 2

    def test_zero_duration_dependency_stays_on_path(self, manager: DependencyManager) -> None:
        manager.add_task("a", estimated_duration=0)
        manager.add_task("b", dependencies=["a"], estimated_duration=2)
        plan = manager.calculate_execution_plan()
        assert plan.critical_path == ["a", "b"]
        assert plan.estimated_duration == 2

    def test_single_zero_duration_task(self, manager: DependencyManager) -> None:
        manager.add_task("z", estimated_duration=0)
        plan = manager.calculate_execution_plan()
        assert plan.critical_path == ["z"]
        assert plan.estimated_duration == 0

    def test_ties_keep_first_inserted(self, manager: DependencyManager) -> None:
        manager.add_task("left")
        manager.add_task("right")
        plan = manager.calculate_execution_plan()
        assert plan.critical_path == ["left"]
        assert plan.estimated_duration == 1


class TestReadyTasks:
    def test_sorted_by_priority_and_criticality(self, manager: DependencyManager) -> None:
        manager.add_task("low", priority=1)
        manager.add_task("high", priority=9)
        manager.add_task("mid", priority=5)
        manager.add_task("child", dependencies=["low"])
        # "low" gained a dependent, which lifts it above "mid"
        assert manager.get_ready_tasks() == ["high", "low", "mid"]

    def test_ties_keep_insertion_order(self, manager: DependencyManager) -> None:
        for tid in ("x", "y", "z"):
            manager.add_task(tid)
        assert manager.get_ready_tasks() == ["x", "y", "z"]


class TestParallelization:
    def test_groups_by_identical_dependency_set(self, diamond: DependencyManager) -> None:
        diamond.add_task("docs", dependencies=["design"])
        plan = diamond.calculate_execution_plan()
        assert ["backend", "frontend", "docs"] in plan.parallelization_opportunities

    def test_singletons_not_reported(self, diamond: DependencyManager) -> None:
        plan = diamond.calculate_execution_plan()
        assert plan.parallelization_opportunities == [["backend", "frontend"]]


class TestResourceConflicts:
    def test_parallel_tasks_sharing_resource(self, manager: DependencyManager) -> None:
        manager.add_task("migrate", resource_requirements=["db"])
        manager.add_task("seed", resource_requirements=["db"])
        conflicts = manager.calculate_execution_plan().resource_conflicts
        assert len(conflicts) == 1
        assert conflicts[0].resource == "db"
        assert conflicts[0].tasks == ["migrate", "seed"]
        assert conflicts[0].pairs == [("migrate", "seed")]
        assert conflicts[0].type == "resource_contention"

    def test_ordered_tasks_do_not_conflict(self, manager: DependencyManager) -> None:
        manager.add_task("migrate", resource_requirements=["db"])
        manager.add_task("seed", dependencies=["migrate"], resource_requirements=["db"])
        assert manager.calculate_execution_plan().resource_conflicts == []

    def test_transitive_ancestor_does_not_conflict(self, manager: DependencyManager) -> None:
        manager.add_task("a", resource_requirements=["db"])
        manager.add_task("b", dependencies=["a"])
        manager.add_task("c", dependencies=["b"], resource_requirements=["db"])
        assert manager.calculate_execution_plan().resource_conflicts == []

    def test_conflict_count_in_metrics(self, manager: DependencyManager) -> None:
        manager.add_task("a", resource_requirements=["db", "cache"])
        manager.add_task("b", resource_requirements=["db", "cache"])
        manager.calculate_execution_plan()
        assert manager.get_metrics().conflicts_detected == 2


class TestPlanEvents:
    def test_plan_calculated_emitted(self, manager: DependencyManager, events: list[EngineEvent]) -> None:
        manager.add_task("a")
        plan = manager.calculate_execution_plan()
        emitted = [e for e in events if isinstance(e, PlanCalculated)]
        assert len(emitted) == 1
        assert emitted[0].plan is plan

    def test_auto_planning_recalculates_on_add(self, make_manager) -> None:
        mgr = make_manager(auto_planning=True)
        received: list[EngineEvent] = []
        mgr.bus.subscribe(PlanCalculated, received.append)
        mgr.add_task("a")
        mgr.add_task("b", dependencies=["a"])
        assert len(received) == 2
        assert mgr.execution_plan is not None
        assert mgr.execution_plan.stages == [["a"], ["b"]]

    def test_plan_to_dict(self, manager: DependencyManager) -> None:
        manager.add_task("a", resource_requirements=["db"])
        manager.add_task("b", resource_requirements=["db"])
        data = manager.calculate_execution_plan().to_dict()
        assert data["resource_conflicts"][0]["pairs"] == [["a", "b"]]
        assert data["stages"] == [["a", "b"]]
