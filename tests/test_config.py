"""Tests for planner configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from task_planner import ConfigError, FailurePolicy, PlannerConfig, load_planner_config


def _write_config(project_dir: Path, text: str) -> Path:
    state_dir = project_dir / ".task_planner"
    state_dir.mkdir(parents=True, exist_ok=True)
    path = state_dir / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestPlannerConfig:
    def test_defaults(self) -> None:
        config = PlannerConfig()
        assert config.max_depth == 10
        assert config.auto_planning is False
        assert config.failure_policy == FailurePolicy.BLOCK
        assert config.knowledge_weight == pytest.approx(0.8)
        assert config.event_history_limit == 500

    def test_from_mapping_rejects_bad_values(self) -> None:
        with pytest.raises(ConfigError, match="Invalid planner config"):
            PlannerConfig.from_mapping({"max_depth": 0})

    def test_from_mapping_rejects_unknown_policy(self) -> None:
        with pytest.raises(ConfigError):
            PlannerConfig.from_mapping({"failure_policy": "retry"})

    def test_from_mapping_none(self) -> None:
        assert PlannerConfig.from_mapping(None) == PlannerConfig()


class TestLoadPlannerConfig:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config, err = load_planner_config(tmp_path)
        assert err is None
        assert config == PlannerConfig()

    def test_reads_planner_block(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            "planner:\n"
            "  max_depth: 4\n"
            "  auto_planning: true\n"
            "  failure_policy: skip\n"
            "other_tool:\n"
            "  verbose: true\n",
        )
        config, err = load_planner_config(tmp_path)
        assert err is None
        assert config.max_depth == 4
        assert config.auto_planning is True
        assert config.failure_policy == FailurePolicy.SKIP

    def test_file_without_planner_block(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "other_tool:\n  verbose: true\n")
        config, err = load_planner_config(tmp_path)
        assert err is None
        assert config == PlannerConfig()

    def test_invalid_yaml_reports_error(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "planner: [unclosed\n")
        config, err = load_planner_config(tmp_path)
        assert config == PlannerConfig()
        assert err is not None
        assert "YAMLError" in err

    def test_invalid_values_report_error(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "planner:\n  knowledge_weight: -1\n")
        config, err = load_planner_config(tmp_path)
        assert config == PlannerConfig()
        assert err is not None
        assert "knowledge_weight" in err

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "- just\n- a list\n")
        config, err = load_planner_config(tmp_path)
        assert config == PlannerConfig()
        assert err == "config.yaml: expected object, got list"
