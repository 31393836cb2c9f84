"""Tests for configuration models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from doc_agent.config.models import (
    AgentConfig,
    ExecutionConfig,
    HistoryConfig,
    LoggingConfig,
    PlanningConfig,
)


class TestHistoryConfig:
    """Tests for HistoryConfig."""

    def test_defaults(self) -> None:
        config = HistoryConfig()
        assert config.max_operations == 50
        assert config.storage_dir is None

    def test_bound_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            HistoryConfig(max_operations=0)

    def test_string_bound_coerced(self) -> None:
        assert HistoryConfig(max_operations="20").max_operations == 20  # type: ignore[arg-type]

    def test_storage_dir_expands_home(self, temp_home: Path) -> None:
        config = HistoryConfig(storage_dir="~/agent-data")  # type: ignore[arg-type]
        assert config.storage_dir == temp_home / "agent-data"

    def test_validate_assignment(self) -> None:
        config = HistoryConfig()
        with pytest.raises(ValidationError):
            config.max_operations = -1


class TestExecutionConfig:
    def test_timeout_disabled_by_default(self) -> None:
        assert ExecutionConfig().step_timeout is None

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ExecutionConfig(step_timeout=0)


class TestPlanningConfig:
    def test_defaults(self) -> None:
        config = PlanningConfig()
        assert (config.min_minutes_per_step, config.max_minutes_per_step) == (0.5, 1.2)
        assert config.max_plans == 100

    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PlanningConfig(min_minutes_per_step=3, max_minutes_per_step=2)


class TestLoggingConfig:
    def test_level_normalized(self) -> None:
        assert LoggingConfig(level=" debug ").level == "DEBUG"

    def test_unknown_level(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            LoggingConfig(level="LOUD")


class TestAgentConfig:
    def test_sections(self) -> None:
        config = AgentConfig()
        assert isinstance(config.history, HistoryConfig)
        assert isinstance(config.execution, ExecutionConfig)
        assert isinstance(config.planning, PlanningConfig)
        assert config.logging.level == "WARNING"

    def test_from_nested_dict(self) -> None:
        config = AgentConfig.model_validate({"history": {"max_operations": 5}, "logging": {"level": "info"}})
        assert config.history.max_operations == 5
        assert config.logging.level == "INFO"
