"""Configuration models for Doc-Agent.

This module defines Pydantic models for every configuration section,
with defaults and validation.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from doc_agent.core.logging import LOG_LEVEL_MAP


class HistoryConfig(BaseModel):
    """Operation history configuration.

    Attributes:
        max_operations: Number of operations retained (oldest evicted first).
        storage_dir: Directory for history and recipe files. None keeps
            everything in memory.
    """

    model_config = ConfigDict(validate_assignment=True)

    max_operations: int = Field(default=50, ge=1)
    storage_dir: Path | None = None

    @field_validator("storage_dir")
    @classmethod
    def expand_storage_dir(cls, v: Path | None) -> Path | None:
        """Expand ``~`` in the storage directory."""
        return v.expanduser() if v is not None else None


class ExecutionConfig(BaseModel):
    """Plan execution configuration.

    Attributes:
        step_timeout: Per-step timeout in seconds; None disables it.
    """

    model_config = ConfigDict(validate_assignment=True)

    step_timeout: float | None = Field(default=None, gt=0)


class PlanningConfig(BaseModel):
    """Planning configuration.

    Attributes:
        min_minutes_per_step: Lower per-step duration estimate.
        max_minutes_per_step: Upper per-step duration estimate.
        max_plans: Plans kept available for apply.
    """

    model_config = ConfigDict(validate_assignment=True)

    min_minutes_per_step: float = Field(default=0.5, ge=0)
    max_minutes_per_step: float = Field(default=1.2, ge=0)
    max_plans: int = Field(default=100, ge=1)

    @model_validator(mode="after")
    def check_estimate_bounds(self) -> PlanningConfig:
        if self.min_minutes_per_step > self.max_minutes_per_step:
            raise ValueError("min_minutes_per_step cannot exceed max_minutes_per_step")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(validate_assignment=True)

    level: str = "WARNING"
    file: Path | None = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate that the level name is known."""
        level = v.strip().upper()
        if level not in LOG_LEVEL_MAP:
            valid = ", ".join(sorted(LOG_LEVEL_MAP))
            raise ValueError(f"Invalid log level '{v}', expected one of: {valid}")
        return level


class AgentConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(validate_assignment=True)

    history: HistoryConfig = Field(default_factory=HistoryConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
