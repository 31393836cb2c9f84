"""Configuration models and loading."""

from doc_agent.config.loader import ConfigLoader
from doc_agent.config.models import (
    AgentConfig,
    ExecutionConfig,
    HistoryConfig,
    LoggingConfig,
    PlanningConfig,
)
from doc_agent.config.sources import EnvironmentSource, JsonFileSource, YamlFileSource

__all__ = [
    "AgentConfig",
    "ConfigLoader",
    "EnvironmentSource",
    "ExecutionConfig",
    "HistoryConfig",
    "JsonFileSource",
    "LoggingConfig",
    "PlanningConfig",
    "YamlFileSource",
]
