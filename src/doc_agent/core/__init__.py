"""Core package containing errors, logging and shared helpers."""

from doc_agent.core.errors import (
    AlreadyRevertedError,
    ConfigError,
    DiffConflictError,
    DiffInversionError,
    DocAgentError,
    NotReversibleError,
    OperationNotFoundError,
    PlanNotFoundError,
    RecipeNotFoundError,
    ScopeNotFoundError,
    StepExecutionError,
    StepPreconditionError,
    StorageCorruptedError,
    StorageError,
    UndoError,
    UndoFailedError,
    UnknownStepError,
)
from doc_agent.core.logging import get_logger, setup_logging
from doc_agent.core.types import Clock, IdFactory, new_id, parse_timestamp, utc_now

__all__ = [
    "AlreadyRevertedError",
    "Clock",
    "ConfigError",
    "DiffConflictError",
    "DiffInversionError",
    "DocAgentError",
    "IdFactory",
    "NotReversibleError",
    "OperationNotFoundError",
    "PlanNotFoundError",
    "RecipeNotFoundError",
    "ScopeNotFoundError",
    "StepExecutionError",
    "StepPreconditionError",
    "StorageCorruptedError",
    "StorageError",
    "UndoError",
    "UndoFailedError",
    "UnknownStepError",
    "get_logger",
    "new_id",
    "parse_timestamp",
    "setup_logging",
    "utc_now",
]
