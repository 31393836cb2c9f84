"""Plan execution: results, operations and the executor."""

from doc_agent.execution.executor import Executor
from doc_agent.execution.faults import FaultInjector
from doc_agent.execution.models import (
    AgentOperation,
    ExecutionResult,
    ExecutionStatus,
    FailedStep,
    FailureCause,
)

__all__ = [
    "AgentOperation",
    "ExecutionResult",
    "ExecutionStatus",
    "Executor",
    "FailedStep",
    "FailureCause",
    "FaultInjector",
]
