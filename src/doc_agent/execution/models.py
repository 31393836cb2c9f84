"""Execution data models.

This module provides the records produced when a plan is applied:
- FailedStep: one step that did not apply, with cause and retry hint
- ExecutionResult: outcome of applying an accepted subset of steps
- AgentOperation: audit record binding command, plan and result

Status classification:

    failed steps empty                        -> success
    completed empty and failed non-empty      -> failed
    otherwise                                 -> partial
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from doc_agent.core.errors import AlreadyRevertedError
from doc_agent.core.types import new_id, parse_timestamp, utc_now
from doc_agent.diff.models import DiffItem
from doc_agent.planning.models import Command, Plan


class ExecutionStatus(str, Enum):
    """Overall outcome of an apply call."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def classify(cls, completed: int, failed: int) -> ExecutionStatus:
        """Classify from the number of completed and failed steps."""
        if failed == 0:
            return cls.SUCCESS
        if completed == 0:
            return cls.FAILED
        return cls.PARTIAL


class FailureCause(str, Enum):
    """Why a step failed."""

    STEP_ERROR = "stepExecutionError"
    DEPENDENCY_FAILED = "dependencyFailed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class FailedStep:
    """A step that did not apply.

    Attributes:
        step_id: Id of the failed step.
        error: Human-readable reason.
        retryable: Whether resubmission without document changes could succeed.
        cause: Failure category.
    """

    step_id: str
    error: str
    retryable: bool = False
    cause: FailureCause = FailureCause.STEP_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepId": self.step_id,
            "error": self.error,
            "retryable": self.retryable,
            "cause": self.cause.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FailedStep:
        return cls(
            step_id=data["stepId"],
            error=data.get("error", ""),
            retryable=data.get("retryable", False),
            cause=FailureCause(data.get("cause", FailureCause.STEP_ERROR.value)),
        )


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of applying a subset of a plan's steps.

    Attributes:
        plan_id: Plan the steps belong to.
        status: success, partial or failed.
        completed_steps: Ids of applied steps, in plan order.
        failed_steps: Steps that did not apply, in plan order.
        diffs: Diffs actually applied, in application order.
        applied_at: When execution finished.
        duration_ms: Wall-clock execution time in milliseconds.
    """

    plan_id: str
    status: ExecutionStatus
    completed_steps: tuple[str, ...] = ()
    failed_steps: tuple[FailedStep, ...] = ()
    diffs: tuple[DiffItem, ...] = ()
    applied_at: datetime = field(default_factory=utc_now)
    duration_ms: int = 0

    def __post_init__(self) -> None:
        """Check the completed/failed partition and the status."""
        overlap = set(self.completed_steps) & set(self.failed_step_ids)
        if overlap:
            raise ValueError(f"Steps both completed and failed: {sorted(overlap)}")
        expected = ExecutionStatus.classify(len(self.completed_steps), len(self.failed_steps))
        if self.status is not expected:
            raise ValueError(f"Status {self.status.value} does not match outcome ({expected.value})")

    @classmethod
    def build(
        cls,
        plan_id: str,
        completed_steps: list[str],
        failed_steps: list[FailedStep],
        diffs: list[DiffItem],
        applied_at: datetime,
        duration_ms: int,
    ) -> ExecutionResult:
        """Create a result, deriving the status from the outcome."""
        return cls(
            plan_id=plan_id,
            status=ExecutionStatus.classify(len(completed_steps), len(failed_steps)),
            completed_steps=tuple(completed_steps),
            failed_steps=tuple(failed_steps),
            diffs=tuple(diffs),
            applied_at=applied_at,
            duration_ms=duration_ms,
        )

    @property
    def failed_step_ids(self) -> list[str]:
        return [f.step_id for f in self.failed_steps]

    @property
    def retryable_step_ids(self) -> list[str]:
        return [f.step_id for f in self.failed_steps if f.retryable]

    def to_dict(self) -> dict[str, Any]:
        return {
            "planId": self.plan_id,
            "status": self.status.value,
            "completedSteps": list(self.completed_steps),
            "failedSteps": [f.to_dict() for f in self.failed_steps],
            "diffs": [d.to_dict() for d in self.diffs],
            "appliedAt": self.applied_at.isoformat(),
            "duration": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionResult:
        return cls(
            plan_id=data["planId"],
            status=ExecutionStatus(data["status"]),
            completed_steps=tuple(data.get("completedSteps", [])),
            failed_steps=tuple(FailedStep.from_dict(f) for f in data.get("failedSteps", [])),
            diffs=tuple(DiffItem.from_dict(d) for d in data.get("diffs", [])),
            applied_at=parse_timestamp(data.get("appliedAt")) or utc_now(),
            duration_ms=data.get("duration", 0),
        )


@dataclass(frozen=True)
class AgentOperation:
    """Audit record of one apply call.

    Immutable except for ``reverted_at``, which is set exactly once
    through mark_reverted().
    """

    command: Command
    plan: Plan
    result: ExecutionResult
    reversible: bool
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    applied_at: datetime | None = None
    reverted_at: datetime | None = None

    @property
    def is_reverted(self) -> bool:
        return self.reverted_at is not None

    @property
    def status(self) -> ExecutionStatus:
        return self.result.status

    def mark_reverted(self, when: datetime) -> AgentOperation:
        """Return a copy with ``reverted_at`` set.

        Raises:
            AlreadyRevertedError: If the operation was already reverted.
        """
        if self.reverted_at is not None:
            raise AlreadyRevertedError(self.id)
        return replace(self, reverted_at=when)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "commandId": self.command.id,
            "planId": self.plan.id,
            "command": self.command.to_dict(),
            "plan": self.plan.to_dict(),
            "result": self.result.to_dict(),
            "reversible": self.reversible,
            "createdAt": self.created_at.isoformat(),
            "appliedAt": self.applied_at.isoformat() if self.applied_at else None,
            "revertedAt": self.reverted_at.isoformat() if self.reverted_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentOperation:
        return cls(
            id=data["id"],
            command=Command.from_dict(data["command"]),
            plan=Plan.from_dict(data["plan"]),
            result=ExecutionResult.from_dict(data["result"]),
            reversible=data.get("reversible", False),
            created_at=parse_timestamp(data.get("createdAt")) or utc_now(),
            applied_at=parse_timestamp(data.get("appliedAt")),
            reverted_at=parse_timestamp(data.get("revertedAt")),
        )
