"""Fault injection seam for step execution.

Tests register failures for specific step ids or step kinds; the
executor consults the injector before applying each step.

Example:
    faults = FaultInjector()
    faults.fail_step("step-2", "source table unavailable", retryable=True)
    executor = Executor(..., fault_injector=faults)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from doc_agent.core.errors import StepExecutionError

if TYPE_CHECKING:
    from doc_agent.planning.models import PlanStep


@dataclass
class _Fault:
    message: str
    retryable: bool
    remaining: int | None


class FaultInjector:
    """Registry of injected step failures."""

    def __init__(self) -> None:
        self._by_step: dict[str, _Fault] = {}
        self._by_kind: dict[str, _Fault] = {}
        self.triggered: list[str] = []

    def fail_step(
        self,
        step_id: str,
        message: str = "Injected failure",
        retryable: bool = True,
        times: int | None = None,
    ) -> None:
        """Fail the step with this id.

        Args:
            step_id: Step id to fail.
            message: Error message.
            retryable: Retry hint recorded on the failure.
            times: Number of times to fail; None means every time.
        """
        self._by_step[step_id] = _Fault(message, retryable, times)

    def fail_kind(
        self,
        kind: str,
        message: str = "Injected failure",
        retryable: bool = True,
        times: int | None = None,
    ) -> None:
        """Fail every step of the given kind."""
        self._by_kind[kind] = _Fault(message, retryable, times)

    def clear(self) -> None:
        self._by_step.clear()
        self._by_kind.clear()
        self.triggered.clear()

    def check(self, step: PlanStep) -> None:
        """Raise the injected failure for ``step``, if any.

        Raises:
            StepExecutionError: When a fault is registered for the step.
        """
        for registry, key in ((self._by_step, step.id), (self._by_kind, step.kind)):
            fault = registry.get(key)
            if fault is None:
                continue
            if fault.remaining is not None:
                fault.remaining -= 1
                if fault.remaining <= 0:
                    del registry[key]
            self.triggered.append(step.id)
            raise StepExecutionError(fault.message, retryable=fault.retryable)
