"""Plan execution engine.

The Executor applies an accepted subset of a plan's steps in plan order,
collects per-step outcomes into an ExecutionResult and persists an
AgentOperation before returning.

Failure handling:
- A failing step is recorded and execution continues with the next step.
- A step whose dependency did not complete fails as DependencyFailed
  (never retryable).
- If the call is cancelled, or persisting the operation fails, every
  diff already applied is rolled back and nothing is persisted.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from typing import TYPE_CHECKING

from doc_agent.core.errors import (
    DiffConflictError,
    StepExecutionError,
    StepPreconditionError,
    StorageError,
    UnknownStepError,
)
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, IdFactory, new_id, utc_now
from doc_agent.diff.models import DiffItem, invert_diffs
from doc_agent.document.base import DiffApplier

from .models import AgentOperation, ExecutionResult, FailedStep, FailureCause

if TYPE_CHECKING:
    from doc_agent.document.base import DocumentSnapshot
    from doc_agent.planning.models import Plan, PlanStep
    from doc_agent.planning.planner import PlanRegistry
    from doc_agent.storage.operations import OperationStore

    from .faults import FaultInjector

logger = get_logger("execution.executor")


class Executor:
    """Applies plans to the live document.

    Attributes:
        registry: Plans available for execution.
        store: Where operations are persisted.
        step_timeout: Optional per-step timeout in seconds.
    """

    def __init__(
        self,
        registry: PlanRegistry,
        store: OperationStore,
        document: DocumentSnapshot,
        applier: DiffApplier | None = None,
        lock: asyncio.Lock | None = None,
        fault_injector: FaultInjector | None = None,
        step_timeout: float | None = None,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the executor.

        Args:
            registry: Plan registry shared with the planner.
            store: Operation store.
            document: Live document; steps are re-validated against it.
            applier: Mutation seam. Defaults to ``document`` when it is
                also a DiffApplier.
            lock: Single-writer lock shared with the undo manager.
            fault_injector: Optional test seam for step failures.
            step_timeout: Per-step timeout in seconds.
            id_factory: Generates operation ids.
            clock: Timestamp source.
        """
        if applier is None:
            if not isinstance(document, DiffApplier):
                raise TypeError("An applier is required when the document is read-only")
            applier = document

        self.registry = registry
        self.store = store
        self.step_timeout = step_timeout
        self._document = document
        self._applier = applier
        self._lock = lock or asyncio.Lock()
        self._faults = fault_injector
        self._id_factory = id_factory
        self._clock = clock

    async def apply_plan(
        self,
        plan_id: str,
        accepted_step_ids: Iterable[str] | None = None,
    ) -> tuple[ExecutionResult, AgentOperation]:
        """Apply the accepted steps of a plan.

        Args:
            plan_id: Id of a registered plan.
            accepted_step_ids: Steps to apply. None accepts every step.

        Returns:
            Tuple of (result, persisted operation).

        Raises:
            PlanNotFoundError: If the plan is not registered.
            UnknownStepError: If an accepted id is not a step of the plan.
            StorageError: If the operation could not be persisted.
        """
        command, plan = self.registry.get(plan_id)
        accepted = self._validate_accepted(plan, accepted_step_ids)

        async with self._lock:
            applied: list[DiffItem] = []
            operation: AgentOperation | None = None
            try:
                result = await self._execute(plan, accepted, applied)
                now = self._clock()
                operation = AgentOperation(
                    id=self._id_factory(),
                    command=command,
                    plan=plan,
                    result=result,
                    reversible=plan.reversible,
                    created_at=now,
                    applied_at=now,
                )
                await self.store.put(operation)
            except BaseException:
                await self._rollback(applied)
                if operation is not None:
                    await self._forget(operation)
                raise

        logger.info(
            f"Applied plan {plan.id}: {result.status.value} "
            f"({len(result.completed_steps)} completed, {len(result.failed_steps)} failed), "
            f"operation {operation.id}"
        )
        return result, operation

    def _validate_accepted(self, plan: Plan, accepted_step_ids: Iterable[str] | None) -> set[str]:
        if accepted_step_ids is None:
            return set(plan.step_ids)
        accepted = list(dict.fromkeys(accepted_step_ids))
        unknown = [sid for sid in accepted if plan.get_step(sid) is None]
        if unknown:
            raise UnknownStepError(plan.id, unknown)
        return set(accepted)

    async def _execute(
        self,
        plan: Plan,
        accepted: set[str],
        applied: list[DiffItem],
    ) -> ExecutionResult:
        start = time.monotonic()
        completed: list[str] = []
        failed: list[FailedStep] = []

        for step in plan.steps:
            if step.id not in accepted:
                continue

            missing = [dep for dep in step.depends_on if dep not in completed]
            if missing:
                failed.append(
                    FailedStep(
                        step_id=step.id,
                        error=f"Depends on {', '.join(missing)}, which did not complete",
                        retryable=False,
                        cause=FailureCause.DEPENDENCY_FAILED,
                    )
                )
                logger.warning(f"Step {step.id} skipped: dependency {', '.join(missing)} did not complete")
                continue

            try:
                if self.step_timeout is not None:
                    diffs = await asyncio.wait_for(self._run_step(step), self.step_timeout)
                else:
                    diffs = await self._run_step(step)
            except StepExecutionError as e:
                failed.append(FailedStep(step.id, str(e), retryable=e.retryable))
                logger.warning(f"Step {step.id} failed: {e}")
                continue
            except TimeoutError:
                failed.append(
                    FailedStep(
                        step.id,
                        f"Timed out after {self.step_timeout}s",
                        retryable=True,
                        cause=FailureCause.TIMEOUT,
                    )
                )
                logger.warning(f"Step {step.id} timed out")
                continue
            except Exception as e:
                failed.append(FailedStep(step.id, f"Unexpected error: {e}", retryable=False))
                logger.error(f"Unexpected error executing step {step.id}: {e}")
                continue

            applied.extend(diffs)
            completed.append(step.id)
            logger.debug(f"Step {step.id} applied ({len(diffs)} diff(s))")

        duration_ms = int((time.monotonic() - start) * 1000)
        return ExecutionResult.build(
            plan_id=plan.id,
            completed_steps=completed,
            failed_steps=failed,
            diffs=list(applied),
            applied_at=self._clock(),
            duration_ms=duration_ms,
        )

    async def _run_step(self, step: PlanStep) -> list[DiffItem]:
        if self._faults is not None:
            self._faults.check(step)

        try:
            diffs = step.preview(self._document)
        except StepPreconditionError as e:
            raise StepExecutionError(f"Precondition failed: {e}", retryable=False) from e

        try:
            await self._applier.apply(diffs)
        except DiffConflictError as e:
            raise StepExecutionError(str(e), retryable=False) from e
        return diffs

    async def _forget(self, operation: AgentOperation) -> None:
        try:
            await self.store.discard(operation.id)
        except StorageError as e:
            logger.error(f"Could not remove operation {operation.id} after a failed apply: {e}")

    async def _rollback(self, applied: list[DiffItem]) -> None:
        if not applied:
            return
        try:
            await self._applier.apply(invert_diffs(applied))
            logger.warning(f"Rolled back {len(applied)} applied diff(s)")
        except Exception as e:
            logger.error(f"Rollback failed, document may be inconsistent: {e}")
