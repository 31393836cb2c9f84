"""Command planning.

This module turns a command and its scope into a reviewable Plan by
delegating interpretation to a CommandInterpreter. The planner's own
work (id assignment, precondition checks, preview diffs, warning and
requirement aggregation, time estimate) is deterministic for identical
interpreter output and never touches the live document: previews are
computed step by step on a scratch copy so later steps see the effect
of earlier ones.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from dataclasses import replace
from typing import TYPE_CHECKING

from doc_agent.core.errors import DiffConflictError, PlanNotFoundError, ScopeNotFoundError, StepPreconditionError
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, IdFactory, new_id, utc_now
from doc_agent.document.memory import InMemoryDocument

from .models import Command, Plan, PlanResult, PlanStep, Scope, TimeEstimate

if TYPE_CHECKING:
    from doc_agent.diff.models import DiffItem
    from doc_agent.document.base import DocumentSnapshot

    from .interpreter import CommandInterpreter

logger = get_logger("planning.planner")

NO_STEPS_WARNING = "The command did not map to any editing step"


def estimate_time(
    step_count: int,
    min_minutes_per_step: float = 0.5,
    max_minutes_per_step: float = 1.2,
) -> TimeEstimate:
    """Step-count-scaled duration range.

    Args:
        step_count: Number of steps in the plan.
        min_minutes_per_step: Lower bound per step.
        max_minutes_per_step: Upper bound per step.

    Returns:
        TimeEstimate rounded up to whole minutes.
    """
    return TimeEstimate(
        math.ceil(step_count * min_minutes_per_step),
        math.ceil(step_count * max_minutes_per_step),
    )


class PlanRegistry:
    """Keeps recently built plans so they can be applied by id.

    Holds at most ``max_plans`` entries; the oldest is dropped first.
    """

    def __init__(self, max_plans: int = 100) -> None:
        self._max_plans = max_plans
        self._plans: OrderedDict[str, tuple[Command, Plan]] = OrderedDict()

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._plans

    def __len__(self) -> int:
        return len(self._plans)

    def register(self, command: Command, plan: Plan) -> None:
        self._plans[plan.id] = (command, plan)
        while len(self._plans) > self._max_plans:
            evicted, _ = self._plans.popitem(last=False)
            logger.debug(f"Dropped plan {evicted} from registry")

    def get(self, plan_id: str) -> tuple[Command, Plan]:
        """Look up a plan and its command.

        Raises:
            PlanNotFoundError: If the plan is unknown.
        """
        try:
            return self._plans[plan_id]
        except KeyError:
            raise PlanNotFoundError(plan_id) from None

    def discard(self, plan_id: str) -> bool:
        return self._plans.pop(plan_id, None) is not None


class Planner:
    """Builds plans from text commands.

    Attributes:
        interpreter: The command interpreter steps come from.
        registry: Where built plans are registered for later execution.
    """

    def __init__(
        self,
        interpreter: CommandInterpreter,
        registry: PlanRegistry | None = None,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
        min_minutes_per_step: float = 0.5,
        max_minutes_per_step: float = 1.2,
    ) -> None:
        """Initialize the planner.

        Args:
            interpreter: Command interpreter to delegate to.
            registry: Plan registry. A private one is created if None.
            id_factory: Generates command and plan ids.
            clock: Timestamp source.
            min_minutes_per_step: Lower per-step time estimate.
            max_minutes_per_step: Upper per-step time estimate.
        """
        self.interpreter = interpreter
        self.registry = registry if registry is not None else PlanRegistry()
        self._id_factory = id_factory
        self._clock = clock
        self._min_minutes = min_minutes_per_step
        self._max_minutes = max_minutes_per_step

    async def plan_command(
        self,
        text: str,
        scope: Scope,
        snapshot: DocumentSnapshot,
    ) -> PlanResult:
        """Plan a text command against a document snapshot.

        Args:
            text: Non-empty command text.
            scope: Target scope; must resolve against ``snapshot``.
            snapshot: Read-only document view.

        Returns:
            PlanResult with the plan and its preview diffs.

        Raises:
            ValueError: If the command text is empty.
            ScopeNotFoundError: If the scope does not resolve.
        """
        command = Command(
            text=text,
            scope=scope,
            id=self._id_factory(),
            created_at=self._clock(),
        )
        return await self.plan(command, snapshot)

    async def plan(self, command: Command, snapshot: DocumentSnapshot) -> PlanResult:
        """Plan an already constructed command."""
        if snapshot.resolve(command.scope) is None:
            raise ScopeNotFoundError(command.scope)

        raw_steps = await self.interpreter.interpret(command.text, command.scope, snapshot)
        steps, previews, warnings, requirements = self._compose(raw_steps, snapshot)

        if not raw_steps:
            warnings.insert(0, NO_STEPS_WARNING)

        plan = Plan(
            id=self._id_factory(),
            command_id=command.id,
            scope=command.scope,
            steps=tuple(steps),
            warnings=tuple(warnings),
            requirements=tuple(requirements),
            estimated_time=estimate_time(len(steps), self._min_minutes, self._max_minutes),
            created_at=self._clock(),
        )
        self.registry.register(command, plan)

        logger.info(
            f"Planned {len(steps)} step(s) for command {command.id} "
            f"({len(warnings)} warning(s), requires: {', '.join(requirements) or 'nothing'})"
        )
        return PlanResult(command=command, plan=plan, preview_diffs=tuple(previews))

    def _compose(
        self,
        raw_steps: list[PlanStep],
        snapshot: DocumentSnapshot,
    ) -> tuple[list[PlanStep], list[DiffItem], list[str], list[str]]:
        scratch = InMemoryDocument.copy_of(snapshot)
        kept: list[PlanStep] = []
        kept_ids: set[str] = set()
        previews: list[DiffItem] = []
        warnings: list[str] = []
        requirements: list[str] = []

        def require(token: str | None) -> None:
            if token and token not in requirements:
                requirements.append(token)

        for position, step in enumerate(raw_steps, start=1):
            if not isinstance(step, PlanStep):
                raise TypeError(f"Interpreter returned a non-step value: {step!r}")
            if not step.id:
                step = replace(step, id=f"step-{position}")
            label = step.description or step.kind

            blocked = [dep for dep in step.depends_on if dep not in kept_ids]
            if blocked:
                warnings.append(f"Skipped '{label}': depends on {', '.join(blocked)}, which could not be planned")
                continue

            unmet = step.unmet_requirements(scratch)
            if unmet:
                for item in unmet:
                    warnings.append(f"Skipped '{label}': {item.message}")
                    require(item.requirement.value)
                continue

            try:
                diffs = step.preview(scratch)
                scratch.apply_now(diffs)
            except StepPreconditionError as e:
                warnings.append(f"Skipped '{label}': {e}")
                require(e.requirement)
                continue
            except DiffConflictError as e:
                warnings.append(f"Skipped '{label}': {e}")
                continue

            kept.append(step)
            kept_ids.add(step.id)
            previews.extend(diffs)

        return kept, previews, warnings, requirements
