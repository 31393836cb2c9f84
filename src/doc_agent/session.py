"""Agent session: one document, its history and its recipes.

AgentSession wires the planner, executor, undo manager, stores and
audit exporter together around a single live document. Executor and
undo manager share one lock, so at most one mutation runs at a time.

Example:
    document = InMemoryDocument.from_sections([...])
    async with AgentSession(document) as session:
        planned = await session.plan_command("Split section 2 into 2.1 and 2.2")
        result, operation = await session.apply_plan(planned.plan.id)
        await session.undo(operation.id)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from doc_agent.audit.exporter import AuditExporter, HistoryEntry
from doc_agent.config.loader import ConfigLoader
from doc_agent.config.models import AgentConfig
from doc_agent.core.errors import RecipeNotFoundError
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, IdFactory, new_id, utc_now
from doc_agent.document.base import DiffApplier
from doc_agent.document.memory import InMemoryDocument
from doc_agent.execution.executor import Executor
from doc_agent.planning.interpreter import KeywordInterpreter
from doc_agent.planning.models import Scope
from doc_agent.planning.planner import Planner, PlanRegistry
from doc_agent.storage.backend import JsonFileStore, KeyValueStore, MemoryStore
from doc_agent.storage.operations import OperationStore
from doc_agent.storage.recipes import AgentRecipe, RecipeStore
from doc_agent.undo.manager import UndoManager, UndoResult

if TYPE_CHECKING:
    from doc_agent.document.base import DocumentSnapshot
    from doc_agent.execution.faults import FaultInjector
    from doc_agent.execution.models import AgentOperation, ExecutionResult
    from doc_agent.planning.interpreter import CommandInterpreter
    from doc_agent.planning.models import PlanResult

logger = get_logger("session")


def open_backend(config: AgentConfig) -> KeyValueStore:
    """Storage backend selected by the history configuration."""
    if config.history.storage_dir is None:
        return MemoryStore()
    return JsonFileStore(config.history.storage_dir)


class AgentSession:
    """Facade over planning, execution, undo and history.

    Attributes:
        document: The live document.
        config: Active configuration.
        planner: Builds plans from commands.
        executor: Applies plans.
        undo_manager: Reverts operations.
        operations: Operation history.
        recipes: Saved command templates.
        exporter: Audit exporter over the history.
    """

    def __init__(
        self,
        document: DocumentSnapshot,
        applier: DiffApplier | None = None,
        interpreter: CommandInterpreter | None = None,
        config: AgentConfig | None = None,
        backend: KeyValueStore | None = None,
        fault_injector: FaultInjector | None = None,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the session.

        Args:
            document: Live document.
            applier: Mutation seam. Defaults to ``document``.
            interpreter: Command interpreter. Defaults to KeywordInterpreter.
            config: Configuration. Defaults to AgentConfig().
            backend: Storage backend. Selected from config if None.
            fault_injector: Optional test seam for step failures.
            id_factory: Generates ids for commands, plans and operations.
            clock: Timestamp source.
        """
        if applier is None:
            if not isinstance(document, DiffApplier):
                raise TypeError("An applier is required when the document is read-only")
            applier = document

        self.config = config or AgentConfig()
        self.document = document
        backend = backend if backend is not None else open_backend(self.config)

        self._lock = asyncio.Lock()
        self.operations = OperationStore(backend, max_entries=self.config.history.max_operations)
        self.recipes = RecipeStore(backend, id_factory=id_factory, clock=clock)
        self.planner = Planner(
            interpreter or KeywordInterpreter(),
            registry=PlanRegistry(self.config.planning.max_plans),
            id_factory=id_factory,
            clock=clock,
            min_minutes_per_step=self.config.planning.min_minutes_per_step,
            max_minutes_per_step=self.config.planning.max_minutes_per_step,
        )
        self.executor = Executor(
            self.planner.registry,
            self.operations,
            document,
            applier=applier,
            lock=self._lock,
            fault_injector=fault_injector,
            step_timeout=self.config.execution.step_timeout,
            id_factory=id_factory,
            clock=clock,
        )
        self.undo_manager = UndoManager(
            self.operations,
            applier,
            lock=self._lock,
            clock=clock,
        )
        self.exporter = AuditExporter(self.operations, clock=clock)

    @classmethod
    def from_config(
        cls,
        document: DocumentSnapshot,
        config: AgentConfig | None = None,
        loader: ConfigLoader | None = None,
        **kwargs: Any,
    ) -> AgentSession:
        """Create a session from configuration.

        Args:
            document: Live document.
            config: Explicit configuration. Loaded with ``loader`` if None.
            loader: Config loader. A default ConfigLoader is used if None.
            **kwargs: Passed through to the constructor.

        Raises:
            ConfigError: If configuration cannot be loaded.
        """
        if config is None:
            config = (loader or ConfigLoader()).config
        return cls(document, config=config, **kwargs)

    async def __aenter__(self) -> AgentSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.operations.close()
        self.recipes.close()

    def _snapshot(self) -> DocumentSnapshot:
        if isinstance(self.document, InMemoryDocument):
            return self.document.snapshot()
        return self.document

    async def plan_command(self, text: str, scope: Scope | None = None) -> PlanResult:
        """Plan a command against the current document.

        Args:
            text: Command text.
            scope: Target scope. Defaults to the whole document.
        """
        return await self.planner.plan_command(text, scope or Scope.document(), self._snapshot())

    async def apply_plan(
        self,
        plan_id: str,
        accepted_step_ids: Iterable[str] | None = None,
    ) -> tuple[ExecutionResult, AgentOperation]:
        return await self.executor.apply_plan(plan_id, accepted_step_ids)

    async def undo(self, operation_id: str) -> UndoResult:
        return await self.undo_manager.undo(operation_id)

    async def history(self) -> list[HistoryEntry]:
        return await self.exporter.history()

    async def export_audit(self) -> str:
        return await self.exporter.export()

    async def clear_history(self) -> int:
        """Drop the whole operation history.

        Operations cleared this way can no longer be undone.
        """
        async with self._lock:
            return await self.operations.clear()

    async def save_recipe_from_plan(
        self,
        plan_id: str,
        name: str | None = None,
        description: str = "",
    ) -> AgentRecipe:
        """Save the command behind a plan as a recipe.

        Tags are the step families the plan touches, in plan order.

        Raises:
            PlanNotFoundError: If the plan is not registered.
        """
        command, plan = self.planner.registry.get(plan_id)
        tags = list(dict.fromkeys(step.family for step in plan.steps))
        return await self.recipes.save(command.text, name=name, description=description, tags=tags)

    async def plan_recipe(self, recipe_id: str, scope: Scope | None = None) -> PlanResult:
        """Plan a saved recipe and count the use.

        Raises:
            RecipeNotFoundError: If no recipe has that id.
        """
        recipe = await self.recipes.get(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(recipe_id)
        result = await self.plan_command(recipe.template, scope)
        await self.recipes.record_usage(recipe_id)
        logger.info(f"Planned recipe {recipe.name} ({recipe_id})")
        return result
