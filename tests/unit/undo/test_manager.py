"""Tests for the undo manager."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest

from doc_agent.core.errors import (
    AlreadyRevertedError,
    NotReversibleError,
    OperationNotFoundError,
    StorageError,
    UndoFailedError,
)
from doc_agent.core.types import Clock
from doc_agent.diff.models import DiffCategory, DiffItem, DiffKind
from doc_agent.document.base import CITATION_STYLE_PATH
from doc_agent.document.memory import InMemoryDocument
from doc_agent.execution.executor import Executor
from doc_agent.execution.models import AgentOperation
from doc_agent.planning.interpreter import KeywordInterpreter
from doc_agent.planning.models import Scope
from doc_agent.planning.planner import Planner
from doc_agent.storage.backend import MemoryStore
from doc_agent.storage.operations import OperationStore
from doc_agent.undo.manager import UndoManager

OperationFactory = Callable[..., AgentOperation]


@pytest.fixture
async def store() -> AsyncGenerator[OperationStore, None]:
    operations = OperationStore(MemoryStore())
    yield operations
    operations.close()


@pytest.fixture
def lock() -> asyncio.Lock:
    return asyncio.Lock()


@pytest.fixture
def manager(store: OperationStore, document: InMemoryDocument, lock: asyncio.Lock, clock: Clock) -> UndoManager:
    return UndoManager(store, document, lock=lock, clock=clock)


async def apply_command(
    text: str,
    document: InMemoryDocument,
    store: OperationStore,
    lock: asyncio.Lock,
    scope: Scope | None = None,
) -> AgentOperation:
    planner = Planner(KeywordInterpreter())
    planned = await planner.plan_command(text, scope or Scope.document(), document)
    executor = Executor(planner.registry, store, document, lock=lock)
    _, operation = await executor.apply_plan(planned.plan.id)
    return operation


class TestUndo:
    """Tests for UndoManager.undo."""

    @pytest.mark.asyncio
    async def test_round_trip_restores_document(
        self, manager: UndoManager, document: InMemoryDocument, store: OperationStore, lock: asyncio.Lock
    ) -> None:
        original = document.to_dict()
        operation = await apply_command("unify citations to APA", document, store, lock)
        assert document.citation_style() == "APA"

        result = await manager.undo(operation.id)

        assert document.to_dict() == original
        assert result.operation_id == operation.id
        assert result.snapshot_id == document.snapshot_id
        stored = await store.get(operation.id)
        assert stored is not None
        assert stored.reverted_at == result.reverted_at

    @pytest.mark.asyncio
    async def test_inverse_diffs_in_reverse_order(
        self, manager: UndoManager, document: InMemoryDocument, store: OperationStore, lock: asyncio.Lock
    ) -> None:
        operation = await apply_command(
            "split chapter 2 into related work and methodology, then unify citations to APA",
            document,
            store,
            lock,
            scope=Scope.section("chapter-2"),
        )
        applied = list(operation.result.diffs)
        assert len(applied) >= 2

        result = await manager.undo(operation.id)

        assert [d.path for d in result.reverted_diffs] == [d.path for d in reversed(applied)]
        assert result.reverted_diffs[-1].kind is DiffKind.MODIFY

    @pytest.mark.asyncio
    async def test_unknown_operation(self, manager: UndoManager) -> None:
        with pytest.raises(OperationNotFoundError):
            await manager.undo("missing")

    @pytest.mark.asyncio
    async def test_not_reversible(
        self,
        manager: UndoManager,
        store: OperationStore,
        document: InMemoryDocument,
        make_operation: OperationFactory,
    ) -> None:
        await store.put(make_operation("op-1", reversible=False))
        before = document.to_dict()

        with pytest.raises(NotReversibleError):
            await manager.undo("op-1")

        assert document.to_dict() == before

    @pytest.mark.asyncio
    async def test_not_reversible_checked_before_reverted(
        self, manager: UndoManager, store: OperationStore, make_operation: OperationFactory, clock: Clock
    ) -> None:
        await store.put(make_operation("op-1", reversible=False, reverted_at=clock()))

        with pytest.raises(NotReversibleError):
            await manager.undo("op-1")

    @pytest.mark.asyncio
    async def test_second_undo_rejected(
        self, manager: UndoManager, document: InMemoryDocument, store: OperationStore, lock: asyncio.Lock
    ) -> None:
        operation = await apply_command("unify citations to APA", document, store, lock)
        await manager.undo(operation.id)
        version = document.version

        with pytest.raises(AlreadyRevertedError):
            await manager.undo(operation.id)

        assert document.version == version

    @pytest.mark.asyncio
    async def test_conflict_leaves_document_untouched(
        self, manager: UndoManager, document: InMemoryDocument, store: OperationStore, lock: asyncio.Lock
    ) -> None:
        operation = await apply_command("unify citations to APA", document, store, lock)
        document.apply_now(
            [
                DiffItem(
                    path=CITATION_STYLE_PATH,
                    kind=DiffKind.MODIFY,
                    category=DiffCategory.FORMAT,
                    before="APA",
                    after="IEEE",
                )
            ]
        )
        before = document.to_dict()

        with pytest.raises(UndoFailedError):
            await manager.undo(operation.id)

        assert document.to_dict() == before
        stored = await store.get(operation.id)
        assert stored is not None and stored.reverted_at is None

    @pytest.mark.asyncio
    async def test_storage_failure_restores_document(
        self,
        manager: UndoManager,
        document: InMemoryDocument,
        store: OperationStore,
        lock: asyncio.Lock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        operation = await apply_command("unify citations to APA", document, store, lock)
        monkeypatch.setattr(store, "update", AsyncMock(side_effect=StorageError("disk full")))

        with pytest.raises(StorageError):
            await manager.undo(operation.id)

        assert document.citation_style() == "APA"

    @pytest.mark.asyncio
    async def test_evicted_during_undo(
        self,
        manager: UndoManager,
        document: InMemoryDocument,
        store: OperationStore,
        lock: asyncio.Lock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        operation = await apply_command("unify citations to APA", document, store, lock)
        monkeypatch.setattr(store, "update", AsyncMock(return_value=False))

        with pytest.raises(OperationNotFoundError):
            await manager.undo(operation.id)

        assert document.citation_style() == "APA"

    @pytest.mark.asyncio
    async def test_cancellation_restores_document(
        self,
        manager: UndoManager,
        document: InMemoryDocument,
        store: OperationStore,
        lock: asyncio.Lock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Cancelling while the reverted mark is being written puts the edit back."""
        operation = await apply_command("unify citations to APA", document, store, lock)
        applied = document.to_dict()
        writing = asyncio.Event()
        never = asyncio.Event()

        async def stalled_update(_: AgentOperation) -> bool:
            writing.set()
            await never.wait()
            return True

        monkeypatch.setattr(store, "update", stalled_update)
        task = asyncio.create_task(manager.undo(operation.id))
        await writing.wait()
        assert document.citation_style() == "MLA"

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert document.to_dict() == applied
        assert not lock.locked()
        stored = await store.get(operation.id)
        assert stored is not None and stored.reverted_at is None
        assert await manager.can_undo(operation.id) is True

    @pytest.mark.asyncio
    async def test_operation_without_diffs(
        self,
        manager: UndoManager,
        store: OperationStore,
        document: InMemoryDocument,
        make_operation: OperationFactory,
    ) -> None:
        await store.put(make_operation("op-1", failed=True))
        version = document.version

        result = await manager.undo("op-1")

        assert result.reverted_diffs == ()
        assert document.version == version
        stored = await store.get("op-1")
        assert stored is not None and stored.is_reverted


class TestCanUndo:
    @pytest.mark.asyncio
    async def test_states(
        self, manager: UndoManager, store: OperationStore, make_operation: OperationFactory, clock: Clock
    ) -> None:
        await store.put(make_operation("fresh"))
        await store.put(make_operation("locked", reversible=False))
        await store.put(make_operation("done", reverted_at=clock()))

        assert await manager.can_undo("fresh") is True
        assert await manager.can_undo("locked") is False
        assert await manager.can_undo("done") is False
        assert await manager.can_undo("missing") is False
