"""Undo of applied operations.

Example:
    from doc_agent.undo.manager import UndoManager

    manager = UndoManager(store, document, lock=session_lock)
    result = await manager.undo(operation.id)
    print(f"Reverted {len(result.reverted_diffs)} diff(s)")

An undo applies the inverse of every diff the operation actually applied,
in reverse order, as one all-or-nothing batch. The operation is then
marked reverted in the store. If that write fails, or the call is
cancelled, the document is restored and the operation stays unreverted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from doc_agent.core.errors import (
    AlreadyRevertedError,
    DiffConflictError,
    DiffInversionError,
    NotReversibleError,
    OperationNotFoundError,
    UndoFailedError,
)
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, utc_now
from doc_agent.diff.models import DiffItem, invert_diffs

if TYPE_CHECKING:
    from doc_agent.document.base import DiffApplier
    from doc_agent.execution.models import AgentOperation
    from doc_agent.storage.operations import OperationStore

logger = get_logger("undo.manager")


@dataclass(frozen=True)
class UndoResult:
    """Outcome of a successful undo."""

    operation_id: str
    reverted_diffs: tuple[DiffItem, ...]
    snapshot_id: str
    reverted_at: datetime = field(default_factory=utc_now)


class UndoManager:
    """Reverts operations recorded in an OperationStore.

    Attributes:
        store: Operation history.
    """

    def __init__(
        self,
        store: OperationStore,
        applier: DiffApplier,
        lock: asyncio.Lock | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the undo manager.

        Args:
            store: Operation history to read from and update.
            applier: Document mutation seam.
            lock: Single-writer lock shared with the executor.
            clock: Timestamp source.
        """
        self.store = store
        self._applier = applier
        self._lock = lock or asyncio.Lock()
        self._clock = clock

    async def can_undo(self, operation_id: str) -> bool:
        operation = await self.store.get(operation_id)
        return operation is not None and operation.reversible and not operation.is_reverted

    async def undo(self, operation_id: str) -> UndoResult:
        """Revert an applied operation.

        Args:
            operation_id: Id of an operation in the history.

        Returns:
            UndoResult with the inverse diffs that were applied.

        Raises:
            OperationNotFoundError: If the id is not in the history.
            NotReversibleError: If the operation was recorded as non-reversible.
            AlreadyRevertedError: If the operation was already reverted.
            UndoFailedError: If the inverse diffs do not apply cleanly.
            StorageError: If the reverted state could not be persisted.
        """
        async with self._lock:
            operation = await self.store.get(operation_id)
            if operation is None:
                raise OperationNotFoundError(operation_id)
            if not operation.reversible:
                raise NotReversibleError(operation_id)
            if operation.is_reverted:
                raise AlreadyRevertedError(operation_id)

            try:
                inverse = invert_diffs(operation.result.diffs)
                snapshot_id = await self._applier.apply(inverse)
            except (DiffConflictError, DiffInversionError) as e:
                logger.error(f"Undo of {operation_id} failed: {e}")
                raise UndoFailedError(f"Cannot undo operation {operation_id}: {e}") from e

            reverted = operation.mark_reverted(self._clock())
            try:
                if not await self.store.update(reverted):
                    raise OperationNotFoundError(operation_id)
            except BaseException:
                await self._restore(operation)
                raise

        logger.info(f"Undid operation {operation_id} ({len(inverse)} diff(s) reverted)")
        return UndoResult(
            operation_id=operation_id,
            reverted_diffs=tuple(inverse),
            snapshot_id=snapshot_id,
            reverted_at=reverted.reverted_at or self._clock(),
        )

    async def _restore(self, operation: AgentOperation) -> None:
        try:
            await self._applier.apply(list(operation.result.diffs))
            logger.warning(f"Restored document after failed undo of {operation.id}")
        except Exception as e:
            logger.error(f"Could not restore document after failed undo of {operation.id}: {e}")
