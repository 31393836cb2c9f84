"""Bounded, creation-ordered history of applied operations.

The store keeps at most ``max_entries`` operations sorted by creation
time. Adding one more evicts the oldest stored entry, never the one
being added. Reads that hit corrupted data degrade to an empty history
so planning and applying keep working.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

from doc_agent.core.errors import StorageCorruptedError, StorageError
from doc_agent.core.logging import get_logger
from doc_agent.execution.models import AgentOperation

from .backend import KeyValueStore, MemoryStore

logger = get_logger("storage.operations")

DEFAULT_MAX_ENTRIES = 50


class OperationStore:
    """Async operation history on top of a KeyValueStore.

    Backend calls run on a single-worker thread pool, so they execute
    in submission order.

    Attributes:
        max_entries: Maximum number of operations retained.
    """

    KEY = "operations"

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        """Initialize the store.

        Args:
            backend: Storage primitive. Defaults to an in-memory store.
            max_entries: History bound, at least 1.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._backend = backend if backend is not None else MemoryStore()
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._lock = asyncio.Lock()

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    async def _run(self, func: Any, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args))

    def _read(self) -> list[AgentOperation]:
        try:
            raw = self._backend.load(self.KEY)
        except StorageCorruptedError as e:
            logger.warning(f"Operation history is corrupted, starting empty: {e}")
            return []
        except StorageError as e:
            logger.warning(f"Operation history unreadable, starting empty: {e}")
            return []

        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Operation history has an unexpected format, starting empty")
            return []

        operations: list[AgentOperation] = []
        for entry in raw:
            try:
                operations.append(AgentOperation.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed history entry: {e}")
        return operations

    def _write(self, operations: list[AgentOperation]) -> None:
        self._backend.save(self.KEY, [op.to_dict() for op in operations])

    async def list(self) -> list[AgentOperation]:
        """All retained operations, oldest first."""
        return await self._run(self._read)

    async def get(self, operation_id: str) -> AgentOperation | None:
        for operation in await self.list():
            if operation.id == operation_id:
                return operation
        return None

    async def put(self, operation: AgentOperation) -> list[AgentOperation]:
        """Add an operation, replacing any entry with the same id.

        Args:
            operation: Operation to persist.

        Returns:
            Operations evicted to respect the bound.

        Raises:
            StorageError: If the history could not be written.
        """
        async with self._lock:
            others = [op for op in await self.list() if op.id != operation.id]
            others.sort(key=lambda op: op.created_at)

            # The incoming operation is never its own eviction victim.
            evicted: list[AgentOperation] = []
            while len(others) >= self.max_entries:
                evicted.append(others.pop(0))

            operations = sorted([*others, operation], key=lambda op: op.created_at)
            await self._run(self._write, operations)

        for op in evicted:
            logger.info(f"Evicted operation {op.id} from history (limit {self.max_entries})")
        return evicted

    async def update(self, operation: AgentOperation) -> bool:
        """Replace a stored operation in place.

        Returns:
            False if no operation with that id is stored.

        Raises:
            StorageError: If the history could not be written.
        """
        async with self._lock:
            operations = await self.list()
            for index, existing in enumerate(operations):
                if existing.id == operation.id:
                    operations[index] = operation
                    break
            else:
                return False
            await self._run(self._write, operations)
        return True

    async def discard(self, operation_id: str) -> bool:
        """Remove a single operation. Returns True if it was stored."""
        async with self._lock:
            operations = await self.list()
            remaining = [op for op in operations if op.id != operation_id]
            if len(remaining) == len(operations):
                return False
            await self._run(self._write, remaining)
        return True

    async def clear(self) -> int:
        """Drop the whole history. Returns the number of removed entries."""
        async with self._lock:
            count = len(await self.list())
            await self._run(self._backend.delete, self.KEY)
        logger.info(f"Cleared {count} operation(s) from history")
        return count

    def close(self) -> None:
        """Shut down the I/O thread pool."""
        self._executor.shutdown(wait=True)
