"""Audit export of the operation history.

The report lists operations in store order (oldest first):

    {
      "exportedAt": "...",
      "totalOperations": 2,
      "operations": [
        {"id": ..., "command": ..., "scope": {...}, "stepsCompleted": 1,
         "stepsTotal": 2, "status": "partial", "duration": 12,
         "createdAt": ..., "appliedAt": ..., "revertedAt": null}
      ]
    }

For a given store state and clock the output is byte-identical.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from doc_agent.core.errors import StorageError
from doc_agent.core.logging import get_logger
from doc_agent.core.types import Clock, utc_now

if TYPE_CHECKING:
    from doc_agent.execution.models import AgentOperation
    from doc_agent.planning.models import Scope
    from doc_agent.storage.operations import OperationStore

logger = get_logger("audit.exporter")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class HistoryEntry:
    """Compact view of one operation for history listings."""

    id: str
    command: str
    scope: Scope
    step_count: int
    status: str
    timestamp: datetime
    reverted: bool = False

    @classmethod
    def from_operation(cls, operation: AgentOperation) -> HistoryEntry:
        return cls(
            id=operation.id,
            command=operation.command.text,
            scope=operation.command.scope,
            step_count=len(operation.plan.steps),
            status=operation.status.value,
            timestamp=operation.applied_at or operation.created_at,
            reverted=operation.is_reverted,
        )


class AuditExporter:
    """Serializes the operation history into a portable report."""

    def __init__(self, store: OperationStore, clock: Clock = utc_now) -> None:
        self.store = store
        self._clock = clock

    @staticmethod
    def operation_record(operation: AgentOperation) -> dict[str, Any]:
        """Report entry for a single operation."""
        return {
            "id": operation.id,
            "command": operation.command.text,
            "scope": operation.command.scope.to_dict(),
            "stepsCompleted": len(operation.result.completed_steps),
            "stepsTotal": len(operation.plan.steps),
            "status": operation.status.value,
            "duration": operation.result.duration_ms,
            "createdAt": _iso(operation.created_at),
            "appliedAt": _iso(operation.applied_at),
            "revertedAt": _iso(operation.reverted_at),
        }

    async def report(self) -> dict[str, Any]:
        operations = await self.store.list()
        return {
            "exportedAt": self._clock().isoformat(),
            "totalOperations": len(operations),
            "operations": [self.operation_record(op) for op in operations],
        }

    async def export(self) -> str:
        """Serialize the history as indented JSON."""
        return json.dumps(await self.report(), indent=2, ensure_ascii=False)

    async def history(self) -> list[HistoryEntry]:
        """History entries, newest first."""
        operations = await self.store.list()
        return [HistoryEntry.from_operation(op) for op in reversed(operations)]

    async def write(self, path: Path | str) -> Path:
        """Write the report to ``path``.

        Raises:
            StorageError: If the file cannot be written.
        """
        target = Path(path).expanduser()
        content = await self.export()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content + "\n", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write audit export to {target}: {e}") from e
        logger.info(f"Exported audit log to {target}")
        return target
