"""In-memory document backed by a path -> text mapping."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from doc_agent.core.errors import DiffConflictError
from doc_agent.core.logging import get_logger
from doc_agent.diff.models import DiffItem, DiffKind

from .base import (
    CITATION_STYLE_PATH,
    OUTLINE_PATH,
    REFERENCES_PREFIX,
    DiffApplier,
    DocumentSnapshot,
    heading,
    section_body_path,
    section_title_path,
)

logger = get_logger("document.memory")


@dataclass
class Section:
    """Seed data for a document section."""

    id: str
    title: str
    body: str = ""
    level: int = 1


class InMemoryDocument(DocumentSnapshot, DiffApplier):
    """Mutable document kept entirely in memory.

    Applying a batch of diffs validates every item against a working copy
    and only then swaps it in, so a conflict leaves the document untouched.
    Each successful batch advances the version, which is part of the
    snapshot id.
    """

    def __init__(
        self,
        nodes: dict[str, str] | None = None,
        document_id: str = "document",
        version: int = 0,
    ) -> None:
        self._nodes: dict[str, str] = dict(nodes or {})
        self._document_id = document_id
        self._version = version

    @classmethod
    def from_sections(
        cls,
        sections: Iterable[Section],
        citation_style: str | None = None,
        references: Iterable[str] = (),
        document_id: str = "document",
    ) -> InMemoryDocument:
        """Build a document from section seeds.

        Args:
            sections: Sections in document order.
            citation_style: Current citation style name.
            references: Bibliography entries.
            document_id: Prefix of generated snapshot ids.
        """
        nodes: dict[str, str] = {}
        order: list[str] = []
        for section in sections:
            order.append(section.id)
            nodes[section_title_path(section.id)] = heading(section.title, section.level)
            nodes[section_body_path(section.id)] = section.body
        nodes[OUTLINE_PATH] = "\n".join(order)
        if citation_style:
            nodes[CITATION_STYLE_PATH] = citation_style
        for index, entry in enumerate(references, start=1):
            nodes[f"{REFERENCES_PREFIX}{index}"] = entry
        return cls(nodes, document_id=document_id)

    @classmethod
    def copy_of(cls, snapshot: DocumentSnapshot) -> InMemoryDocument:
        """Scratch copy of any snapshot, used to preview steps in sequence."""
        nodes = {path: snapshot.get(path) or "" for path in snapshot.paths()}
        return cls(nodes, document_id=snapshot.snapshot_id)

    @property
    def snapshot_id(self) -> str:
        return f"{self._document_id}@{self._version}"

    @property
    def version(self) -> int:
        return self._version

    def get(self, path: str) -> str | None:
        return self._nodes.get(path)

    def paths(self) -> list[str]:
        return sorted(self._nodes)

    def snapshot(self) -> InMemoryDocument:
        """Detached copy of the current state, sharing the snapshot id."""
        return InMemoryDocument(
            self._nodes,
            document_id=self._document_id,
            version=self._version,
        )

    def to_dict(self) -> dict[str, str]:
        return dict(self._nodes)

    async def apply(self, diffs: Sequence[DiffItem]) -> str:
        return self.apply_now(diffs)

    def apply_now(self, diffs: Sequence[DiffItem]) -> str:
        """Synchronous form of apply()."""
        if not diffs:
            return self.snapshot_id

        working = dict(self._nodes)
        for item in diffs:
            _apply_one(working, item)

        self._nodes = working
        self._version += 1
        logger.debug(f"Applied {len(diffs)} diff(s), now at {self.snapshot_id}")
        return self.snapshot_id


def _apply_one(nodes: dict[str, str], item: DiffItem) -> None:
    current = nodes.get(item.path)

    if item.kind is DiffKind.INSERT:
        if current is not None:
            raise DiffConflictError(item.path, "path already exists")
        nodes[item.path] = item.after or ""
        return

    if current is None:
        raise DiffConflictError(item.path, "path does not exist")
    if current != item.before:
        raise DiffConflictError(item.path, "content changed since the diff was made")

    if item.kind is DiffKind.DELETE:
        del nodes[item.path]
    else:
        nodes[item.path] = item.after or ""
