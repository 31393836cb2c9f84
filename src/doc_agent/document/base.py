"""Document access contracts.

The agent never owns the document. It reads through DocumentSnapshot and
writes through DiffApplier, both keyed by slash-separated paths:

    /document/outline                        ordered section ids, one per line
    /document/meta/citation-style            current citation style name
    /document/references/<n>                 bibliography entries
    /document/sections/<id>/title            heading line ("## Title")
    /document/sections/<id>/body             section text
    /document/sections/<id>/figures/<fig>    figure caption
    /document/sections/<id>/references       supplemented reference block
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from doc_agent.diff.models import DiffItem
    from doc_agent.planning.models import Scope

OUTLINE_PATH = "/document/outline"
CITATION_STYLE_PATH = "/document/meta/citation-style"
REFERENCES_PREFIX = "/document/references/"
SECTIONS_PREFIX = "/document/sections/"


def section_title_path(section_id: str) -> str:
    return f"{SECTIONS_PREFIX}{section_id}/title"


def section_body_path(section_id: str) -> str:
    return f"{SECTIONS_PREFIX}{section_id}/body"


def section_references_path(section_id: str) -> str:
    return f"{SECTIONS_PREFIX}{section_id}/references"


def figure_path(section_id: str, figure_id: str) -> str:
    return f"{SECTIONS_PREFIX}{section_id}/figures/{figure_id}"


def heading(title: str, level: int = 1) -> str:
    """Render a heading line at the given level."""
    return f"{'#' * level} {title}"


def heading_level(line: str) -> int:
    """Count the leading '#' characters of a heading line."""
    return len(line) - len(line.lstrip("#"))


def heading_text(line: str) -> str:
    """Strip the level marker from a heading line."""
    return line.lstrip("#").strip()


class DocumentSnapshot(ABC):
    """Read-only view of a document.

    Subclasses provide raw path access; scope resolution and the outline
    helpers are built on top of it.
    """

    @property
    @abstractmethod
    def snapshot_id(self) -> str:
        """Opaque identifier of this document state."""
        ...

    @abstractmethod
    def get(self, path: str) -> str | None:
        """Return the text stored at ``path``, or None if absent."""
        ...

    @abstractmethod
    def paths(self) -> list[str]:
        """All populated paths."""
        ...

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def outline(self) -> list[str]:
        """Section ids in document order."""
        raw = self.get(OUTLINE_PATH) or ""
        return [line for line in raw.splitlines() if line.strip()]

    def has_section(self, section_id: str) -> bool:
        return section_id in self.outline()

    def citation_style(self) -> str | None:
        return self.get(CITATION_STYLE_PATH)

    def references(self) -> list[str]:
        """Bibliography entries ordered by their index."""
        entries: list[tuple[int, str]] = []
        for path in self.paths():
            if not path.startswith(REFERENCES_PREFIX):
                continue
            suffix = path[len(REFERENCES_PREFIX):]
            if suffix.isdigit():
                entries.append((int(suffix), self.get(path) or ""))
        return [text for _, text in sorted(entries)]

    def section_text(self, section_id: str) -> str | None:
        """Heading plus body of a section, or None if it is not in the outline."""
        if not self.has_section(section_id):
            return None
        title = self.get(section_title_path(section_id)) or ""
        body = self.get(section_body_path(section_id)) or ""
        return f"{title}\n{body}" if title else body

    def resolve(self, scope: Scope) -> str | None:
        """Resolve a scope to the text it covers.

        Returns:
            The covered text, or None if the scope does not exist in
            this document.
        """
        from doc_agent.planning.models import ScopeKind

        if scope.kind is ScopeKind.DOCUMENT:
            parts = [self.section_text(sid) or "" for sid in self.outline()]
            return "\n\n".join(parts)

        if not scope.id or not self.has_section(scope.id):
            return None

        if scope.kind is ScopeKind.SELECTION and scope.range is not None:
            body = self.get(section_body_path(scope.id)) or ""
            if scope.range.end > len(body):
                return None
            return body[scope.range.start:scope.range.end]

        return self.section_text(scope.id)


class DiffApplier(ABC):
    """Mutation seam shared by the executor and the undo manager."""

    @abstractmethod
    async def apply(self, diffs: Sequence[DiffItem]) -> str:
        """Apply diffs atomically.

        Either every diff is applied or none is.

        Returns:
            Identifier of the resulting document state.

        Raises:
            DiffConflictError: If any diff does not match the document.
        """
        ...
