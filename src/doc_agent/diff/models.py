"""Diff value types and the inversion algebra.

A DiffItem is one before/after change unit. Its kind always reflects
which side is present:

- insert: only ``after``
- delete: only ``before``
- modify: both

Inversion swaps the payload and flips the kind (insert and delete trade
places, modify stays modify). Inverting a sequence also reverses it so
that dependent edits unwind in the opposite order they were applied.

Example:
    item = DiffItem(
        path="/document/outline",
        kind=DiffKind.MODIFY,
        category=DiffCategory.STRUCTURE,
        before="intro\\nchapter-2",
        after="intro\\nrelated-work\\nmethodology",
    )
    undo = invert_diffs([item])
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from doc_agent.core.errors import DiffInversionError

REVERT_PREFIX = "Revert: "


class DiffKind(str, Enum):
    """Shape of a diff item."""

    INSERT = "insert"
    DELETE = "delete"
    MODIFY = "modify"

    @property
    def inverse(self) -> DiffKind:
        """Kind of the inverted item."""
        if self is DiffKind.INSERT:
            return DiffKind.DELETE
        if self is DiffKind.DELETE:
            return DiffKind.INSERT
        return DiffKind.MODIFY


class DiffCategory(str, Enum):
    """What part of the document a diff touches."""

    STRUCTURE = "structure"
    CONTENT = "content"
    FORMAT = "format"
    REFERENCE = "reference"
    FIGURE = "figure"


@dataclass(frozen=True)
class DiffItem:
    """One before/after change unit.

    Attributes:
        path: Document path the change applies to.
        kind: insert, delete or modify.
        category: Category used for grouping in previews.
        description: Human-readable summary.
        before: Text before the change (None for inserts).
        after: Text after the change (None for deletes).
        section_id: Section the change belongs to, if any.
    """

    path: str
    kind: DiffKind
    category: DiffCategory
    description: str = ""
    before: str | None = None
    after: str | None = None
    section_id: str | None = None

    def __post_init__(self) -> None:
        """Check that kind matches the payload."""
        if not self.path:
            raise ValueError("Diff path cannot be empty")
        has_before = self.before is not None
        has_after = self.after is not None
        if self.kind is DiffKind.INSERT and (has_before or not has_after):
            raise ValueError(f"insert diff at {self.path} needs only 'after'")
        if self.kind is DiffKind.DELETE and (has_after or not has_before):
            raise ValueError(f"delete diff at {self.path} needs only 'before'")
        if self.kind is DiffKind.MODIFY and not (has_before and has_after):
            raise ValueError(f"modify diff at {self.path} needs 'before' and 'after'")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the exposed JSON shape."""
        data: dict[str, Any] = {
            "path": self.path,
            "kind": self.kind.value,
            "category": self.category.value,
            "description": self.description,
        }
        if self.section_id is not None:
            data["sectionId"] = self.section_id
        if self.before is not None:
            data["before"] = self.before
        if self.after is not None:
            data["after"] = self.after
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffItem:
        """Deserialize from the exposed JSON shape."""
        return cls(
            path=data["path"],
            kind=DiffKind(data["kind"]),
            category=DiffCategory(data["category"]),
            description=data.get("description", ""),
            before=data.get("before"),
            after=data.get("after"),
            section_id=data.get("sectionId"),
        )


def invert_diff(item: DiffItem) -> DiffItem:
    """Produce the structural inverse of a single diff item.

    Raises:
        DiffInversionError: If the item's payload is inconsistent with its kind.
    """
    try:
        return DiffItem(
            path=item.path,
            kind=item.kind.inverse,
            category=item.category,
            description=f"{REVERT_PREFIX}{item.description}",
            before=item.after,
            after=item.before,
            section_id=item.section_id,
        )
    except ValueError as e:
        raise DiffInversionError(str(e)) from e


def invert_diffs(items: Iterable[DiffItem]) -> list[DiffItem]:
    """Invert a sequence of diffs, returning them in reverse order.

    All-or-nothing: the first item that cannot be inverted aborts the
    whole inversion.
    """
    return [invert_diff(item) for item in reversed(list(items))]


def filter_by_category(
    items: Iterable[DiffItem],
    categories: Iterable[DiffCategory | str],
) -> list[DiffItem]:
    """Keep only the diffs whose category is in ``categories``."""
    wanted = {DiffCategory(c) for c in categories}
    return [item for item in items if item.category in wanted]


def summarize_by_category(items: Iterable[DiffItem]) -> dict[DiffCategory, int]:
    """Count diffs per category, in first-seen order."""
    counts: dict[DiffCategory, int] = {}
    for item in items:
        counts[item.category] = counts.get(item.category, 0) + 1
    return counts
