"""Diff value types and inversion helpers."""

from doc_agent.diff.models import (
    DiffCategory,
    DiffItem,
    DiffKind,
    filter_by_category,
    invert_diff,
    invert_diffs,
    summarize_by_category,
)

__all__ = [
    "DiffCategory",
    "DiffItem",
    "DiffKind",
    "filter_by_category",
    "invert_diff",
    "invert_diffs",
    "summarize_by_category",
]
