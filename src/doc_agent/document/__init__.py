"""Document access contracts and the in-memory document."""

from doc_agent.document.base import DiffApplier, DocumentSnapshot
from doc_agent.document.memory import InMemoryDocument, Section

__all__ = [
    "DiffApplier",
    "DocumentSnapshot",
    "InMemoryDocument",
    "Section",
]
