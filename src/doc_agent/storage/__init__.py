"""Persistence: storage backends, operation history and recipes."""

from doc_agent.storage.backend import JsonFileStore, KeyValueStore, MemoryStore
from doc_agent.storage.operations import DEFAULT_MAX_ENTRIES, OperationStore
from doc_agent.storage.recipes import AgentRecipe, RecipeStore

__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "AgentRecipe",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "OperationStore",
    "RecipeStore",
]
