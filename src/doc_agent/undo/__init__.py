"""Undo of applied operations."""

from doc_agent.undo.manager import UndoManager, UndoResult

__all__ = ["UndoManager", "UndoResult"]
