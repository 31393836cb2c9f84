"""Audit export of the operation history."""

from doc_agent.audit.exporter import AuditExporter, HistoryEntry

__all__ = ["AuditExporter", "HistoryEntry"]
