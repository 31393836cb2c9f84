"""Shared type aliases and small helpers."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return str(uuid.uuid4())


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, passing None through."""
    if not value:
        return None
    return datetime.fromisoformat(value)
