"""Mutation events carried from the Task Store to the Broadcast Gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class EventKind:
    """Names published on the relay."""
    CREATED = "todo.created"
    UPDATED = "todo.updated"
    DELETED = "todo.deleted"
    BULK_DELETED = "todo.bulkDeleted"

    ALL = {CREATED, UPDATED, DELETED, BULK_DELETED}


@dataclass(frozen=True)
class MutationEvent:
    """
    A transient, never-persisted notice that a mutation committed.

    payload by kind:
        created / updated  -> full record dict
        deleted            -> {"id": int, "title": str | None}
        bulkDeleted        -> {"ids": [int, ...], "count": int}
    """
    kind: str
    payload: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
