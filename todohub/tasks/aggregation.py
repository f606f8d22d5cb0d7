"""
Aggregation Engine — group-by counts and per-assignee rollups for charts.

Assignee rollups count by substring containment against the raw delimited
field, not by exact list membership: a name contained in another name
("Ana" in "Ana Banana") is counted for both. This mirrors how the chart
data has always been computed and is kept as-is.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from todohub.db.models import TodoItem
from todohub.db.session import session_scope
from todohub.engine.errors import BadRequestError, PersistenceError
from todohub.tasks.enums import Priority, Status, values
from todohub.tasks.helpers import split_assignees

logger = logging.getLogger("todohub.tasks.aggregation")

CHART_TYPES = ("status", "priority", "assignee")


class AggregationEngine:

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _grouped_counts(self, column) -> Dict[Any, int]:
        stmt = select(column, func.count()).group_by(column)
        with session_scope(self._session_factory) as session:
            return {key: count for key, count in session.execute(stmt)}

    def status_summary(self) -> Dict[str, int]:
        """Count per status; always exactly the five declared statuses."""
        counts = self._grouped_counts(TodoItem.status)
        return {status: counts.get(status, 0) for status in values(Status)}

    def priority_summary(self) -> Dict[str, int]:
        """Count per priority; null priorities are not counted anywhere."""
        counts = self._grouped_counts(TodoItem.priority)
        return {priority: counts.get(priority, 0) for priority in values(Priority)}

    def assignee_summary(self) -> List[Dict[str, Dict[str, int]]]:
        """
        One ``{name: {total_todos, total_pending_todos, total_timetracked_todos}}``
        entry per distinct assignee, in first-seen order (by record id).
        """
        stmt = (
            select(TodoItem.assignee, TodoItem.status, TodoItem.time_tracked)
            .where(TodoItem.assignee.is_not(None), TodoItem.assignee != "")
            .order_by(TodoItem.id)
        )
        with session_scope(self._session_factory) as session:
            rows = session.execute(stmt).all()

        names: Dict[str, None] = {}
        for raw, _status, _minutes in rows:
            for name in split_assignees(raw):
                names.setdefault(name, None)

        summary = []
        for name in names:
            matching = [row for row in rows if name in row[0]]
            summary.append({
                name: {
                    "total_todos": len(matching),
                    "total_pending_todos": sum(1 for row in matching if row[1] == Status.PENDING.value),
                    "total_timetracked_todos": sum(row[2] or 0 for row in matching),
                }
            })
        return summary

    def chart(self, chart_type: str) -> Dict[str, Any]:
        """
        Envelope for ``GET /chart?type=…``.

        Raises:
            BadRequestError: ``chart_type`` is not status/priority/assignee.
            PersistenceError: the underlying query failed.
        """
        if chart_type not in CHART_TYPES:
            raise BadRequestError(
                "Invalid chart type",
                error="Supported types: status, priority, assignee",
            )
        try:
            if chart_type == "status":
                return {
                    "success": True,
                    "message": "Status summary retrieved successfully",
                    "data": {"status_summary": self.status_summary()},
                }
            if chart_type == "priority":
                return {
                    "success": True,
                    "message": "Priority summary retrieved successfully",
                    "data": {"priority_summary": self.priority_summary()},
                }
            return {
                "success": True,
                "message": "Assignee summary retrieved successfully",
                "data": {"assignee_summary": self.assignee_summary()},
            }
        except SQLAlchemyError as e:
            logger.error("Chart %s failed: %s", chart_type, e)
            raise PersistenceError(
                "An error occurred while generating chart data",
                operation=f"chart_{chart_type}",
                error=str(e),
            ) from e
