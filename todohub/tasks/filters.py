"""
Filter Builder — turns optional report criteria into SQLAlchemy predicates.

The predicate is a list of column expressions; callers combine it with
``and_(*predicate)`` so any SQLAlchemy dialect can evaluate it.

Rules:
  - every criterion is optional; criteria combine with AND
  - assignee tokens combine with OR (substring match on the delimited field)
  - a date or time-tracked range applies only when BOTH bounds are supplied
  - comma lists are trimmed and empty tokens dropped
  - user text always matches as a plain substring (LIKE wildcards escaped)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

from todohub.db.models import TodoItem
from todohub.tasks.schemas import ReportFilters, validate_report_filters


def _tokens(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


@dataclass
class FilterCriteria:
    title: Optional[str] = None
    assignee: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    min: Optional[float] = None
    max: Optional[float] = None
    status: Optional[str] = None
    priority: Optional[str] = None

    @classmethod
    def from_filters(cls, filters: ReportFilters) -> "FilterCriteria":
        return cls(
            title=filters.title,
            assignee=filters.assigne,
            start=filters.start,
            end=filters.end,
            min=filters.min,
            max=filters.max,
            status=filters.status,
            priority=filters.priority,
        )

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> "FilterCriteria":
        """Validate raw query parameters and build criteria from them."""
        return cls.from_filters(validate_report_filters(params))

    def applied(self) -> Dict[str, Any]:
        """Supplied criteria only, JSON-ready (echoed back by the preview)."""
        out: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            out[key] = value.isoformat() if isinstance(value, date) else value
        return out


def _contains(column, text: str, case_insensitive: bool) -> ColumnElement:
    if case_insensitive:
        return column.icontains(text, autoescape=True)
    return column.contains(text, autoescape=True)


def build_filter(criteria: Optional[FilterCriteria], case_insensitive: bool = True) -> List[ColumnElement]:
    """
    Build the predicate list for ``criteria``.

    ``case_insensitive`` controls the title and assignee substring matches.
    Status and priority lists are exact value matches.
    """
    if criteria is None:
        return []

    clauses: List[ColumnElement] = []

    if criteria.title:
        clauses.append(_contains(TodoItem.title, criteria.title, case_insensitive))

    assignees = _tokens(criteria.assignee)
    if assignees:
        clauses.append(or_(*(_contains(TodoItem.assignee, a, case_insensitive) for a in assignees)))

    if criteria.start is not None and criteria.end is not None:
        clauses.append(TodoItem.due_date.between(criteria.start, criteria.end))

    if criteria.min is not None and criteria.max is not None:
        clauses.append(TodoItem.time_tracked.between(criteria.min, criteria.max))

    statuses = _tokens(criteria.status)
    if statuses:
        clauses.append(TodoItem.status.in_(statuses))

    priorities = _tokens(criteria.priority)
    if priorities:
        clauses.append(TodoItem.priority.in_(priorities))

    return clauses
