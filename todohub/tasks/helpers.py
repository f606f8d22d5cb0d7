"""Assignee list and display formatting helpers."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional, Union

ASSIGNEE_DELIMITER = ","


def split_assignees(text: Optional[str]) -> List[str]:
    """Split the stored delimited field into trimmed, non-empty names (order kept)."""
    if not text or not text.strip():
        return []
    return [name.strip() for name in text.split(ASSIGNEE_DELIMITER) if name.strip()]


def join_assignees(names: Iterable[str]) -> str:
    """Join names back into the stored delimited form."""
    return ASSIGNEE_DELIMITER.join(name.strip() for name in names)


def format_enum_value(value: Optional[str]) -> Optional[str]:
    """``in_progress`` -> ``In Progress``. Empty values render as None."""
    if not value:
        return None
    raw = getattr(value, "value", value)
    return " ".join(word.capitalize() for word in raw.split("_"))


def format_date(value: Union[date, datetime, str, None]) -> str:
    """Render a due date as ``Oct 19, 2026``."""
    if not value:
        return ""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value.strftime("%b %d, %Y")


def is_today_or_future(value: Union[date, datetime], today: Optional[date] = None) -> bool:
    if isinstance(value, datetime):
        value = value.date()
    return value >= (today or date.today())
