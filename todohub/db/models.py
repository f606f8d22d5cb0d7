"""ORM model for the task record."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import Column, Date, Integer, String

from todohub.db.base import Base, TimestampMixin
from todohub.tasks.enums import Status

TITLE_MAX_LENGTH = 255
ASSIGNEE_MAX_LENGTH = 255


class TodoItem(TimestampMixin, Base):
    """
    A single task record.

    ``assignee`` holds the comma-delimited assignee names exactly as
    supplied; use ``todohub.tasks.helpers.split_assignees`` for the list form.
    """

    __tablename__ = "todo_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=True)
    assignee = Column(String(ASSIGNEE_MAX_LENGTH), nullable=True, default="")
    due_date = Column(Date, nullable=False)
    time_tracked = Column(Integer, nullable=False, default=0)
    status = Column(String(32), nullable=False, default=Status.PENDING.value, index=True)
    priority = Column(String(32), nullable=True, index=True)
    type = Column(String(32), nullable=True)
    estimated_sp = Column(Integer, nullable=True)
    actual_sp = Column(Integer, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "assignee": self.assignee,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "time_tracked": self.time_tracked,
            "status": self.status,
            "priority": self.priority,
            "type": self.type,
            "estimated_sp": self.estimated_sp,
            "actual_sp": self.actual_sp,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<TodoItem id={self.id} title={self.title!r} status={self.status}>"
