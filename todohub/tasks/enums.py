"""Declared value sets for task status, priority and type."""

from enum import Enum


class Status(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    STUCK = "stuck"
    COMPLETED = "completed"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class TaskType(str, Enum):
    FEATURE_ENHANCEMENTS = "feature_enhancements"
    BUG = "bug"
    OTHER = "other"


def values(enum_cls) -> list:
    """Declared values of an enum, in declaration order."""
    return [member.value for member in enum_cls]
