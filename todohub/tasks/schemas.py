"""
Input shapes for the task surface, validated with pydantic.

Each shape has an explicit ``validate_*`` function that returns the parsed
model or raises ``todohub.engine.errors.ValidationError`` carrying a list of
``{"field", "error"}`` violations.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from todohub.db.models import ASSIGNEE_MAX_LENGTH, TITLE_MAX_LENGTH
from todohub.engine.errors import ValidationError
from todohub.tasks.enums import Priority, Status, TaskType
from todohub.tasks.helpers import is_today_or_future, join_assignees

SORTABLE_FIELDS = (
    "id", "title", "due_date", "status", "priority", "type", "estimated_sp", "actual_sp",
)

PAST_DUE_DATE_MESSAGE = "Due date cannot be in the past. Please choose today or a future date."

# Range of a 64-bit signed INTEGER column
SQL_INT_MIN = -(2 ** 63)
SQL_INT_MAX = 2 ** 63 - 1


def _check_due_date(value: Optional[date], info: ValidationInfo) -> Optional[date]:
    if value is None:
        return value
    if not is_today_or_future(value, (info.context or {}).get("today")):
        raise ValueError(PAST_DUE_DATE_MESSAGE)
    return value


class TaskCreate(BaseModel):
    """Payload for creating a task. Every field is optional."""

    model_config = ConfigDict(extra="forbid")

    task: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    developer: Optional[str] = Field(default=None, max_length=ASSIGNEE_MAX_LENGTH)
    due_date: Optional[date] = None
    time_tracked: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    type: Optional[TaskType] = None
    estimated_sp: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)
    actual_sp: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)

    @field_validator("due_date")
    @classmethod
    def due_date_not_past(cls, v: Optional[date], info: ValidationInfo) -> Optional[date]:
        return _check_due_date(v, info)


class TaskUpdate(BaseModel):
    """
    Partial update payload. Only fields present in the input are applied
    (see ``model_fields_set``). ``developer`` may be a delimited string or
    a list of names; the due date is accepted as ``date`` or ``due_date``.
    """

    model_config = ConfigDict(extra="forbid")

    task: Optional[str] = Field(default=None, max_length=TITLE_MAX_LENGTH)
    developer: Optional[Union[str, List[str]]] = None
    due_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("date", "due_date"),
    )
    time_tracked: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    type: Optional[TaskType] = None
    estimated_sp: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)
    actual_sp: Optional[int] = Field(default=None, ge=0, le=SQL_INT_MAX)

    @field_validator("status", "time_tracked")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may not be null")
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_present_and_not_past(cls, v: Optional[date], info: ValidationInfo) -> Optional[date]:
        if v is None:
            raise ValueError("may not be null")
        return _check_due_date(v, info)

    @field_validator("developer")
    @classmethod
    def developer_fits_column(cls, v: Union[str, List[str], None]) -> Union[str, List[str], None]:
        if v is None:
            return v
        stored = join_assignees(v) if isinstance(v, list) else v
        if len(stored) > ASSIGNEE_MAX_LENGTH:
            raise ValueError(f"must be at most {ASSIGNEE_MAX_LENGTH} characters once joined")
        return v

    def assignee_text(self) -> str:
        """The developer value in stored (delimited) form."""
        if self.developer is None:
            return ""
        if isinstance(self.developer, list):
            return join_assignees(self.developer)
        return self.developer


class TaskQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    search: Optional[str] = None
    sort_by: Optional[Literal[SORTABLE_FIELDS]] = None
    order_direction: Optional[Literal["asc", "desc"]] = None


class BulkDeleteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ids: List[Annotated[StrictInt, Field(ge=SQL_INT_MIN, le=SQL_INT_MAX)]] = Field(min_length=1)


class ReportFilters(BaseModel):
    """Filter parameters shared by report export and preview."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    assigne: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("assigne", "assignee"),
    )
    start: Optional[date] = None
    end: Optional[date] = None
    min: Optional[float] = None
    max: Optional[float] = None
    status: Optional[str] = None
    priority: Optional[str] = None

    def applied(self) -> Dict[str, Any]:
        """The filters actually supplied, JSON-ready."""
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Validation functions
# ---------------------------------------------------------------------------

def _violations(exc: PydanticValidationError) -> List[Dict[str, str]]:
    out = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        out.append({"field": field, "error": err.get("msg", "invalid")})
    return out


def _validate(model: type, payload: Optional[Mapping[str, Any]], message: str, **context: Any):
    try:
        return model.model_validate(dict(payload or {}), context=context or None)
    except PydanticValidationError as e:
        raise ValidationError(message, validation_errors=_violations(e), error=str(e)) from e


def validate_create(payload: Optional[Mapping[str, Any]], today: Optional[date] = None) -> TaskCreate:
    return _validate(TaskCreate, payload, "Validation failed", today=today)


def validate_update(payload: Optional[Mapping[str, Any]], today: Optional[date] = None) -> TaskUpdate:
    return _validate(TaskUpdate, payload, "Validation failed", today=today)


def validate_query(params: Optional[Mapping[str, Any]]) -> TaskQuery:
    return _validate(TaskQuery, params, "Invalid query parameters")


def validate_bulk_delete(payload: Optional[Mapping[str, Any]]) -> BulkDeleteRequest:
    return _validate(BulkDeleteRequest, payload, "Validation failed")


def validate_report_filters(params: Optional[Mapping[str, Any]]) -> ReportFilters:
    return _validate(ReportFilters, params, "Invalid filter parameters")
