"""
Task Store — CRUD semantics and field normalization for task records.

The store is the only writer of ``todo_lists``. Every successful mutation
commits first, then publishes a mutation event on the Event Relay; the
relay decouples the response from broadcast delivery.

Concurrency:
  - writes to the same id are serialized through a striped lock table;
    bulk operations take their stripes in sorted order
  - events are published before the stripes are released, so events for
    one id are published in commit order
  - each operation's read-then-act runs in a single transaction
  - reads take no store locks
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import ExitStack, contextmanager
from datetime import date
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from sqlalchemy import and_, asc, delete, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from todohub.db.models import TodoItem
from todohub.db.session import session_scope
from todohub.engine.errors import NotFoundError, PersistenceError, TodoHubError
from todohub.engine.logging import log, log_task_mutation
from todohub.realtime.events import EventKind
from todohub.realtime.relay import EventRelay
from todohub.tasks.enums import Status
from todohub.tasks.filters import FilterCriteria, build_filter
from todohub.tasks.helpers import format_date, format_enum_value, split_assignees
from todohub.tasks.schemas import (
    SQL_INT_MAX,
    SQL_INT_MIN,
    validate_bulk_delete,
    validate_create,
    validate_query,
    validate_update,
)

logger = logging.getLogger("todohub.tasks.store")

DEFAULT_TITLE = "New Task"
NOT_FOUND_MESSAGE = "Todo list not found"
LOCK_STRIPES = 64

# TaskUpdate field -> TodoItem column
_UPDATE_COLUMNS = {
    "task": "title",
    "due_date": "due_date",
    "time_tracked": "time_tracked",
    "status": "status",
    "priority": "priority",
    "type": "type",
    "estimated_sp": "estimated_sp",
    "actual_sp": "actual_sp",
}


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def to_list_row(item: TodoItem) -> Dict[str, Any]:
    """The listing projection of a record."""
    return {
        "id": item.id,
        "task": item.title,
        "developer": split_assignees(item.assignee),
        "date": format_date(item.due_date),
        "time_tracked": item.time_tracked,
        "status": format_enum_value(item.status),
        "status_raw": item.status,
        "priority": format_enum_value(item.priority),
        "type": format_enum_value(item.type),
        "estimated_sp": item.estimated_sp,
        "actual_sp": item.actual_sp,
    }


class TaskStore:
    """
    Args:
        session_factory: Callable returning a new SQLAlchemy Session.
        relay: Event Relay to publish mutation events on (optional).
        clock: Returns the server's current date; due dates before it are rejected.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        relay: Optional[EventRelay] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._session_factory = session_factory
        self._relay = relay
        self._clock = clock
        self._stripes = [threading.Lock() for _ in range(LOCK_STRIPES)]

    # ── Locking ──

    @contextmanager
    def _locked(self, ids: Iterable[int]) -> Iterator[None]:
        stripes = sorted({int(i) % LOCK_STRIPES for i in ids})
        with ExitStack() as stack:
            for index in stripes:
                stack.enter_context(self._stripes[index])
            yield

    @contextmanager
    def _transaction(self, operation: str, failure_message: str) -> Iterator[Session]:
        """Session scope that wraps storage failures in PersistenceError."""
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except TodoHubError:
            raise
        except SQLAlchemyError as e:
            logger.error("%s failed: %s", operation, e)
            raise PersistenceError(failure_message, operation=operation, error=str(e)) from e

    def _publish(self, kind: str, payload: Any) -> None:
        if self._relay is not None:
            self._relay.publish(kind, payload)

    # ── Create ──

    def create(self, payload: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Validate, apply defaults, insert, publish ``todo.created``."""
        data = validate_create(payload, today=self._clock())
        started = time.perf_counter()

        item = TodoItem(
            title=data.task or DEFAULT_TITLE,
            assignee=data.developer or "",
            due_date=data.due_date or self._clock(),
            time_tracked=data.time_tracked if data.time_tracked is not None else 0,
            status=_enum_value(data.status) or Status.PENDING.value,
            priority=_enum_value(data.priority),
            type=_enum_value(data.type),
            estimated_sp=data.estimated_sp,
            actual_sp=data.actual_sp,
        )
        with self._transaction("create", "Failed to create todo list") as session:
            session.add(item)
            session.flush()
            session.refresh(item)
            record = item.to_dict()

        log(log_task_mutation("create", [record["id"]], _elapsed_ms(started)))
        self._publish(EventKind.CREATED, record)
        return record

    # ── Read ──

    def list(self, query: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        All records matching ``query`` (search, sort_by, order_direction),
        reshaped into the listing projection.
        """
        params = validate_query(query)
        column = getattr(TodoItem, params.sort_by or "id")
        direction = desc if (params.order_direction or "desc") == "desc" else asc

        stmt = select(TodoItem)
        if params.search:
            stmt = stmt.where(TodoItem.title.icontains(params.search, autoescape=True))
        stmt = stmt.order_by(direction(column), direction(TodoItem.id))

        with self._transaction("list", "Failed to retrieve todo lists") as session:
            return [to_list_row(item) for item in session.scalars(stmt)]

    def get(self, todo_id: int) -> Dict[str, Any]:
        _require_storable_id(todo_id)
        with self._transaction("get", "Failed to retrieve todo list") as session:
            item = session.get(TodoItem, todo_id)
            if item is None:
                raise NotFoundError(NOT_FOUND_MESSAGE, record_id=todo_id)
            return item.to_dict()

    def query_for_report(
        self,
        criteria: Optional[FilterCriteria],
        case_insensitive: bool = True,
    ) -> List[Dict[str, Any]]:
        """Records matching the report criteria, due date ascending."""
        predicate = build_filter(criteria, case_insensitive=case_insensitive)
        stmt = select(TodoItem).order_by(asc(TodoItem.due_date), asc(TodoItem.id))
        if predicate:
            stmt = stmt.where(and_(*predicate))
        with self._transaction("report", "An error occurred while generating the report") as session:
            return [item.to_dict() for item in session.scalars(stmt)]

    # ── Update ──

    def update(self, todo_id: int, payload: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Apply only the fields present in ``payload`` and publish
        ``todo.updated`` with the post-mutation record.
        """
        data = validate_update(payload, today=self._clock())
        _require_storable_id(todo_id)
        started = time.perf_counter()
        changed: List[str] = []

        with self._locked([todo_id]):
            with self._transaction("update", "Failed to update todo list") as session:
                item = session.get(TodoItem, todo_id)
                if item is None:
                    raise NotFoundError(NOT_FOUND_MESSAGE, record_id=todo_id)

                for field in data.model_fields_set:
                    if field == "developer":
                        column, value = "assignee", data.assignee_text()
                    else:
                        column, value = _UPDATE_COLUMNS[field], _enum_value(getattr(data, field))
                    if getattr(item, column) != value:
                        setattr(item, column, value)
                        changed.append(column)

                session.flush()
                session.refresh(item)
                record = item.to_dict()

            log(log_task_mutation("update", [todo_id], _elapsed_ms(started), fields_changed=changed))
            self._publish(EventKind.UPDATED, record)
        return record

    # ── Delete ──

    def delete(self, todo_id: int) -> int:
        """Delete one record; publishes ``todo.deleted`` with its id and title."""
        _require_storable_id(todo_id)
        started = time.perf_counter()
        with self._locked([todo_id]):
            with self._transaction("delete", "Failed to delete todo list") as session:
                item = session.get(TodoItem, todo_id)
                if item is None:
                    raise NotFoundError(NOT_FOUND_MESSAGE, record_id=todo_id)
                title = item.title
                session.delete(item)

            log(log_task_mutation("delete", [todo_id], _elapsed_ms(started)))
            self._publish(EventKind.DELETED, {"id": todo_id, "title": title or None})
        return todo_id

    def bulk_delete(self, ids: Any) -> Dict[str, Any]:
        """
        Delete every record whose id is in ``ids`` in one statement.

        Raises:
            NotFoundError: if nothing was deleted. A partial match succeeds.
        """
        payload = ids if isinstance(ids, Mapping) else {"ids": list(ids)}
        requested = validate_bulk_delete(payload).ids
        started = time.perf_counter()

        with self._locked(requested):
            with self._transaction("bulk_delete", "Failed to delete todo lists") as session:
                result = session.execute(
                    delete(TodoItem).where(TodoItem.id.in_(requested)),
                    execution_options={"synchronize_session": False},
                )
                count = result.rowcount or 0
                if count == 0:
                    raise NotFoundError("No todo lists found to delete")

            log(log_task_mutation("bulk_delete", requested, _elapsed_ms(started)))
            self._publish(EventKind.BULK_DELETED, {"ids": requested, "count": count})
        return {"deleted_count": count, "deleted_ids": requested}


def _require_storable_id(todo_id: int) -> None:
    # ids outside the INTEGER column range cannot name a stored record
    if not SQL_INT_MIN <= todo_id <= SQL_INT_MAX:
        raise NotFoundError(NOT_FOUND_MESSAGE, record_id=todo_id)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
