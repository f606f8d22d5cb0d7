"""
TodoHub HTTP + WebSocket surface — FastAPI application factory.

Run:
    todohub serve
or:
    uvicorn todohub.api.app:create_app --factory --port 3000

Routes (prefix from config.server.api_prefix, default /api):
    POST   /todo-lists                       create
    GET    /todo-lists                       list (search, sort_by, order_direction)
    GET    /todo-lists/{id}                  get
    PATCH  /todo-lists/{id}, PUT             partial update
    DELETE /todo-lists/{id}                  delete
    POST   /todo-lists/bulk-delete           bulk delete
    GET    /chart?type=status|priority|assignee
    GET    /reports/todo-lists/export        .xlsx download
    GET    /reports/todo-lists/preview       JSON rows + summary
    GET    /health                           (no prefix)
    WS     /ws                               real-time room
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from todohub import __version__
from todohub.api.envelope import error_envelope, failure, ok
from todohub.api.websocket import WebSocketConnection
from todohub.db.session import init_db
from todohub.engine.config import TodoHubConfig, get_config
from todohub.engine.errors import TodoHubError
from todohub.engine.logging import init_logging, log, log_system_event, shutdown_logging
from todohub.realtime.gateway import BroadcastGateway
from todohub.realtime.relay import EventRelay
from todohub.reports.exporter import XLSX_CONTENT_TYPE, ReportExporter, export_filename
from todohub.tasks.aggregation import AggregationEngine
from todohub.tasks.filters import FilterCriteria
from todohub.tasks.store import TaskStore

logger = logging.getLogger("todohub.api.app")


def create_app(
    config: Optional[TodoHubConfig] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    relay: Optional[EventRelay] = None,
) -> FastAPI:
    """
    Wire store, relay, gateway, aggregation and exporter into a FastAPI app.

    Args:
        config: Loaded configuration (defaults to ``get_config()``).
        session_factory: Persistence collaborator; built from ``config.database``
            when omitted.
        relay: Event Relay; built from ``config.relay`` when omitted.
    """
    config = config or get_config()
    if session_factory is None:
        session_factory = init_db(
            config.database.url,
            create_tables=config.database.create_tables,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            pool_timeout=config.database.pool_timeout,
            pool_recycle=config.database.pool_recycle,
            pool_pre_ping=config.database.pool_pre_ping,
        )
    relay = relay or EventRelay(mode=config.relay.mode, max_queue_size=config.relay.max_queue_size)
    gateway = BroadcastGateway(relay, room=config.realtime.room)
    store = TaskStore(session_factory, relay)
    aggregation = AggregationEngine(session_factory)
    exporter = ReportExporter(
        store,
        sheet_title=config.reports.sheet_title,
        max_column_width=config.reports.max_column_width,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if config.logging.enabled:
            init_logging(
                log_dir=config.logging.directory,
                flush_interval_ms=config.logging.async_queue.flush_interval_ms,
                flush_batch_size=config.logging.async_queue.flush_batch_size,
                max_queue_size=config.logging.async_queue.max_queue_size,
            )
        relay.start()
        log(log_system_event("server_started", details={"environment": config.environment}))
        logger.info("TodoHub %s started (%s)", __version__, config.environment)
        yield
        relay.stop()
        log(log_system_event("server_stopped"))
        shutdown_logging()

    app = FastAPI(
        title="TodoList REST API",
        description="Todo list CRUD, chart summaries, Excel export and real-time updates",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.realtime.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store
    app.state.relay = relay
    app.state.gateway = gateway
    app.state.aggregation = aggregation
    app.state.exporter = exporter

    # ── Error normalization ──

    @app.exception_handler(TodoHubError)
    async def handle_todohub_error(request: Request, exc: TodoHubError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=error_envelope(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "error": err.get("msg", "invalid")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=422, content=failure("Validation failed", errors=errors))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed unexpectedly", request.method, request.url.path)
        return JSONResponse(status_code=500, content=failure("Internal server error", str(exc)))

    router = APIRouter(prefix=config.server.api_prefix)

    # ── Todo lists ──

    @router.post("/todo-lists", status_code=201, tags=["Todo Lists"])
    def create_todo(payload: Optional[Dict[str, Any]] = Body(default=None)):
        return ok("Todo list created successfully", store.create(payload))

    @router.get("/todo-lists", tags=["Todo Lists"])
    def list_todos(request: Request):
        params = dict(request.query_params)
        rows = store.list(params)
        return ok(
            "Todo lists retrieved successfully",
            rows,
            search=params.get("search"),
            total_count=len(rows),
        )

    @router.post("/todo-lists/bulk-delete", tags=["Todo Lists"])
    def bulk_delete_todos(payload: Dict[str, Any] = Body(...)):
        result = store.bulk_delete(payload)
        return ok(f"Successfully deleted {result['deleted_count']} todo list(s)", **result)

    @router.get("/todo-lists/{todo_id}", tags=["Todo Lists"])
    def get_todo(todo_id: int):
        return ok("Todo list retrieved successfully", store.get(todo_id))

    @router.patch("/todo-lists/{todo_id}", tags=["Todo Lists"])
    @router.put("/todo-lists/{todo_id}", tags=["Todo Lists"])
    def update_todo(todo_id: int, payload: Optional[Dict[str, Any]] = Body(default=None)):
        return ok("Todo list updated successfully", store.update(todo_id, payload))

    @router.delete("/todo-lists/{todo_id}", tags=["Todo Lists"])
    def delete_todo(todo_id: int):
        return ok("Todo list deleted successfully", deleted_id=store.delete(todo_id))

    # ── Charts ──

    @router.get("/chart", tags=["Charts"])
    def chart(type: Optional[str] = None):
        return aggregation.chart(type or "")

    # ── Reports ──

    @router.get("/reports/todo-lists/export", tags=["Reports"])
    def export_report(request: Request):
        criteria = FilterCriteria.from_params(dict(request.query_params))
        content = exporter.export_workbook(criteria)
        return Response(
            content=content,
            media_type=XLSX_CONTENT_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
        )

    @router.get("/reports/todo-lists/preview", tags=["Reports"])
    def preview_report(request: Request):
        criteria = FilterCriteria.from_params(dict(request.query_params))
        return ok("Preview data retrieved successfully", exporter.preview(criteria))

    app.include_router(router)

    # ── Health ──

    @app.get("/health", tags=["System"])
    def health():
        return {
            "status": "healthy",
            "version": __version__,
            "connections": gateway.connected_count,
            "room": gateway.room,
            "room_members": gateway.room_count,
            "relay_mode": relay.mode,
            "relay_pending": relay.pending_count,
            "relay_dropped": relay.dropped_count,
        }

    # ── Real-time ──

    @app.websocket("/ws")
    async def realtime(websocket: WebSocket):
        await websocket.accept()
        connection = WebSocketConnection(websocket, asyncio.get_running_loop())
        writer = asyncio.create_task(connection.run_writer())
        gateway.connect(connection)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = json.loads(raw)
                except json.JSONDecodeError:
                    frame = None
                if not isinstance(frame, dict):
                    gateway.handle_message(connection.id, "", None)
                    continue
                gateway.handle_message(connection.id, str(frame.get("event", "")), frame.get("data"))
        except WebSocketDisconnect:
            pass
        finally:
            gateway.disconnect(connection.id)
            connection.close()
            await writer

    return app
