"""Integration tests for todohub.api.app — REST envelopes, charts, reports, WebSocket."""

import io
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from todohub.api.app import create_app
from todohub.engine.config import LoggingConfig, RelayConfig, TodoHubConfig
from todohub.engine.logging import FileLogger
from todohub.reports.exporter import XLSX_CONTENT_TYPE


@pytest.fixture
def config():
    return TodoHubConfig(
        logging=LoggingConfig(enabled=False),
        relay=RelayConfig(mode="sync"),
    )


@pytest.fixture
def client(config, session_factory):
    app = create_app(config=config, session_factory=session_factory)
    with TestClient(app) as c:
        yield c


def _create(client, **payload):
    resp = client.post("/api/todo-lists", json=payload)
    assert resp.status_code == 201
    return resp.json()["data"]


class TestTodoLists:

    def test_create_defaults(self, client):
        resp = client.post("/api/todo-lists", json={})
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Todo list created successfully"
        assert body["data"]["title"] == "New Task"
        assert body["data"]["status"] == "pending"

    def test_create_without_body(self, client):
        assert client.post("/api/todo-lists").status_code == 201

    def test_create_validation_error(self, client):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        resp = client.post("/api/todo-lists", json={"due_date": yesterday, "status": "nope"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} >= {"due_date", "status"}

    def test_list_with_search(self, client):
        _create(client, task="Write docs", developer="Ana, Ben")
        _create(client, task="Fix bug")
        resp = client.get("/api/todo-lists", params={"search": "DOCS"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["message"] == "Todo lists retrieved successfully"
        assert body["search"] == "DOCS"
        assert body["total_count"] == 1
        assert body["data"][0]["developer"] == ["Ana", "Ben"]

    def test_list_invalid_sort(self, client):
        resp = client.get("/api/todo-lists", params={"sort_by": "bogus"})
        assert resp.status_code == 422
        assert resp.json()["message"] == "Invalid query parameters"

    def test_get(self, client):
        record = _create(client, task="Find me")
        resp = client.get(f"/api/todo-lists/{record['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"] == record

    def test_get_missing(self, client):
        resp = client.get("/api/todo-lists/999")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Todo list not found"}

    def test_get_non_integer_id(self, client):
        resp = client.get("/api/todo-lists/abc")
        assert resp.status_code == 422
        assert resp.json()["success"] is False

    @pytest.mark.parametrize("method", ["patch", "put"])
    def test_update(self, client, method):
        record = _create(client, task="Old")
        resp = getattr(client, method)(f"/api/todo-lists/{record['id']}", json={"task": "New"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Todo list updated successfully"
        assert body["data"]["title"] == "New"

    def test_update_missing(self, client):
        resp = client.patch("/api/todo-lists/999", json={"task": "x"})
        assert resp.status_code == 404

    def test_delete(self, client):
        record = _create(client)
        resp = client.delete(f"/api/todo-lists/{record['id']}")
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Todo list deleted successfully",
            "deleted_id": record["id"],
        }
        assert client.get(f"/api/todo-lists/{record['id']}").status_code == 404

    def test_bulk_delete(self, client):
        ids = [_create(client)["id"] for _ in range(2)]
        resp = client.post("/api/todo-lists/bulk-delete", json={"ids": ids + [9999]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Successfully deleted 2 todo list(s)"
        assert body["deleted_count"] == 2

    def test_bulk_delete_none_found(self, client):
        resp = client.post("/api/todo-lists/bulk-delete", json={"ids": [9999]})
        assert resp.status_code == 404
        assert resp.json()["message"] == "No todo lists found to delete"

    def test_bulk_delete_empty_ids(self, client):
        resp = client.post("/api/todo-lists/bulk-delete", json={"ids": []})
        assert resp.status_code == 422
        assert resp.json()["errors"]


class TestCharts:

    def test_status_chart(self, client):
        _create(client, status="open")
        body = client.get("/api/chart", params={"type": "status"}).json()
        assert body["data"]["status_summary"]["open"] == 1

    def test_assignee_chart(self, client):
        _create(client, developer="Ana", time_tracked=10)
        body = client.get("/api/chart", params={"type": "assignee"}).json()
        assert body["data"]["assignee_summary"] == [
            {"Ana": {"total_todos": 1, "total_pending_todos": 1, "total_timetracked_todos": 10}}
        ]

    @pytest.mark.parametrize("params", [{"type": "weekly"}, {}])
    def test_invalid_chart_type(self, client, params):
        resp = client.get("/api/chart", params=params)
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "message": "Invalid chart type",
            "error": "Supported types: status, priority, assignee",
        }


class TestReports:

    def test_export(self, client):
        _create(client, task="Report me", time_tracked=12)
        resp = client.get("/api/reports/todo-lists/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == XLSX_CONTENT_TYPE
        disposition = resp.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="todolist_report_')
        assert disposition.endswith('.xlsx"')
        ws = load_workbook(io.BytesIO(resp.content)).active
        assert ws["A2"].value == "Report me"
        assert ws["D5"].value == "12 minutes"

    def test_preview(self, client):
        _create(client, task="A", developer="Ana", time_tracked=5)
        _create(client, task="B", developer="Ben", time_tracked=7)
        resp = client.get("/api/reports/todo-lists/preview", params={"assigne": "ana"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["message"] == "Preview data retrieved successfully"
        assert [r["title"] for r in body["data"]["todos"]] == ["A"]
        assert body["data"]["summary"] == {"total_records": 1, "total_time_tracked": 5}
        assert body["data"]["filters_applied"] == {"assignee": "ana"}

    def test_invalid_filter(self, client):
        resp = client.get("/api/reports/todo-lists/preview", params={"start": "soon"})
        assert resp.status_code == 422
        assert resp.json()["message"] == "Invalid filter parameters"


class TestHealth:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["room"] == "todos"
        assert body["relay_mode"] == "sync"
        assert body["connections"] == 0


class TestWebSocket:

    def test_welcome_ping_and_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome = ws.receive_json()
            assert welcome["event"] == "notification"
            assert welcome["data"]["message"] == "Connected to TodoList real-time updates"

            ws.send_json({"event": "ping"})
            assert ws.receive_json()["data"]["message"] == "pong"

            record = _create(client, task="Live")
            created = ws.receive_json()
            assert created["event"] == "todoCreated"
            assert created["data"]["id"] == record["id"]

            client.delete(f"/api/todo-lists/{record['id']}")
            assert ws.receive_json()["event"] == "todoDeleted"
            assert ws.receive_json()["data"]["message"] == 'Todo "Live" was deleted'

    def test_invalid_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("not json")
            reply = ws.receive_json()
            assert reply["data"]["type"] == "error"
            assert reply["data"]["message"] == "Unknown message type: "

    def test_leave_room_stops_broadcasts(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"event": "leaveTodoRoom"})
            assert ws.receive_json()["data"]["message"] == "Left todo updates room"
            _create(client)
            ws.send_json({"event": "ping"})
            assert ws.receive_json()["data"]["message"] == "pong"


class TestLifespan:

    def test_event_log_written(self, tmp_path, session_factory):
        config = TodoHubConfig(
            logging=LoggingConfig(enabled=True, directory=str(tmp_path)),
            relay=RelayConfig(mode="sync"),
        )
        with TestClient(create_app(config=config, session_factory=session_factory)) as c:
            c.post("/api/todo-lists", json={"task": "Logged"})
        fl = FileLogger(log_dir=str(tmp_path))
        assert [e["event"] for e in fl.read_today("tasks", "execution")] == ["task_create"]
        events = [e["event"] for e in fl.read_today("system", "execution")]
        assert "server_started" in events


class TestFailureEnvelopes:

    def test_export_with_control_characters(self, client):
        _create(client, task="Ship\x01v1")
        resp = client.get("/api/reports/todo-lists/export")
        assert resp.status_code == 200
        ws = load_workbook(io.BytesIO(resp.content)).active
        assert ws["A2"].value == "Shipv1"

    def test_unexpected_error_uses_envelope(self, config, session_factory, monkeypatch):
        app = create_app(config=config, session_factory=session_factory)

        def broken(todo_id):
            raise OverflowError("driver blew up")

        monkeypatch.setattr(app.state.store, "get", broken)
        with TestClient(app, raise_server_exceptions=False) as c:
            resp = c.get("/api/todo-lists/1")
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "message": "Internal server error",
            "error": "driver blew up",
        }

    def test_huge_id_is_not_found(self, client):
        resp = client.get("/api/todo-lists/99999999999999999999")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Todo list not found"

    def test_huge_time_tracked_rejected(self, client):
        resp = client.post("/api/todo-lists", json={"time_tracked": 2 ** 70})
        assert resp.status_code == 422
        assert "time_tracked" in {e["field"] for e in resp.json()["errors"]}

    def test_huge_bulk_delete_id_rejected(self, client):
        resp = client.post("/api/todo-lists/bulk-delete", json={"ids": [2 ** 70]})
        assert resp.status_code == 422
