"""Tests for error mapping and the log side channel of the gateway."""

from unittest.mock import MagicMock

import httpx
import pytest
import uvicorn
from fastapi.testclient import TestClient
from sqlalchemy import text

from tasks_api.errors import (
    STATUS_CODES,
    ErrorKind,
    StorageError,
    TaskNotFoundError,
)
from tasks_api.main import TasksServer, announce_startup, create_app


def _messages(shipped, level=None):
    return [record["message"] for record in shipped if level is None or record["level"] == level]


class TestErrorKinds:
    def test_status_codes(self):
        assert STATUS_CODES == {ErrorKind.NOT_FOUND: 404, ErrorKind.STORAGE_FAILURE: 500}

    def test_not_found_error(self):
        exc = TaskNotFoundError(7, "delete")
        assert exc.status_code == 404
        assert exc.message == "Task not found"
        assert exc.log_message == "Task not found for delete: ID 7"

    def test_storage_error_keeps_cause(self):
        cause = RuntimeError("connection reset")
        exc = StorageError("Error fetching tasks", cause)
        assert exc.status_code == 500
        assert exc.cause is cause
        assert "connection reset" not in exc.message


class TestStartupAnnouncement:
    def test_announce_startup_ships_info(self, app, client, drain, shipped):
        async def announce():
            announce_startup(app, 3000)

        client.portal.call(announce)
        drain()
        assert "API started on port 3000" in _messages(shipped, "info")

    def test_lifespan_alone_does_not_announce(self, client, drain, shipped):
        drain()
        assert not any(m.startswith("API started") for m in _messages(shipped))

    async def test_server_announces_after_bind(self, monkeypatch):
        async def bound(self, sockets=None):
            self.started = True

        monkeypatch.setattr(uvicorn.Server, "startup", bound)
        app = MagicMock()
        server = TasksServer(uvicorn.Config(app, port=4321), app)

        await server.startup()
        app.state.shipper.info.assert_called_once_with("API started on port 4321")

    async def test_server_silent_when_bind_fails(self, monkeypatch):
        async def bind_failed(self, sockets=None):
            self.should_exit = True

        monkeypatch.setattr(uvicorn.Server, "startup", bind_failed)
        app = MagicMock()
        server = TasksServer(uvicorn.Config(app, port=4321), app)

        await server.startup()
        app.state.shipper.info.assert_not_called()


class TestShippedLogs:
    def test_create_ships_task(self, client, drain, shipped):
        task = client.post("/tasks", json={"title": "Buy milk"}).json()
        drain()

        record = next(r for r in shipped if r["message"] == "Task created")
        assert record["level"] == "info"
        assert record["task"] == task
        assert "timestamp" in record

    def test_update_and_delete_ship_info(self, client, drain, shipped):
        task_id = client.post("/tasks", json={"title": "Buy milk"}).json()["id"]
        client.put(f"/tasks/{task_id}", json={"title": "x", "description": "y", "completed": True})
        client.delete(f"/tasks/{task_id}")
        drain()

        messages = _messages(shipped, "info")
        assert "Task updated" in messages
        assert f"Task deleted: ID {task_id}" in messages

    def test_not_found_is_info(self, client, drain, shipped):
        client.get("/tasks/41")
        client.put("/tasks/42", json={"title": "x", "description": None, "completed": False})
        client.delete("/tasks/43")
        drain()

        messages = _messages(shipped, "info")
        assert "Task not found: ID 41" in messages
        assert "Task not found for update: ID 42" in messages
        assert "Task not found for delete: ID 43" in messages
        assert _messages(shipped, "error") == []

    def test_storage_failure_is_error_without_leaking_detail(self, client, drain, shipped):
        response = client.post("/tasks", json={})
        drain()

        assert response.json() == {"error": "Error creating task"}
        record = next(r for r in shipped if r["level"] == "error")
        assert record["message"] == "Error creating task"
        assert "NOT NULL" in record["error"].upper()

    def test_list_failure_when_table_missing(self, app, client, drain, shipped):
        async def drop_table():
            async with app.state.repository.engine.begin() as conn:
                await conn.execute(text("DROP TABLE tasks"))

        client.portal.call(drop_table)

        response = client.get("/tasks")
        assert response.status_code == 500
        assert response.json() == {"error": "Error fetching tasks"}
        drain()
        assert "Error fetching tasks" in _messages(shipped, "error")

        health = client.get("/health")
        assert health.status_code == 200

    def test_unexpected_exception_is_json_500(self, app, monkeypatch, shipped):
        async def broken():
            raise RuntimeError("cursor exploded")

        with TestClient(app, raise_server_exceptions=False) as client:
            monkeypatch.setattr(app.state.repository, "list_tasks", broken)

            response = client.get("/tasks")
            client.portal.call(app.state.shipper.drain)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        record = next(r for r in shipped if r["level"] == "error")
        assert record["message"] == "Internal server error"
        assert record["error"] == "cursor exploded"

    def test_malformed_body_is_400(self, client):
        response = client.put("/tasks/1", json=[1, 2])
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("unreachable", request=request)


def _server_error(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500)


class TestShippingFailure:
    @pytest.mark.parametrize(
        "handler",
        [_unreachable, _server_error],
        ids=["unreachable", "server-error"],
    )
    def test_response_unaffected(self, settings, handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app = create_app(settings, http_client=http_client)

        with TestClient(app) as client:
            created = client.post("/tasks", json={"title": "Buy milk"})
            assert created.status_code == 201
            task_id = created.json()["id"]

            assert client.get("/tasks/999").status_code == 404
            assert client.delete(f"/tasks/{task_id}").status_code == 204

    def test_no_url_configured(self, settings, caplog):
        settings.remote_log_url = None
        app = create_app(settings)

        with TestClient(app) as client:
            response = client.post("/tasks", json={"title": "Buy milk"})
            assert app.state.shipper.pending == 0

        assert response.status_code == 201
        assert "Remote log URL not configured" in caplog.text
