import json

import pytest
from fastapi.testclient import TestClient

from taskmgr.models import Task
from taskmgr.rpc import SendResult
from taskmgr.web.server import WS_PATH, create_app

from .fakes import FakeStorage


@pytest.fixture()
def app(settings, storage):
    return create_app(settings, storage=storage)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _create(client, title="A", **extra):
    response = client.post("/api/tasks", json={"title": title, "description": "d", **extra})
    assert response.status_code == 200
    return response.json()


def test_startup_seeds_registry(client):
    tasks = client.get("/api/tasks").json()

    assert [task["title"] for task in tasks] == ["Welcome Task"]


def test_meta(client):
    assert client.get("/api/meta").json()["name"] == "test-manager"


def test_create_and_fetch(client, storage):
    body = _create(client, assigned_to="carol")

    assert body["success"] is True
    assert body["storage_status"] is True
    assert body["task"]["status"] == "Pending"
    assert storage.added[0].id == body["task"]["id"]

    fetched = client.get(f"/api/tasks/{body['task']['id']}").json()
    assert fetched["task"] == body["task"]
    assert fetched["message"] == "Task found"


def test_missing_task_is_a_structured_response(client):
    response = client.get("/api/tasks/does-not-exist")

    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "task": None,
        "storage_status": True,
        "message": "Task not found",
    }


def test_update_status_both_routes(client):
    task_id = _create(client)["task"]["id"]

    put = client.put(f"/api/tasks/{task_id}/status", json={"new_status": "Completed"}).json()
    assert put["task"]["status"] == "Completed"

    post = client.post("/api/tasks/status", json={"task_id": task_id, "new_status": "Pending"}).json()
    assert post["task"]["status"] == "Pending"

    missing = client.post("/api/tasks/status", json={"task_id": "nope", "new_status": "Pending"}).json()
    assert missing["success"] is False
    assert missing["storage_status"] is False


def test_invalid_status_is_rejected_by_validation(client):
    task_id = _create(client)["task"]["id"]

    response = client.put(f"/api/tasks/{task_id}/status", json={"new_status": "Done"})

    assert response.status_code == 422


def test_rpc_endpoints(client):
    task_id = _create(client)["task"]["id"]
    client.put(f"/api/tasks/{task_id}/status", json={"new_status": "Completed"})

    stats = client.post("/rpc/local", json={"GetStatistics": {}}).json()
    assert stats["total_tasks"] == 2
    assert stats["completed_tasks"] == 1
    assert stats["pending_tasks"] == 1

    completed = client.post("/rpc/remote", json={"GetTasksByStatus": "Completed"}).json()
    assert [task["id"] for task in completed] == [task_id]

    refused = client.post("/rpc/remote", json={"GetStatistics": {}})
    assert refused.status_code == 403
    assert "error" in refused.json()

    bad = client.post("/rpc/local", content=b"not json", headers={"content-type": "application/json"})
    assert bad.status_code == 400

    nested = client.post("/rpc/local", content=b"[" * 100000, headers={"content-type": "application/json"})
    assert nested.status_code == 400
    assert "error" in nested.json()


def test_storage_failure_is_reported_not_raised(settings):
    storage = FakeStorage(add_result=SendResult.offline("connection refused"))
    with TestClient(create_app(settings, storage=storage)) as client:
        body = _create(client)
        assert body["success"] is True
        assert body["storage_status"] is False
        assert len(client.get("/api/tasks").json()) == 2


def test_startup_restores_pending_tasks(settings):
    stored = Task(id="persisted", title="from storage", description="", created_at=1)
    with TestClient(create_app(settings, storage=FakeStorage(pending=[stored]))) as client:
        titles = [task["title"] for task in client.get("/api/tasks").json()]
    assert titles == ["Welcome Task", "from storage"]


def test_websocket_subscribe_receives_snapshot_and_updates(client, app):
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_bytes(b'{"Subscribe": {"client_id": "web"}}')
        snapshot = json.loads(ws.receive_bytes())
        assert [task["title"] for task in snapshot] == ["Welcome Task"]

        created = _create(client, title="live")
        update = json.loads(ws.receive_bytes())
        assert update["id"] == created["task"]["id"]

        client.put(f"/api/tasks/{update['id']}/status", json={"new_status": "InProgress"})
        assert json.loads(ws.receive_bytes())["status"] == "InProgress"

    manager = app.state.manager
    assert len(app.state.hub) == 0
    assert len(manager.subscribers) == 0


def test_websocket_garbage_keeps_connection_open(client):
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_bytes(b"garbage")
        ws.send_text('{"Subscribe": {"client_id": "text-frame"}}')
        ws.send_bytes(b'{"Subscribe": {"client_id": "web"}}')
        snapshot = json.loads(ws.receive_bytes())
        assert len(snapshot) == 1


def test_websocket_deeply_nested_frame_is_dropped(client):
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_bytes(b"[" * 100000)
        ws.send_bytes(b'{"Subscribe": {"client_id": "web"}}')
        snapshot = json.loads(ws.receive_bytes())
        assert [task["title"] for task in snapshot] == ["Welcome Task"]
