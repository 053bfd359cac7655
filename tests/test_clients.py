import json

import httpx
import pytest

from taskmgr.clients import TaskManagerClient, TaskStorageClient
from taskmgr.models import NewTaskRequest, Task, TaskStatus
from taskmgr.rpc import SendOutcome

TASK = {
    "id": "t-1",
    "title": "A",
    "description": "",
    "status": "Pending",
    "created_at": 1,
    "assigned_to": None,
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_storage_add_task_sends_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=True)

    async with _client(handler) as http:
        storage = TaskStorageClient("http://storage:8001/", client=http)
        result = await storage.add_task(Task.model_validate(TASK), timeout=1)

    assert result.ok and result.value is True
    assert seen["url"] == "http://storage:8001/rpc"
    assert seen["body"] == {"AddTask": TASK}


@pytest.mark.asyncio
async def test_storage_get_tasks_by_status():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"GetTasksByStatus": "Pending"}
        return httpx.Response(200, json=[TASK])

    async with _client(handler) as http:
        result = await TaskStorageClient("http://storage", client=http).get_tasks_by_status(
            TaskStatus.PENDING, timeout=1
        )

    assert [task.id for task in result.value] == ["t-1"]


def _slow(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)


def _refused(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("refused", request=request)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler, outcome",
    [
        (_slow, SendOutcome.TIMEOUT),
        (_refused, SendOutcome.OFFLINE),
        (lambda request: httpx.Response(503, text="down"), SendOutcome.OFFLINE),
        (lambda request: httpx.Response(200, text="not json"), SendOutcome.DESERIALIZATION_ERROR),
        (lambda request: httpx.Response(200, json=[{"id": 1}]), SendOutcome.DESERIALIZATION_ERROR),
    ],
)
async def test_storage_failures_map_to_outcomes(handler, outcome):
    async with _client(handler) as http:
        result = await TaskStorageClient("http://storage", client=http).get_tasks_by_status(
            TaskStatus.PENDING, timeout=1
        )

    assert result.outcome is outcome
    assert not result.ok


@pytest.mark.asyncio
async def test_manager_client_routes():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        calls.append((request.method, request.url.path, body))
        if request.url.path == "/rpc/local" and "GetStatistics" in body:
            return httpx.Response(
                200,
                json={
                    "total_tasks": 1,
                    "pending_tasks": 1,
                    "completed_tasks": 0,
                    "creation_count": 1,
                    "request_count": 4,
                },
            )
        if request.url.path.startswith("/rpc") or request.method == "GET" and request.url.path == "/api/tasks":
            return httpx.Response(200, json=[TASK])
        return httpx.Response(
            200, json={"success": True, "task": TASK, "storage_status": True, "message": "ok"}
        )

    async with _client(handler) as http:
        client = TaskManagerClient("http://manager", client=http)
        assert (await client.create_task(NewTaskRequest(title="A"))).value.task.id == "t-1"
        assert len((await client.get_all_tasks()).value) == 1
        assert (await client.get_task("t-1")).value.success
        assert (await client.update_task_status("t-1", TaskStatus.COMPLETED)).ok
        assert (await client.get_statistics()).value.request_count == 4
        assert (await client.get_tasks_by_status(TaskStatus.PENDING)).ok
        assert (await client.get_tasks_by_status_remote(TaskStatus.PENDING)).ok

    assert calls == [
        ("POST", "/api/tasks", {"title": "A", "description": "", "assigned_to": None}),
        ("GET", "/api/tasks", None),
        ("GET", "/api/tasks/t-1", None),
        ("PUT", "/api/tasks/t-1/status", {"new_status": "Completed"}),
        ("POST", "/rpc/local", {"GetStatistics": {}}),
        ("POST", "/rpc/local", {"GetTasksByStatus": "Pending"}),
        ("POST", "/rpc/remote", {"GetTasksByStatus": "Pending"}),
    ]
