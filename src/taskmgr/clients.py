"""Typed clients for the task-manager and task-storage interfaces."""

from __future__ import annotations

from typing import List, Optional

import httpx

from .models import NewTaskRequest, StatusChange, Task, TaskManagerStats, TaskResponse, TaskStatus
from .rpc import DEFAULT_RPC_TIMEOUT, SendResult, envelope, send


class _BaseClient:
    def __init__(self, base_url: str, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


class TaskManagerClient(_BaseClient):
    """Calls a running task manager over its HTTP routes and RPC endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> None:
        super().__init__(base_url, client=client)
        self.timeout = timeout

    async def create_task(self, request: NewTaskRequest) -> SendResult[TaskResponse]:
        return await send(
            self._client,
            "POST",
            self._url("/api/tasks"),
            response_type=TaskResponse,
            json=request.model_dump(mode="json"),
            timeout=self.timeout,
        )

    async def get_all_tasks(self) -> SendResult[List[Task]]:
        return await send(
            self._client, "GET", self._url("/api/tasks"), response_type=List[Task], timeout=self.timeout
        )

    async def get_task(self, task_id: str) -> SendResult[TaskResponse]:
        return await send(
            self._client,
            "GET",
            self._url(f"/api/tasks/{task_id}"),
            response_type=TaskResponse,
            timeout=self.timeout,
        )

    async def update_task_status(self, task_id: str, new_status: TaskStatus) -> SendResult[TaskResponse]:
        return await send(
            self._client,
            "PUT",
            self._url(f"/api/tasks/{task_id}/status"),
            response_type=TaskResponse,
            json=StatusChange(new_status=new_status).model_dump(mode="json"),
            timeout=self.timeout,
        )

    async def get_statistics(self) -> SendResult[TaskManagerStats]:
        return await send(
            self._client,
            "POST",
            self._url("/rpc/local"),
            response_type=TaskManagerStats,
            json=envelope("GetStatistics"),
            timeout=self.timeout,
        )

    async def get_tasks_by_status(self, status: TaskStatus) -> SendResult[List[Task]]:
        return await send(
            self._client,
            "POST",
            self._url("/rpc/local"),
            response_type=List[Task],
            json=envelope("GetTasksByStatus", status.value),
            timeout=self.timeout,
        )

    async def get_tasks_by_status_remote(self, status: TaskStatus) -> SendResult[List[Task]]:
        return await send(
            self._client,
            "POST",
            self._url("/rpc/remote"),
            response_type=List[Task],
            json=envelope("GetTasksByStatus", status.value),
            timeout=self.timeout,
        )


class TaskStorageClient(_BaseClient):
    """Remote task-storage process, reached by POSTing RPC envelopes to ``<url>/rpc``."""

    async def add_task(self, task: Task, *, timeout: float) -> SendResult[bool]:
        return await send(
            self._client,
            "POST",
            self._url("/rpc"),
            response_type=bool,
            json=envelope("AddTask", task.model_dump(mode="json")),
            timeout=timeout,
        )

    async def get_tasks_by_status(self, status: TaskStatus, *, timeout: float) -> SendResult[List[Task]]:
        return await send(
            self._client,
            "POST",
            self._url("/rpc"),
            response_type=List[Task],
            json=envelope("GetTasksByStatus", status.value),
            timeout=timeout,
        )
