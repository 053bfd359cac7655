"""Persistence bridge: best-effort replication of task mutations to a storage backend."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol

from ..models import Task, TaskStatus
from ..rpc import SendResult

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_TIMEOUT = 5.0


class TaskStorage(Protocol):
    """Interface of the storage collaborator."""

    async def add_task(self, task: Task, *, timeout: float) -> SendResult[bool]:  # pragma: no cover - interface
        ...

    async def get_tasks_by_status(
        self, status: TaskStatus, *, timeout: float
    ) -> SendResult[List[Task]]:  # pragma: no cover - interface
        ...

    async def close(self) -> None:  # pragma: no cover - interface
        ...


class PersistenceBridge:
    """Mirrors tasks to storage with a bounded wait.

    Failures come back as :class:`SendResult` values; nothing here raises into the
    mutation path, and nothing is retried.
    """

    def __init__(self, storage: Optional[TaskStorage], *, timeout: float = DEFAULT_STORAGE_TIMEOUT) -> None:
        self.storage = storage
        self.timeout = timeout

    async def store(self, task: Task) -> SendResult[bool]:
        if self.storage is None:
            return SendResult.offline("no storage configured")
        try:
            result = await asyncio.wait_for(self.storage.add_task(task, timeout=self.timeout), self.timeout)
        except asyncio.TimeoutError:
            result = SendResult.timeout(f"no reply within {self.timeout}s")
        except Exception as exc:
            logger.exception("Storage backend failed while storing task %s", task.id)
            result = SendResult.offline(str(exc))
        if not result.ok:
            logger.warning("Task %s was not persisted: %s", task.id, result.describe())
        return result

    async def load_pending(self) -> SendResult[List[Task]]:
        if self.storage is None:
            return SendResult.offline("no storage configured")
        try:
            return await asyncio.wait_for(
                self.storage.get_tasks_by_status(TaskStatus.PENDING, timeout=self.timeout), self.timeout
            )
        except asyncio.TimeoutError:
            return SendResult.timeout(f"no reply within {self.timeout}s")
        except Exception as exc:
            logger.exception("Storage backend failed while loading pending tasks")
            return SendResult.offline(str(exc))

    async def close(self) -> None:
        if self.storage is not None:
            await self.storage.close()
