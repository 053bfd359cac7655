"""The task manager: one owned state object behind every inbound operation."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from .config import Settings
from .models import (
    DecodeError,
    NewTaskRequest,
    Subscribe,
    Task,
    TaskManagerStats,
    TaskResponse,
    TaskStatus,
    TaskStatusUpdateRequest,
    Unsubscribe,
    decode_ws_message,
)
from .persistence import PersistenceBridge, TaskStorage
from .registry import TaskNotFound, TaskRegistry
from .rpc import SendResult
from .subscribers import ChannelSender, SubscriberDirectory, UpdateBroadcaster

logger = logging.getLogger(__name__)


class WsMessageKind(str, Enum):
    BINARY = "binary"
    CLOSE = "close"
    OTHER = "other"


def _message(base: str, storage: SendResult[bool]) -> str:
    if storage.ok:
        return base
    return f"{base} (storage: {storage.describe()})"


class TaskManager:
    """Registry, subscriber directory, broadcaster and persistence bridge for one process."""

    def __init__(
        self,
        settings: Settings,
        *,
        sender: ChannelSender,
        storage: Optional[TaskStorage] = None,
        registry: Optional[TaskRegistry] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or TaskRegistry()
        self.subscribers = SubscriberDirectory()
        self.broadcaster = UpdateBroadcaster(self.subscribers, sender)
        self.bridge = PersistenceBridge(storage, timeout=settings.storage.timeout)
        self._initialized = False

    async def initialize(self) -> None:
        """Seed the welcome task and pull pending tasks back from storage."""
        if self._initialized:
            return
        self._initialized = True
        seed = self.settings.seed
        if seed.enabled:
            self.registry.seed(seed.title, seed.description)

        result = await self.bridge.load_pending()
        if result.ok:
            count = self.registry.restore(result.value or [])
            logger.info("Loaded %d tasks from storage", count)
        else:
            logger.warning("Failed to load tasks from storage: %s", result.describe())

    async def close(self) -> None:
        await self.bridge.close()

    async def _replicate(self, task: Task) -> SendResult[bool]:
        # The store starts before the broadcast and is awaited after it.
        store = asyncio.create_task(self.bridge.store(task))
        await self.broadcaster.broadcast(task)
        return await store

    async def create_task(self, request: NewTaskRequest) -> TaskResponse:
        task = self.registry.create(request.title, request.description, request.assigned_to)
        storage = await self._replicate(task)
        return TaskResponse(
            success=True,
            task=task,
            storage_status=storage.ok,
            message=_message("Task created successfully", storage),
        )

    def get_all_tasks(self) -> List[Task]:
        return self.registry.get_all()

    def get_task(self, task_id: str) -> TaskResponse:
        try:
            task = self.registry.get(task_id)
        except TaskNotFound:
            return TaskResponse(success=False, task=None, storage_status=True, message="Task not found")
        return TaskResponse(success=True, task=task, storage_status=True, message="Task found")

    async def update_task_status(self, request: TaskStatusUpdateRequest) -> TaskResponse:
        try:
            task = self.registry.update_status(request.task_id, request.new_status)
        except TaskNotFound:
            return TaskResponse(success=False, task=None, storage_status=False, message="Task not found")
        storage = await self._replicate(task)
        return TaskResponse(
            success=True,
            task=task,
            storage_status=storage.ok,
            message=_message("Task updated successfully", storage),
        )

    def get_statistics(self) -> TaskManagerStats:
        return self.registry.statistics()

    def get_tasks_by_status(self, status: TaskStatus) -> List[Task]:
        return self.registry.get_by_status(status)

    async def handle_websocket(self, channel_id: int, kind: WsMessageKind, payload: bytes = b"") -> None:
        if kind is WsMessageKind.CLOSE:
            if self.subscribers.on_channel_closed(channel_id):
                logger.info("Channel %s closed; subscription removed", channel_id)
            return
        if kind is not WsMessageKind.BINARY:
            return

        try:
            message = decode_ws_message(payload)
        except DecodeError as exc:
            logger.debug("Dropping message on channel %s: %s", channel_id, exc)
            return

        if isinstance(message, Subscribe):
            self.subscribers.subscribe(channel_id, message.client_id)
            logger.info("Client %s subscribed on channel %s", message.client_id, channel_id)
            await self.broadcaster.send_snapshot(channel_id, self.get_all_tasks())
        elif isinstance(message, Unsubscribe):
            self.subscribers.unsubscribe(channel_id)
            logger.info("Channel %s unsubscribed", channel_id)
