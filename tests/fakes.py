from __future__ import annotations

import asyncio
import itertools
from typing import Dict, List, Optional, Set, Tuple

from taskmgr.models import Task, TaskStatus
from taskmgr.rpc import SendResult


class SequentialIds:
    """Deterministic id factory: task-1, task-2, ..."""

    def __init__(self, prefix: str = "task") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


class FakeStorage:
    """In-memory storage collaborator with scriptable failures."""

    def __init__(
        self,
        *,
        pending: Optional[List[Task]] = None,
        add_result: Optional[SendResult[bool]] = None,
        load_result: Optional[SendResult[List[Task]]] = None,
        delay: float = 0.0,
    ) -> None:
        self.pending = list(pending or [])
        self.add_result = add_result
        self.load_result = load_result
        self.delay = delay
        self.added: List[Task] = []
        self.closed = False

    async def add_task(self, task: Task, *, timeout: float) -> SendResult[bool]:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.added.append(task)
        return self.add_result or SendResult.success(True)

    async def get_tasks_by_status(self, status: TaskStatus, *, timeout: float) -> SendResult[List[Task]]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.load_result is not None:
            return self.load_result
        return SendResult.success([task for task in self.pending if task.status == status])

    async def close(self) -> None:
        self.closed = True


class RecordingSender:
    """ChannelSender that records payloads per channel."""

    def __init__(self, *, refuse: Set[int] = frozenset(), explode: Set[int] = frozenset()) -> None:
        self.refuse = set(refuse)
        self.explode = set(explode)
        self.sent: List[Tuple[int, bytes]] = []

    async def send(self, channel_id: int, payload: bytes) -> bool:
        if channel_id in self.explode:
            raise ConnectionError(f"channel {channel_id} is gone")
        if channel_id in self.refuse:
            return False
        self.sent.append((channel_id, payload))
        return True

    def payloads_for(self, channel_id: int) -> List[bytes]:
        return [payload for channel, payload in self.sent if channel == channel_id]

    def by_channel(self) -> Dict[int, List[bytes]]:
        out: Dict[int, List[bytes]] = {}
        for channel, payload in self.sent:
            out.setdefault(channel, []).append(payload)
        return out
