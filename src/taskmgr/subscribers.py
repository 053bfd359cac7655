"""Subscriber directory and the broadcaster that fans task updates out to it."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Protocol

from .models import Task, dump_tasks

logger = logging.getLogger(__name__)


class ChannelSender(Protocol):
    """Push primitive for real-time channels."""

    async def send(self, channel_id: int, payload: bytes) -> bool:  # pragma: no cover - interface
        """Deliver ``payload`` to one channel, returning False when it could not be sent."""


class SubscriberDirectory:
    """Maps channel ids to the client id that subscribed on them."""

    def __init__(self) -> None:
        self._channels: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, channel_id: object) -> bool:
        return channel_id in self._channels

    def subscribe(self, channel_id: int, client_id: str) -> None:
        self._channels[channel_id] = client_id

    def unsubscribe(self, channel_id: int) -> bool:
        return self._channels.pop(channel_id, None) is not None

    def on_channel_closed(self, channel_id: int) -> bool:
        return self.unsubscribe(channel_id)

    def snapshot(self) -> Dict[int, str]:
        return dict(self._channels)

    def channels_for(self, client_id: str) -> List[int]:
        return [channel for channel, owner in self._channels.items() if owner == client_id]


class UpdateBroadcaster:
    def __init__(self, directory: SubscriberDirectory, sender: ChannelSender) -> None:
        self.directory = directory
        self.sender = sender

    async def _deliver(self, channel_id: int, payload: bytes) -> bool:
        try:
            delivered = bool(await self.sender.send(channel_id, payload))
        except Exception as exc:
            logger.warning("Send to channel %s failed: %s", channel_id, exc)
            return False
        if not delivered:
            logger.debug("Channel %s did not accept the update", channel_id)
        return delivered

    async def send_snapshot(self, channel_id: int, tasks: List[Task]) -> bool:
        """Initial sync: push the full task list to a single channel."""
        return await self._deliver(channel_id, dump_tasks(tasks))

    async def broadcast(self, task: Task) -> int:
        """Send ``task`` to every subscribed channel; returns how many deliveries succeeded."""
        channels = list(self.directory.snapshot())
        if not channels:
            return 0
        payload = task.model_dump_json().encode("utf-8")
        results = await asyncio.gather(*(self._deliver(channel, payload) for channel in channels))
        return sum(1 for ok in results if ok)
