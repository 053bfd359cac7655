"""Wire types shared by the HTTP, WebSocket and RPC surfaces."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ValidationError


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class Task(BaseModel):
    """A tracked unit of work."""

    id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    created_at: int
    assigned_to: Optional[str] = None


class NewTaskRequest(BaseModel):
    title: str
    description: str = ""
    assigned_to: Optional[str] = None


class TaskStatusUpdateRequest(BaseModel):
    task_id: str
    new_status: TaskStatus


class StatusChange(BaseModel):
    """Body of ``PUT /api/tasks/{task_id}/status``."""

    new_status: TaskStatus


class TaskResponse(BaseModel):
    success: bool
    task: Optional[Task] = None
    storage_status: bool
    message: str


class TaskManagerStats(BaseModel):
    total_tasks: int
    pending_tasks: int
    completed_tasks: int
    creation_count: int
    request_count: int


def dump_tasks(tasks: List[Task]) -> bytes:
    """Serialize a task list as a JSON array."""
    return json.dumps([task.model_dump(mode="json") for task in tasks]).encode("utf-8")


# WebSocket messages -------------------------------------------------------


class DecodeError(ValueError):
    """Raised when a WebSocket payload is not a known message."""


@dataclass(frozen=True)
class Subscribe:
    client_id: str


@dataclass(frozen=True)
class Unsubscribe:
    pass


WsMessage = Union[Subscribe, Unsubscribe]


class _SubscribeBody(BaseModel):
    client_id: str


def decode_ws_message(data: bytes) -> WsMessage:
    """Decode an externally tagged message such as ``{"Subscribe": {"client_id": "a"}}``."""
    try:
        raw: Any = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise DecodeError(f"payload is not JSON: {exc}") from exc

    if raw == "Unsubscribe":
        return Unsubscribe()
    if not isinstance(raw, dict) or len(raw) != 1:
        raise DecodeError("expected a single-variant object")

    variant, body = next(iter(raw.items()))
    if variant == "Subscribe":
        try:
            parsed = _SubscribeBody.model_validate(body)
        except ValidationError as exc:
            raise DecodeError(f"invalid Subscribe body: {exc.errors()}") from exc
        return Subscribe(client_id=parsed.client_id)
    if variant == "Unsubscribe" and body in (None, {}):
        return Unsubscribe()
    raise DecodeError(f"unknown message variant: {variant!r}")


def encode_ws_message(message: WsMessage) -> bytes:
    if isinstance(message, Subscribe):
        return json.dumps({"Subscribe": {"client_id": message.client_id}}).encode("utf-8")
    return json.dumps("Unsubscribe").encode("utf-8")
