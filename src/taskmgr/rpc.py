"""Inter-process RPC: call outcomes, the JSON envelope, and the server-side dispatcher.

Requests are single-variant JSON objects in the form ``{"GetTasksByStatus": "Pending"}``.
Variants without a payload may also be sent as a bare string (``"GetStatistics"``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from .models import TaskStatus

if TYPE_CHECKING:  # pragma: no cover
    from .service import TaskManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RPC_TIMEOUT = 30.0


class SendOutcome(str, Enum):
    SUCCESS = "Success"
    TIMEOUT = "Timeout"
    OFFLINE = "Offline"
    DESERIALIZATION_ERROR = "DeserializationError"


@dataclass
class SendResult(Generic[T]):
    """Outcome of a call to another process."""

    outcome: SendOutcome
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is SendOutcome.SUCCESS

    @classmethod
    def success(cls, value: T) -> "SendResult[T]":
        return cls(SendOutcome.SUCCESS, value=value)

    @classmethod
    def timeout(cls, error: Optional[str] = None) -> "SendResult[T]":
        return cls(SendOutcome.TIMEOUT, error=error)

    @classmethod
    def offline(cls, error: Optional[str] = None) -> "SendResult[T]":
        return cls(SendOutcome.OFFLINE, error=error)

    @classmethod
    def deserialization_error(cls, error: str) -> "SendResult[T]":
        return cls(SendOutcome.DESERIALIZATION_ERROR, error=error)

    def describe(self) -> str:
        if self.outcome is SendOutcome.SUCCESS:
            return "ok"
        if self.outcome is SendOutcome.TIMEOUT:
            return "Timeout connecting to storage"
        if self.outcome is SendOutcome.OFFLINE:
            detail = f": {self.error}" if self.error else ""
            return f"Storage service is offline{detail}"
        return f"Failed to deserialize tasks: {self.error}"


class RpcError(Exception):
    """An RPC request that cannot be served; ``status`` is the HTTP status to reply with."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


def envelope(name: str, payload: Any = None) -> Any:
    """Build a request envelope; ``payload`` must already be JSON-compatible."""
    return {name: {} if payload is None else payload}


def parse_envelope(body: Any) -> Tuple[str, Any]:
    if isinstance(body, str) and body:
        return body, None
    if isinstance(body, dict) and len(body) == 1:
        name, payload = next(iter(body.items()))
        return str(name), payload
    raise RpcError("RPC request must be a single-variant object")


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    response_type: Type[T],
    json: Any = None,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> SendResult[T]:
    """Issue one request and fold every failure into a :class:`SendResult`."""
    try:
        response = await client.request(method, url, json=json, timeout=timeout)
    except httpx.TimeoutException:
        logger.warning("Timeout after %ss calling %s %s", timeout, method, url)
        return SendResult.timeout(f"timeout after {timeout}s")
    except httpx.TransportError as exc:
        logger.warning("Transport error calling %s %s: %s", method, url, exc)
        return SendResult.offline(str(exc))
    if not response.is_success:
        return SendResult.offline(f"HTTP {response.status_code}")
    try:
        value = TypeAdapter(response_type).validate_json(response.content)
    except ValidationError as exc:
        return SendResult.deserialization_error(str(exc))
    return SendResult.success(value)


_LOCAL_ONLY = {"GetStatistics"}


async def dispatch(manager: "TaskManager", body: Any, *, remote: bool) -> Any:
    """Serve one RPC envelope against ``manager`` and return a JSON-compatible result."""
    name, payload = parse_envelope(body)
    if remote and name in _LOCAL_ONLY:
        raise RpcError(f"{name} is only available to local callers", status=403)
    if name == "GetStatistics":
        return manager.get_statistics().model_dump(mode="json")
    if name == "GetTasksByStatus":
        try:
            status = TaskStatus(payload)
        except (TypeError, ValueError):
            raise RpcError(f"Unknown task status: {payload!r}") from None
        return [task.model_dump(mode="json") for task in manager.get_tasks_by_status(status)]
    raise RpcError(f"Unknown RPC request: {name}")
