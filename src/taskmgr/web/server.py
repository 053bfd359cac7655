"""FastAPI app exposing the task manager over HTTP, WebSocket and RPC."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState

from .. import __version__
from ..config import Settings
from ..models import NewTaskRequest, StatusChange, Task, TaskResponse, TaskStatusUpdateRequest
from ..persistence import TaskStorage, build_storage
from ..rpc import RpcError, dispatch
from ..service import TaskManager, WsMessageKind

logger = logging.getLogger(__name__)

WS_PATH = "/ws/tasks"

_UNSET: Any = object()


class WebSocketHub:
    """Assigns channel ids to open sockets and pushes bytes to them."""

    def __init__(self) -> None:
        self._sockets: Dict[int, WebSocket] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._sockets)

    def register(self, websocket: WebSocket) -> int:
        channel_id = next(self._ids)
        self._sockets[channel_id] = websocket
        return channel_id

    def release(self, channel_id: int) -> None:
        self._sockets.pop(channel_id, None)

    async def send(self, channel_id: int, payload: bytes) -> bool:
        websocket = self._sockets.get(channel_id)
        if websocket is None or websocket.client_state != WebSocketState.CONNECTED:
            return False
        await websocket.send_bytes(payload)
        return True


router = APIRouter()


def _manager(connection: Request | WebSocket) -> TaskManager:
    return connection.app.state.manager


@router.get("/api/meta")
async def meta(request: Request) -> Dict[str, Any]:
    return {"name": _manager(request).settings.name, "version": __version__}


@router.post("/api/tasks", response_model=TaskResponse)
async def create_task(payload: NewTaskRequest, request: Request) -> TaskResponse:
    return await _manager(request).create_task(payload)


@router.get("/api/tasks", response_model=List[Task])
async def get_all_tasks(request: Request) -> List[Task]:
    return _manager(request).get_all_tasks()


@router.post("/api/tasks/status", response_model=TaskResponse)
async def update_task_status(payload: TaskStatusUpdateRequest, request: Request) -> TaskResponse:
    return await _manager(request).update_task_status(payload)


@router.get("/api/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, request: Request) -> TaskResponse:
    return _manager(request).get_task(task_id)


@router.put("/api/tasks/{task_id}/status", response_model=TaskResponse)
async def set_task_status(task_id: str, payload: StatusChange, request: Request) -> TaskResponse:
    update = TaskStatusUpdateRequest(task_id=task_id, new_status=payload.new_status)
    return await _manager(request).update_task_status(update)


async def _rpc(request: Request, *, remote: bool) -> JSONResponse:
    try:
        body = await request.json()
    except (ValueError, RecursionError):
        return JSONResponse({"error": "RPC body must be JSON"}, status_code=400)
    try:
        result = await dispatch(_manager(request), body, remote=remote)
    except RpcError as exc:
        return JSONResponse({"error": str(exc)}, status_code=exc.status)
    return JSONResponse(result)


@router.post("/rpc/local")
async def local_rpc(request: Request) -> JSONResponse:
    return await _rpc(request, remote=False)


@router.post("/rpc/remote")
async def remote_rpc(request: Request) -> JSONResponse:
    return await _rpc(request, remote=True)


@router.websocket(WS_PATH)
async def task_updates(websocket: WebSocket) -> None:
    manager = _manager(websocket)
    hub: WebSocketHub = websocket.app.state.hub
    await websocket.accept()
    channel_id = hub.register(websocket)
    logger.debug("WebSocket channel %s opened", channel_id)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("bytes")
            if data is not None:
                await manager.handle_websocket(channel_id, WsMessageKind.BINARY, data)
            else:
                await manager.handle_websocket(channel_id, WsMessageKind.OTHER)
    except WebSocketDisconnect:
        pass
    finally:
        hub.release(channel_id)
        await manager.handle_websocket(channel_id, WsMessageKind.CLOSE)


def create_app(settings: Optional[Settings] = None, *, storage: Optional[TaskStorage] = _UNSET) -> FastAPI:
    """Build the app; ``storage`` overrides the backend named in the settings (``None`` disables it)."""
    settings = settings or Settings.load()
    if storage is _UNSET:
        storage = build_storage(settings)
    hub = WebSocketHub()
    manager = TaskManager(settings, sender=hub, storage=storage)

    app = FastAPI(title=settings.name, version=__version__)
    app.state.settings = settings
    app.state.hub = hub
    app.state.manager = manager
    app.include_router(router)

    @app.on_event("startup")
    async def initialize() -> None:
        await manager.initialize()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await manager.close()

    return app
