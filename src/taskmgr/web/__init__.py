"""HTTP and WebSocket surface."""

from .server import WebSocketHub, create_app

__all__ = ["WebSocketHub", "create_app"]
