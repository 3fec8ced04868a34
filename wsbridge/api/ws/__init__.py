"""WebSocket API layer."""

from wsbridge.api.ws.endpoint import WebSocketEndpoint, serve_websocket

__all__ = [
    "WebSocketEndpoint",
    "serve_websocket",
]
