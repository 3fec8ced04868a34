"""FastAPI/Starlette WebSocket adapted to the bridge endpoint contract."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from wsbridge.config import get_settings
from wsbridge.core.normalizer import Blob, is_buffer
from wsbridge.exceptions import TransportSendError
from wsbridge.infrastructure.logging import clear_log_context, set_log_context

logger = logging.getLogger("ws")


class WebSocketEndpoint:
    """Wraps one server-side WebSocket connection.

    ``send`` is synchronous for the bridge: it checks the connection state,
    raises ``TransportSendError`` when the socket is not open, and otherwise
    schedules the write. Writes go out in the order ``send`` was called.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.on_open: Callable[[], Any] | None = None
        self.on_close: Callable[[], Any] | None = None
        self.on_message: Callable[[Any], Any] | None = None

        self._closed = False
        self._sending: set[asyncio.Task[None]] = set()
        self._last_send: asyncio.Task[None] | None = None

    @property
    def ws_id(self) -> str:
        return hex(id(self.websocket))

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    def send(self, payload: Any) -> None:
        if not self.is_open:
            raise TransportSendError("websocket is not open", details={"endpoint_id": self.ws_id})
        if not isinstance(payload, (str, Blob)) and not is_buffer(payload):
            raise TransportSendError(
                f"unsupported payload type {type(payload).__name__}",
                details={"endpoint_id": self.ws_id},
            )

        task = asyncio.get_running_loop().create_task(self._write(payload, self._last_send))
        self._last_send = task
        self._sending.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._sending.discard(t)
            if self._last_send is t:
                self._last_send = None
            with contextlib.suppress(asyncio.CancelledError):
                exc = t.exception()
                if exc is not None:
                    logger.error(
                        "WebSocket send failed",
                        extra={"service": "ws", "endpoint_id": self.ws_id, "error": str(exc)},
                        exc_info=exc,
                    )

        task.add_done_callback(_done)

    async def _write(self, payload: Any, previous: asyncio.Task[None] | None) -> None:
        if previous is not None:
            await asyncio.wait({previous})

        if isinstance(payload, str):
            await self.websocket.send_text(payload)
        elif isinstance(payload, Blob):
            await self.websocket.send_bytes(await payload.read())
        else:
            await self.websocket.send_bytes(bytes(payload))

    async def run(self, *, accept: bool = True) -> None:
        """Pump the connection until the client disconnects.

        Fires ``on_open`` once after accepting, ``on_message`` for every text
        or binary frame and ``on_close`` once when the connection ends.
        """
        set_log_context(endpoint_id=self.ws_id)
        if accept:
            await self.websocket.accept()

        logger.info("WebSocket connected", extra={"service": "ws", "endpoint_id": self.ws_id})
        self._fire(self.on_open)

        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info(
                        "WebSocket disconnected by client",
                        extra={"service": "ws", "endpoint_id": self.ws_id},
                    )
                    break

                data = message.get("text")
                if data is None:
                    data = message.get("bytes")
                if data is None:
                    continue
                self._fire(self.on_message, data)
        finally:
            self._closed = True
            try:
                self._fire(self.on_close)
            finally:
                await self._drain_sends()
                clear_log_context()

    async def _drain_sends(self) -> None:
        if not self._sending:
            return

        _done, pending = await asyncio.wait(
            set(self._sending),
            timeout=get_settings().ws_send_drain_timeout_seconds,
            return_when=asyncio.ALL_COMPLETED,
        )
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @staticmethod
    def _fire(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is not None:
            callback(*args)


async def serve_websocket(
    websocket: WebSocket,
    store_factory: Callable[[WebSocketEndpoint], Any],
) -> Any:
    """Bridge one connection: build its store around the endpoint, then pump it.

    Usage:
        @app.websocket("/ws")
        async def ws(websocket: WebSocket):
            await serve_websocket(
                websocket,
                lambda endpoint: create_store(reducer, middlewares=[WebSocketBridge(endpoint)]),
            )
    """
    endpoint = WebSocketEndpoint(websocket)
    store = store_factory(endpoint)
    await endpoint.run()
    return store
