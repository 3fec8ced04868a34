"""Bridge middleware: wires one endpoint into a store's dispatch chain.

Inbound:  endpoint callback -> normalize -> unfold -> store.dispatch
Outbound: store.dispatch -> SEND escape hatch | fold -> endpoint.send
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from wsbridge.core.adapter import TransportAdapter
from wsbridge.core.fold import resolve_folder, send_directive
from wsbridge.core.namespace import Namespace
from wsbridge.core.normalizer import normalize_payload, payload_kind
from wsbridge.core.options import BridgeOptions
from wsbridge.core.routing import TagRouter
from wsbridge.core.unfold import InboundTranslator
from wsbridge.exceptions import ConfigurationError
from wsbridge.infrastructure.logging import set_log_context
from wsbridge.ports import Action, Dispatch

logger = logging.getLogger("bridge")


class BridgeInstance:
    """One installed bridge: one endpoint, one namespace, one store reference."""

    def __init__(self, store: Any, adapter: TransportAdapter, options: BridgeOptions):
        self.store = store
        self.adapter = adapter
        self.options = options
        self.namespace = Namespace(options.namespace)
        self.router = TagRouter(options.tags)
        self.translator = InboundTranslator(options, self.namespace)
        self.folder = resolve_folder(options, self.router)

        self._in_flight: set[asyncio.Task[None]] = set()
        self._last_delivery: asyncio.Task[None] | None = None

        adapter.bind(self._on_open, self._on_close, self._on_message)

    @property
    def endpoint(self) -> Any:
        return self.adapter.endpoint

    def _extra(self, **fields: Any) -> dict[str, Any]:
        return {
            "service": "bridge",
            "namespace": self.namespace.prefix,
            "endpoint_id": self.adapter.endpoint_id,
            **fields,
        }

    # --- inbound ---

    def _on_open(self) -> None:
        logger.info("Endpoint opened", extra=self._extra())
        self.store.dispatch(self.translator.structural(self.namespace.open, self.endpoint))

    def _on_close(self) -> None:
        logger.info("Endpoint closed", extra=self._extra())
        self.store.dispatch(self.translator.structural(self.namespace.close, self.endpoint))

    def _on_message(self, raw: Any) -> asyncio.Task[None]:
        """Schedule translation of one inbound payload and return its task."""
        previous = self._last_delivery if self.options.ordered else None
        task = asyncio.get_running_loop().create_task(self._deliver(raw, previous))
        if self.options.ordered:
            self._last_delivery = task
        self._track_task(task)
        return task

    async def _deliver(self, raw: Any, previous: asyncio.Task[None] | None) -> None:
        # Runs in its own task, so the log context stays local to this message
        set_log_context(namespace=self.namespace.prefix)
        if previous is not None:
            # Waits for completion only; the previous task reports its own failure
            await asyncio.wait({previous})

        payload = await normalize_payload(raw, self.options.binary_type)
        action = self.translator.translate(payload, self.endpoint)
        logger.debug(
            "Dispatching inbound action",
            extra=self._extra(action_type=action["type"], payload_kind=payload_kind(payload)),
        )
        self.store.dispatch(action)

    def _track_task(self, task: asyncio.Task[None]) -> None:
        self._in_flight.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._in_flight.discard(t)
            if self._last_delivery is t:
                self._last_delivery = None
            with contextlib.suppress(asyncio.CancelledError):
                exc = t.exception()
                if exc is not None:
                    logger.error(
                        "Inbound message was not dispatched",
                        extra=self._extra(
                            error=str(exc),
                            error_code=getattr(exc, "code", None),
                        ),
                        exc_info=exc,
                    )

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait until every scheduled inbound message has been handled."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    # --- outbound ---

    def wrap(self, next_dispatch: Dispatch) -> Dispatch:
        def dispatch(action: Action) -> Any:
            self._transmit(action)
            return next_dispatch(action)

        return dispatch

    def _transmit(self, action: Any) -> None:
        if not isinstance(action, dict):
            return

        if action.get("type") == self.namespace.send:
            payload = action.get("payload")
            self.adapter.send(payload)
            logger.debug(
                "Raw payload sent",
                extra=self._extra(action_type=action["type"], payload_kind=payload_kind(payload)),
            )
            return

        wire = self.folder.select_and_serialize(action, self.endpoint)
        if wire is None:
            return
        self.adapter.send(wire)
        logger.debug(
            "Action sent",
            extra=self._extra(
                action_type=action.get("type"),
                directive=repr(send_directive(action)),
            ),
        )


class WebSocketBridge:
    """Store middleware bridging one endpoint.

    Usage:
        store = create_store(
            reducer,
            middlewares=[WebSocketBridge(lambda: endpoint, namespace="SERVER1/")],
        )
    """

    def __init__(
        self,
        endpoint_or_factory: Any,
        options: BridgeOptions | None = None,
        **overrides: Any,
    ):
        fields = {**dict(options), **overrides} if options is not None else overrides
        try:
            self.options = BridgeOptions(**fields)
        except ValidationError as exc:
            raise ConfigurationError(
                "Invalid bridge options",
                details={"errors": [str(error["msg"]) for error in exc.errors()]},
            ) from exc

        self._endpoint_or_factory = endpoint_or_factory
        self.instance: BridgeInstance | None = None

    def __call__(self, store: Any) -> Callable[[Dispatch], Dispatch]:
        if self.instance is not None:
            raise ConfigurationError(
                "Bridge middleware is already installed",
                details={"namespace": self.options.namespace},
            )
        adapter = TransportAdapter(self._endpoint_or_factory)
        self.instance = BridgeInstance(store, adapter, self.options)
        return self.instance.wrap


def create_bridge_middleware(endpoint_or_factory: Any, **options: Any) -> WebSocketBridge:
    """Create bridge middleware for ``endpoint_or_factory`` with the given options."""
    return WebSocketBridge(endpoint_or_factory, **options)
