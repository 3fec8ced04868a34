"""Bridge a WebSocket-style endpoint to a Redux-style action store.

Inbound frames become dispatched actions; dispatched actions addressed to
an endpoint (by namespace, endpoint identity or tag glob) go out as JSON.
"""

from wsbridge.core import (
    CLOSE,
    DEFAULT_NAMESPACE,
    MESSAGE,
    OPEN,
    SEND,
    Blob,
    BridgeOptions,
    Namespace,
    TagRouter,
    WebSocketBridge,
    create_bridge_middleware,
    tag_matches,
)
from wsbridge.exceptions import (
    BridgeError,
    ConfigurationError,
    InvalidActionError,
    NonConformingActionError,
    NormalizationError,
    StoreError,
    TransportError,
    TransportSendError,
)
from wsbridge.ports import Endpoint, Folder, Unfolder
from wsbridge.schemas import is_standard_action
from wsbridge.store import Store, StoreAPI, apply_middleware, create_store

__all__ = [
    "CLOSE",
    "DEFAULT_NAMESPACE",
    "MESSAGE",
    "OPEN",
    "SEND",
    "Blob",
    "BridgeOptions",
    "Namespace",
    "TagRouter",
    "WebSocketBridge",
    "create_bridge_middleware",
    "tag_matches",
    "BridgeError",
    "ConfigurationError",
    "InvalidActionError",
    "NonConformingActionError",
    "NormalizationError",
    "StoreError",
    "TransportError",
    "TransportSendError",
    "Endpoint",
    "Folder",
    "Unfolder",
    "is_standard_action",
    "Store",
    "StoreAPI",
    "apply_middleware",
    "create_store",
]
