"""Bridge core: translation, routing and namespacing between an endpoint and a store."""

from wsbridge.core.adapter import TransportAdapter
from wsbridge.core.fold import FunctionFolder, JsonFolder, resolve_folder
from wsbridge.core.middleware import BridgeInstance, WebSocketBridge, create_bridge_middleware
from wsbridge.core.namespace import (
    CLOSE,
    DEFAULT_NAMESPACE,
    MESSAGE,
    OPEN,
    SEND,
    Namespace,
    close_action,
    message_action,
    open_action,
)
from wsbridge.core.normalizer import Blob, normalize_payload
from wsbridge.core.options import BridgeOptions
from wsbridge.core.routing import TagRouter, tag_matches
from wsbridge.core.unfold import FunctionUnfolder, InboundTranslator, JsonUnfolder, resolve_unfolder

__all__ = [
    "TransportAdapter",
    "FunctionFolder",
    "JsonFolder",
    "resolve_folder",
    "BridgeInstance",
    "WebSocketBridge",
    "create_bridge_middleware",
    "CLOSE",
    "DEFAULT_NAMESPACE",
    "MESSAGE",
    "OPEN",
    "SEND",
    "Namespace",
    "close_action",
    "message_action",
    "open_action",
    "Blob",
    "normalize_payload",
    "BridgeOptions",
    "TagRouter",
    "tag_matches",
    "FunctionUnfolder",
    "InboundTranslator",
    "JsonUnfolder",
    "resolve_unfolder",
]
