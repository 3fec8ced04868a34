"""Outbound selection and serialization ("fold"): action -> wire payload."""

import json
from collections.abc import Callable, Mapping
from typing import Any

from wsbridge.core.options import BridgeOptions
from wsbridge.core.routing import TagRouter, normalize_directive
from wsbridge.ports import Action, Folder, WirePayload

SEND_KEY = "send"


def send_directive(action: Action) -> Any:
    """Return ``action["metadata"]["send"]``, or None when absent."""
    metadata = action.get("metadata")
    if not isinstance(metadata, Mapping):
        return None
    return metadata.get(SEND_KEY)


def is_wire_value(value: Any) -> bool:
    """Check whether ``value`` is plain JSON data rather than a live object."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(is_wire_value(item) for item in value)
    if isinstance(value, Mapping):
        return all(isinstance(key, str) and is_wire_value(item) for key, item in value.items())
    return False


class JsonFolder(Folder):
    """Default fold: honour the metadata.send directive and encode as JSON."""

    def __init__(self, options: BridgeOptions, router: TagRouter | None = None):
        self.options = options
        self.router = router or TagRouter(options.tags)

    def select_and_serialize(self, action: Action, endpoint: Any) -> WirePayload | None:
        if not self.select(action, endpoint):
            return None
        return self.serialize(action)

    def select(self, action: Action, endpoint: Any) -> bool:
        if self.options.send_predicate is not None:
            return bool(self.options.send_predicate(action, endpoint, self.options))

        directive = send_directive(action)
        if directive is None:
            return False

        for target in normalize_directive(directive):
            if target is True or target is endpoint:
                return True
            if isinstance(target, str) and target == self.options.namespace:
                return True
        return self.router.matches(directive)

    def serialize(self, action: Action) -> str:
        outbound = dict(action)
        metadata = outbound.get("metadata")
        if self.options.strip_metadata:
            outbound.pop("metadata", None)
        elif isinstance(metadata, Mapping):
            # The directive and server-side objects (e.g. the source endpoint) stay local
            outbound["metadata"] = {
                key: value
                for key, value in metadata.items()
                if key != SEND_KEY and isinstance(key, str) and is_wire_value(value)
            }
        return json.dumps(outbound, default=str)


class FunctionFolder(Folder):
    """Adapts a plain ``fn(action, endpoint, options)`` to the Folder port."""

    def __init__(self, func: Callable[..., Any], options: BridgeOptions):
        self.func = func
        self.options = options

    def select_and_serialize(self, action: Action, endpoint: Any) -> WirePayload | None:
        return self.func(action, endpoint, self.options)


def resolve_folder(options: BridgeOptions, router: TagRouter | None = None) -> Folder:
    """Build the fold strategy named by ``options.fold``."""
    if options.fold is None:
        return JsonFolder(options, router)
    if isinstance(options.fold, Folder):
        return options.fold
    return FunctionFolder(options.fold, options)
