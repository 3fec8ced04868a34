"""Inbound translation ("unfold"): canonical payload -> action."""

import json
import logging
from collections.abc import Callable
from typing import Any

from wsbridge.core.namespace import Namespace
from wsbridge.core.normalizer import payload_kind
from wsbridge.core.options import ENDPOINT_KEY, BridgeOptions
from wsbridge.exceptions import NonConformingActionError
from wsbridge.ports import Action, Unfolder
from wsbridge.schemas import is_standard_action

logger = logging.getLogger("bridge")


class JsonUnfolder(Unfolder):
    """Default unfold: a JSON text payload that is a standard action is dispatched as-is."""

    def __init__(self, options: BridgeOptions):
        self.options = options

    def translate(self, payload: Any, endpoint: Any) -> Action | None:
        if not isinstance(payload, str):
            return None

        try:
            parsed = json.loads(payload)
        except (ValueError, RecursionError) as exc:
            logger.debug(
                "Inbound payload is not JSON",
                extra={
                    "service": "bridge",
                    "namespace": self.options.namespace,
                    "error": type(exc).__name__,
                },
            )
            return None

        if not is_standard_action(parsed):
            return None

        metadata = {**(parsed.get("metadata") or {}), **self.options.static_metadata}
        inject, reference = self.options.endpoint_reference(endpoint)
        if inject:
            metadata[ENDPOINT_KEY] = reference
        else:
            metadata.pop(ENDPOINT_KEY, None)
        return {**parsed, "metadata": metadata}


class FunctionUnfolder(Unfolder):
    """Adapts a plain ``fn(payload, endpoint, options)`` to the Unfolder port."""

    def __init__(self, func: Callable[..., Any], options: BridgeOptions):
        self.func = func
        self.options = options

    def translate(self, payload: Any, endpoint: Any) -> Action | None:
        return self.func(payload, endpoint, self.options)


def resolve_unfolder(options: BridgeOptions) -> Unfolder | None:
    """Build the unfold strategy named by ``options.unfold`` (None = disabled)."""
    if options.unfold is True:
        return JsonUnfolder(options)
    if options.unfold is False:
        return None
    if isinstance(options.unfold, Unfolder):
        return options.unfold
    return FunctionUnfolder(options.unfold, options)


class InboundTranslator:
    """Turns every canonical payload into exactly one action.

    The unfold strategy gets the first chance; when it is disabled or
    declines, the payload is wrapped in this instance's MESSAGE action.
    """

    def __init__(self, options: BridgeOptions, namespace: Namespace):
        self.options = options
        self.namespace = namespace
        self.unfolder = resolve_unfolder(options)

    def structural(self, action_type: str, endpoint: Any, **fields: Any) -> Action:
        """Build an OPEN/CLOSE/MESSAGE action carrying the endpoint."""
        metadata = {**self.options.static_metadata, ENDPOINT_KEY: endpoint}
        return {"type": action_type, "metadata": metadata, **fields}

    def translate(self, payload: Any, endpoint: Any) -> Action:
        action = self._unfold(payload, endpoint)
        if action is not None:
            return action

        logger.debug(
            "Unfold fell through to MESSAGE",
            extra={
                "service": "bridge",
                "namespace": self.namespace.prefix,
                "payload_kind": payload_kind(payload),
            },
        )
        return self.structural(self.namespace.message, endpoint, payload=payload)

    def _unfold(self, payload: Any, endpoint: Any) -> Action | None:
        if self.unfolder is None:
            return None

        action = self.unfolder.translate(payload, endpoint)
        if action is None:
            return None
        if not is_standard_action(action):
            raise NonConformingActionError(action, self.namespace.prefix)
        return self._decorate(action, endpoint)

    def _decorate(self, action: Action, endpoint: Any) -> Action:
        # Only fill keys the strategy left unset
        metadata = dict(action.get("metadata") or {})
        for key, value in self.options.static_metadata.items():
            metadata.setdefault(key, value)
        inject, reference = self.options.endpoint_reference(endpoint)
        if inject:
            metadata.setdefault(ENDPOINT_KEY, reference)
        return {**action, "metadata": metadata}
