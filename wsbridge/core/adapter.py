"""Transport adapter: the bridge's only contact with an endpoint."""

import logging
from collections.abc import Callable
from typing import Any

from wsbridge.exceptions import ConfigurationError

logger = logging.getLogger("bridge")


class TransportAdapter:
    """Wraps one endpoint, given directly or as a zero-argument factory."""

    def __init__(self, endpoint_or_factory: Any):
        if hasattr(endpoint_or_factory, "send"):
            endpoint = endpoint_or_factory
        elif callable(endpoint_or_factory):
            endpoint = endpoint_or_factory()
        else:
            raise ConfigurationError(
                "Expected an endpoint or a factory returning one",
                details={"value_type": type(endpoint_or_factory).__name__},
            )

        if not hasattr(endpoint, "send"):
            raise ConfigurationError(
                "Endpoint factory returned an object without send()",
                details={"value_type": type(endpoint).__name__},
            )

        self.endpoint = endpoint
        self._bound = False

    @property
    def endpoint_id(self) -> str:
        return hex(id(self.endpoint))

    def bind(
        self,
        on_open: Callable[[], Any],
        on_close: Callable[[], Any],
        on_message: Callable[[Any], Any],
    ) -> None:
        """Register the endpoint callbacks. Allowed once per adapter."""
        if self._bound:
            raise ConfigurationError(
                "Endpoint callbacks are already registered",
                details={"endpoint_id": self.endpoint_id},
            )

        self.endpoint.on_open = on_open
        self.endpoint.on_close = on_close
        self.endpoint.on_message = on_message
        self._bound = True

        logger.debug(
            "Endpoint callbacks registered",
            extra={"service": "bridge", "endpoint_id": self.endpoint_id},
        )

    def send(self, payload: Any) -> None:
        """Hand ``payload`` to the endpoint unmodified; failures propagate."""
        self.endpoint.send(payload)
