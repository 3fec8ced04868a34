"""Formal port interfaces for the bridge.

The bridge depends on these abstractions rather than on a concrete
transport or a concrete wire format:

- ``Endpoint``: one bidirectional connection (a WebSocket or a test double)
- ``Unfolder``: inbound strategy, canonical payload -> action
- ``Folder``: outbound strategy, action -> wire payload
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol, TypeAlias, runtime_checkable

from wsbridge.core.normalizer import Blob

Action: TypeAlias = dict[str, Any]
WirePayload: TypeAlias = str | bytes | bytearray | memoryview | Blob
Dispatch: TypeAlias = Callable[[Action], Any]


@runtime_checkable
class Endpoint(Protocol):
    """Bidirectional transport connection consumed by the bridge.

    The bridge assigns ``on_open``, ``on_close`` and ``on_message`` once and
    calls ``send`` for outbound payloads. Whatever ``send`` raises reaches
    the caller of ``store.dispatch``.
    """

    on_open: Callable[[], Any] | None
    on_close: Callable[[], Any] | None
    on_message: Callable[[Any], Any] | None

    def send(self, payload: Any) -> None:
        """Transmit a text or binary payload."""
        ...


class Unfolder(ABC):
    """Inbound strategy: translate a canonical payload into an action."""

    @abstractmethod
    def translate(self, payload: Any, endpoint: Any) -> Action | None:
        """Return an action to dispatch, or None to fall through to MESSAGE."""
        pass


class Folder(ABC):
    """Outbound strategy: decide whether to transmit an action and encode it."""

    @abstractmethod
    def select_and_serialize(self, action: Action, endpoint: Any) -> WirePayload | None:
        """Return the wire payload for ``endpoint``, or None to not transmit."""
        pass


__all__ = [
    "Action",
    "WirePayload",
    "Dispatch",
    "Endpoint",
    "Unfolder",
    "Folder",
]
