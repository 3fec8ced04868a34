"""Namespace scope for structural action types.

Every bridge instance prefixes its OPEN/CLOSE/MESSAGE/SEND types with its
own namespace, which is what lets several instances share one store.
"""

from dataclasses import dataclass
from typing import Any

OPEN = "OPEN"
CLOSE = "CLOSE"
MESSAGE = "MESSAGE"
SEND = "SEND"

DEFAULT_NAMESPACE = "@@websocket/"


def open_action() -> dict[str, Any]:
    return {"type": OPEN}


def close_action() -> dict[str, Any]:
    return {"type": CLOSE}


def message_action(payload: Any) -> dict[str, Any]:
    return {"type": MESSAGE, "payload": payload}


@dataclass(frozen=True)
class Namespace:
    """Structural action types for one bridge instance."""

    prefix: str = DEFAULT_NAMESPACE

    @property
    def open(self) -> str:
        return f"{self.prefix}{OPEN}"

    @property
    def close(self) -> str:
        return f"{self.prefix}{CLOSE}"

    @property
    def message(self) -> str:
        return f"{self.prefix}{MESSAGE}"

    @property
    def send(self) -> str:
        return f"{self.prefix}{SEND}"

    @property
    def structural_types(self) -> frozenset[str]:
        return frozenset({self.open, self.close, self.message, self.send})

    def owns(self, action_type: Any) -> bool:
        """Check whether ``action_type`` is one of this namespace's structural types."""
        return isinstance(action_type, str) and action_type in self.structural_types
