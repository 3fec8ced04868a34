"""Custom exceptions for the bridge.

This module defines bridge-specific exceptions with structured error codes
and metadata for consistent error handling across the inbound and outbound
paths.

Exception Hierarchy:
- BridgeError (base)
  ├── ConfigurationError
  │   └── NonConformingActionError
  ├── NormalizationError
  ├── TransportError
  │   └── TransportSendError
  └── StoreError
      └── InvalidActionError

Usage:
    try:
        store.dispatch({"type": "@@websocket/SEND", "payload": "hello"})
    except TransportSendError as e:
        log.warning(f"Endpoint gone: {e.details}")

Attributes:
    code: Machine-readable error code (e.g., "NON_CONFORMING_ACTION")
    message: Human-readable error message
    details: Additional context for debugging
    retryable: Whether the operation can be retried
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


class BridgeError(Exception):
    """Base exception for bridge errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
        details: Additional context for debugging
        retryable: Whether the operation can be retried
        timestamp: When the error occurred
    """

    code: str = "BRIDGE_ERROR"
    message: str = "An unexpected bridge error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        """Initialize error with optional message and details."""
        self.message = message or self.message
        self.details = details or {}
        self.retryable = retryable
        self.timestamp = datetime.now(UTC)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "retryable": self.retryable,
                "timestamp": self.timestamp.isoformat(),
            }
        }

    def __str__(self) -> str:
        """String representation with code."""
        return f"[{self.code}] {self.message}"


class ConfigurationError(BridgeError):
    """Raised when a bridge instance is wired or configured incorrectly."""

    code = "CONFIGURATION_ERROR"
    message = "Invalid bridge configuration"


class NonConformingActionError(ConfigurationError):
    """Raised when a custom unfold strategy returns a non-standard action."""

    code = "NON_CONFORMING_ACTION"
    message = "Unfold strategy returned a non-conforming action"

    def __init__(self, action: Any, namespace: str) -> None:
        """Initialize with the offending value and the instance namespace."""
        self.action = action
        self.namespace = namespace
        details: dict[str, Any] = {
            "namespace": namespace,
            "value_type": type(action).__name__,
        }
        if isinstance(action, dict):
            details["keys"] = sorted(str(key) for key in action)
        super().__init__(
            message=(
                f"Unfold strategy for namespace {namespace!r} returned a value "
                "that is not a standard action"
            ),
            details=details,
        )


class NormalizationError(BridgeError):
    """Raised when an inbound binary payload cannot be converted."""

    code = "NORMALIZATION_FAILED"
    message = "Inbound payload could not be normalized"

    def __init__(self, binary_type: str, reason: str) -> None:
        """Initialize with the configured target representation."""
        self.binary_type = binary_type
        super().__init__(
            message=f"Could not normalize payload to {binary_type}: {reason}",
            details={"binary_type": binary_type, "reason": reason},
        )


class TransportError(BridgeError):
    """Base exception for transport endpoint errors."""

    code = "TRANSPORT_ERROR"
    message = "Transport error"


class TransportSendError(TransportError):
    """Raised when an endpoint refuses a payload (e.g., it is not open)."""

    code = "TRANSPORT_SEND_FAILED"
    message = "Endpoint could not send payload"

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        """Initialize send failure with the reason."""
        super().__init__(
            message=f"Endpoint could not send payload: {reason}",
            details=details,
        )


class StoreError(BridgeError):
    """Base exception for store misuse."""

    code = "STORE_ERROR"
    message = "Store error"


class InvalidActionError(StoreError):
    """Raised when something other than an action is dispatched."""

    code = "INVALID_ACTION"
    message = "Actions must be dicts with a string 'type'"

    def __init__(self, action: Any) -> None:
        """Initialize with the rejected value."""
        super().__init__(details={"value_type": type(action).__name__})


__all__ = [
    "BridgeError",
    "ConfigurationError",
    "NonConformingActionError",
    "NormalizationError",
    "TransportError",
    "TransportSendError",
    "StoreError",
    "InvalidActionError",
]
