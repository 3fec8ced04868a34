"""Per-instance bridge options.

Options are fixed when the middleware is created; a bridge instance never
reads another instance's options and never changes its own.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wsbridge.config import BinaryType, get_settings
from wsbridge.ports import Folder, Unfolder

FROM_KEY = "from"
ENDPOINT_KEY = "endpoint"


class BridgeOptions(BaseModel):
    """Immutable configuration for one bridge instance."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    namespace: str = Field(
        default_factory=lambda: get_settings().bridge_namespace,
        description="Prefix for this instance's OPEN/CLOSE/MESSAGE/SEND types",
    )
    binary_type: BinaryType = Field(
        default_factory=lambda: get_settings().bridge_binary_type,
        description="Representation inbound binary payloads are normalized to",
    )
    tags: tuple[str, ...] = Field(
        default=(),
        description="Routing identifiers matched against send directives",
    )
    unfold: bool | Unfolder | Callable[..., Any] = Field(
        default=True,
        description=(
            "True = parse JSON actions, False = always dispatch MESSAGE, "
            "or an Unfolder / fn(payload, endpoint, options)"
        ),
    )
    fold: Folder | Callable[..., Any] | None = Field(
        default=None,
        description="Folder or fn(action, endpoint, options) replacing the JSON folder",
    )
    send_predicate: Callable[..., Any] | None = Field(
        default=None,
        description="fn(action, endpoint, options) -> bool replacing the metadata.send check",
    )
    meta: dict[str, Any] = Field(
        default_factory=dict,
        description="Static metadata merged into produced actions; 'from' sets the endpoint policy",
    )
    strip_metadata: bool = Field(
        default=False,
        description="Drop the whole metadata block when serializing outbound actions",
    )
    ordered: bool = Field(
        default_factory=lambda: get_settings().bridge_ordered_delivery,
        description="Dispatch inbound messages strictly in arrival order",
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @property
    def static_metadata(self) -> dict[str, Any]:
        """Static metadata without the endpoint policy key."""
        return {key: value for key, value in self.meta.items() if key != FROM_KEY}

    def endpoint_reference(self, endpoint: Any) -> tuple[bool, Any]:
        """Resolve the ``from`` policy for unfolded actions.

        Returns:
            (inject, value): ``inject`` is False when the endpoint key must be omitted
        """
        policy = self.meta.get(FROM_KEY, True)
        if policy is True:
            return True, endpoint
        if not policy:
            return False, None
        return True, policy
