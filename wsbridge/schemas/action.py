"""Pydantic schema for the standard action shape.

An action is a plain dict as far as the store is concerned; this model is
only used to decide whether a value may be dispatched as-is.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class Action(BaseModel):
    """Standard action envelope: type, payload, error, metadata and nothing else."""

    model_config = ConfigDict(extra="forbid", strict=True)

    type: str = Field(..., description="Action type consumed by reducers and middleware")
    payload: Any = None
    error: bool | None = Field(
        default=None,
        description="True when payload describes a failure",
    )
    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Out-of-band data such as the originating endpoint or a send directive",
    )


def is_standard_action(value: Any) -> bool:
    """Return True if ``value`` is a dict satisfying the standard action shape.

    ``metadata`` may be any mapping, not only a dict.
    """
    if not isinstance(value, dict):
        return False
    metadata = value.get("metadata")
    if isinstance(metadata, Mapping) and not isinstance(metadata, dict):
        value = {**value, "metadata": dict(metadata)}
    try:
        Action.model_validate(value)
    except ValidationError:
        return False
    return True
