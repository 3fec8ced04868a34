"""Inbound payload normalization.

Raw payloads arrive as text, as a binary buffer (``bytes``) or as a binary
large object (``Blob``). Each bridge instance normalizes binary payloads to
the representation named by its ``binary_type``; everything else passes
through untouched. Normalization is always awaited so text and binary
payloads take the same call path.
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from wsbridge.config import BinaryType
from wsbridge.exceptions import NormalizationError

BUFFER_TYPES = (bytes, bytearray, memoryview)


class Blob:
    """Immutable binary large object whose content is read asynchronously."""

    def __init__(
        self,
        parts: Iterable["bytes | bytearray | memoryview | str | Blob"] = (),
        content_type: str = "",
    ):
        chunks: list[bytes] = []
        for part in parts:
            if isinstance(part, Blob):
                chunks.extend(part._parts)
            elif isinstance(part, str):
                chunks.append(part.encode("utf-8"))
            else:
                chunks.append(bytes(part))
        self._parts = tuple(chunks)
        self.content_type = content_type

    @property
    def size(self) -> int:
        return sum(len(chunk) for chunk in self._parts)

    async def read(self) -> bytes:
        """Return the blob content as bytes."""
        # Reading is a suspension point, as it is for file- or socket-backed blobs
        await asyncio.sleep(0)
        return b"".join(self._parts)

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.read()).decode(encoding)

    def __repr__(self) -> str:
        return f"Blob(size={self.size}, content_type={self.content_type!r})"


def is_buffer(value: Any) -> bool:
    return isinstance(value, BUFFER_TYPES)


def payload_kind(value: Any) -> str:
    """Short label for a payload, used in log records."""
    if isinstance(value, str):
        return "text"
    if is_buffer(value):
        return "buffer"
    if isinstance(value, Blob):
        return "blob"
    return type(value).__name__


async def normalize_payload(raw: Any, binary_type: BinaryType) -> Any:
    """Convert ``raw`` to the canonical form for ``binary_type``.

    Args:
        raw: Payload as delivered by the endpoint
        binary_type: "buffer" to read blobs into bytes, "blob" to wrap bytes

    Returns:
        The canonical payload

    Raises:
        NormalizationError: If a blob cannot be read
    """
    if binary_type == "buffer" and isinstance(raw, Blob):
        try:
            return await raw.read()
        except Exception as exc:
            raise NormalizationError(binary_type, str(exc) or type(exc).__name__) from exc

    if binary_type == "blob" and is_buffer(raw):
        return Blob([raw])

    return raw
