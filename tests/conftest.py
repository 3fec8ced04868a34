"""Shared fixtures for the bridge test suite."""

from collections.abc import Callable
from typing import Any

import pytest

from wsbridge.config import get_settings
from wsbridge.store import INIT_ACTION_TYPE, Store, create_store


class FakeEndpoint:
    """In-memory endpoint recording every payload handed to send()."""

    def __init__(self, send_error: Exception | None = None):
        self.on_open: Callable[[], Any] | None = None
        self.on_close: Callable[[], Any] | None = None
        self.on_message: Callable[[Any], Any] | None = None
        self.sent: list[Any] = []
        self.send_error = send_error

    def send(self, payload: Any) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(payload)


def record_actions(state: list[dict[str, Any]] | None, action: dict[str, Any]) -> list[dict[str, Any]]:
    """Reducer keeping every action except the store's own INIT."""
    state = state or []
    if action["type"] == INIT_ACTION_TYPE:
        return state
    return [*state, action]


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
def make_endpoint() -> Callable[..., FakeEndpoint]:
    return FakeEndpoint


@pytest.fixture
def make_store() -> Callable[..., Store]:
    """Build a recording store with the given middlewares installed."""

    def _make(*middlewares: Any) -> Store:
        return create_store(record_actions, middlewares=middlewares)

    return _make
