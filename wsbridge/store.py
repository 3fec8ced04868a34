"""Minimal Redux-style store: one reducer, a middleware chain, subscribers.

Middleware follows the ``middleware(store_api) -> (next) -> (action)``
convention, so the bridge installs here exactly as it would in any other
store with the same contract.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from wsbridge.exceptions import InvalidActionError, StoreError
from wsbridge.ports import Action, Dispatch

logger = logging.getLogger("store")

INIT_ACTION_TYPE = "@@store/INIT"

Reducer = Callable[[Any, Action], Any]


@dataclass(frozen=True)
class StoreAPI:
    """What middleware sees of the store."""

    get_state: Callable[[], Any]
    dispatch: Dispatch


Middleware = Callable[[StoreAPI], Callable[[Dispatch], Dispatch]]


class Store:
    """Holds state and runs every dispatched action through the reducer."""

    def __init__(self, reducer: Reducer, state: Any = None):
        self._reducer = reducer
        self._state = state
        self._listeners: list[Callable[[], None]] = []
        self._dispatching = False
        self._dispatch: Dispatch = self._reduce
        self._reduce({"type": INIT_ACTION_TYPE})

    def get_state(self) -> Any:
        return self._state

    def dispatch(self, action: Action) -> Any:
        """Send ``action`` through the middleware chain and the reducer."""
        return self._dispatch(action)

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` after every reduced action; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _reduce(self, action: Action) -> Action:
        if not isinstance(action, dict) or not isinstance(action.get("type"), str):
            raise InvalidActionError(action)
        if self._dispatching:
            raise StoreError("Reducers may not dispatch actions")

        try:
            self._dispatching = True
            self._state = self._reducer(self._state, action)
        finally:
            self._dispatching = False

        for listener in list(self._listeners):
            listener()
        return action


def apply_middleware(store: Store, *middlewares: Middleware) -> Store:
    """Install ``middlewares`` on ``store``; the first one sees actions first."""

    def _not_ready(action: Action) -> Any:
        raise StoreError("Dispatching while constructing middleware is not allowed")

    dispatch: Dispatch = _not_ready
    api = StoreAPI(get_state=store.get_state, dispatch=lambda action: dispatch(action))
    chain = [middleware(api) for middleware in middlewares]

    composed: Dispatch = store._reduce
    for wrap in reversed(chain):
        composed = wrap(composed)
    dispatch = composed

    store._dispatch = composed
    logger.debug(
        "Middleware installed",
        extra={"service": "store", "metadata": {"count": len(chain)}},
    )
    return store


def create_store(
    reducer: Reducer,
    state: Any = None,
    middlewares: Iterable[Middleware] = (),
) -> Store:
    """Create a store and install ``middlewares`` on it."""
    store = Store(reducer, state)
    middlewares = tuple(middlewares)
    if middlewares:
        apply_middleware(store, *middlewares)
    return store
