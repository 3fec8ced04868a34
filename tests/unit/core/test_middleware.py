"""Tests for the bridge middleware installed on a store."""

import asyncio
import json
import logging
import time

import pytest

from wsbridge import Blob, WebSocketBridge, create_bridge_middleware
from wsbridge.infrastructure.logging import namespace_var
from wsbridge.exceptions import (
    ConfigurationError,
    NonConformingActionError,
    NormalizationError,
)


class BrokenBlob(Blob):
    async def read(self) -> bytes:
        raise OSError("backing store gone")


def _types(store):
    return [action["type"] for action in store.get_state()]


class TestLifecycle:
    """Test OPEN/CLOSE dispatch."""

    def test_open_and_close_dispatched_once(self, endpoint, make_store):
        """Test OPEN then CLOSE, each carrying the endpoint."""
        store = make_store(WebSocketBridge(lambda: endpoint))

        endpoint.on_open()
        endpoint.on_close()

        assert _types(store) == ["@@websocket/OPEN", "@@websocket/CLOSE"]
        assert all(action["metadata"]["endpoint"] is endpoint for action in store.get_state())

    def test_factory_called_once(self, endpoint, make_store):
        """Test a factory is invoked exactly once, at installation."""
        calls = []

        def factory():
            calls.append(1)
            return endpoint

        make_store(WebSocketBridge(factory))

        assert calls == [1]
        assert endpoint.on_open is not None

    def test_ready_endpoint_accepted(self, endpoint, make_store):
        """Test an endpoint object can be passed directly."""
        store = make_store(WebSocketBridge(endpoint))
        endpoint.on_open()
        assert _types(store) == ["@@websocket/OPEN"]

    def test_static_metadata_on_structural_actions(self, endpoint, make_store):
        """Test static metadata is merged into OPEN."""
        store = make_store(WebSocketBridge(endpoint, meta={"server": "a"}))
        endpoint.on_open()
        assert store.get_state()[0]["metadata"] == {"server": "a", "endpoint": endpoint}


class TestInbound:
    """Test message translation through the store."""

    @pytest.mark.asyncio
    async def test_raw_text_becomes_message(self, endpoint, make_store):
        """Test non-JSON text yields a MESSAGE carrying the raw payload."""
        store = make_store(WebSocketBridge(endpoint))

        endpoint.on_open()
        await endpoint.on_message("Hello, World!")

        assert store.get_state()[-1] == {
            "type": "@@websocket/MESSAGE",
            "metadata": {"endpoint": endpoint},
            "payload": "Hello, World!",
        }

    @pytest.mark.asyncio
    async def test_json_action_unfolded(self, endpoint, make_store):
        """Test a JSON action is dispatched directly, not as MESSAGE."""
        store = make_store(WebSocketBridge(endpoint))

        await endpoint.on_message('{"type":"PING"}')

        assert store.get_state() == [{"type": "PING", "metadata": {"endpoint": endpoint}}]

    @pytest.mark.asyncio
    async def test_binary_normalized_to_blob(self, endpoint, make_store):
        """Test bytes are wrapped when binary_type is blob."""
        store = make_store(WebSocketBridge(endpoint, binary_type="blob"))

        await endpoint.on_message(b"BINARY")

        payload = store.get_state()[-1]["payload"]
        assert isinstance(payload, Blob)
        assert await payload.read() == b"BINARY"

    @pytest.mark.asyncio
    async def test_blob_normalized_to_buffer(self, endpoint, make_store):
        """Test a blob is read into bytes by default."""
        store = make_store(WebSocketBridge(endpoint))

        await endpoint.on_message(Blob([b"BINARY"]))

        assert store.get_state()[-1]["payload"] == b"BINARY"

    @pytest.mark.asyncio
    async def test_back_to_back_messages_may_reorder(self, endpoint, make_store):
        """Test unordered delivery lets a fast payload overtake a blob."""
        store = make_store(WebSocketBridge(endpoint, unfold=False))

        first = endpoint.on_message(Blob([b"first"]))
        second = endpoint.on_message("second")
        await asyncio.gather(first, second)

        assert [action["payload"] for action in store.get_state()] == ["second", b"first"]

    @pytest.mark.asyncio
    async def test_ordered_delivery_preserves_arrival_order(self, endpoint, make_store):
        """Test ordered=True dispatches in the order messages arrived."""
        store = make_store(WebSocketBridge(endpoint, unfold=False, ordered=True))

        first = endpoint.on_message(Blob([b"first"]))
        second = endpoint.on_message("second")
        await asyncio.gather(first, second)

        assert [action["payload"] for action in store.get_state()] == [b"first", "second"]

    @pytest.mark.asyncio
    async def test_ordered_delivery_survives_failure(self, endpoint, make_store):
        """Test a failed message does not block the ones behind it."""
        store = make_store(WebSocketBridge(endpoint, unfold=False, ordered=True))

        first = endpoint.on_message(BrokenBlob())
        second = endpoint.on_message("second")
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert isinstance(results[0], NormalizationError)
        assert [action["payload"] for action in store.get_state()] == ["second"]

    @pytest.mark.asyncio
    async def test_normalization_failure_dispatches_nothing(self, endpoint, make_store, caplog):
        """Test a failed blob read produces no action and is logged."""
        store = make_store(WebSocketBridge(endpoint))

        with caplog.at_level(logging.ERROR, logger="bridge"):
            with pytest.raises(NormalizationError):
                await endpoint.on_message(BrokenBlob())
            await asyncio.sleep(0)

        assert store.get_state() == []
        assert any(
            record.getMessage() == "Inbound message was not dispatched" for record in caplog.records
        )

    @pytest.mark.asyncio
    async def test_non_conforming_custom_unfold_fails(self, endpoint, make_store):
        """Test a bad custom unfold result is never dispatched."""
        store = make_store(
            WebSocketBridge(endpoint, unfold=lambda payload, ep, options: {"kind": "nope"})
        )

        with pytest.raises(NonConformingActionError):
            await endpoint.on_message("x")

        assert store.get_state() == []

    @pytest.mark.asyncio
    async def test_drain_waits_for_in_flight_messages(self, endpoint, make_store):
        """Test drain() returns once scheduled messages are dispatched."""
        bridge = WebSocketBridge(endpoint, unfold=False)
        store = make_store(bridge)

        endpoint.on_message(Blob([b"a"]))
        endpoint.on_message("b")
        await bridge.instance.drain()

        assert len(store.get_state()) == 2


class TestOutbound:
    """Test transmission of dispatched actions."""

    def test_raw_send_passes_payload_verbatim(self, endpoint, make_store):
        """Test SEND transmits the payload object untouched."""
        store = make_store(WebSocketBridge(endpoint))
        payload = bytes([12])

        store.dispatch({"type": "@@websocket/SEND", "payload": "Hello, World!"})
        store.dispatch({"type": "@@websocket/SEND", "payload": payload})

        assert endpoint.sent[0] == "Hello, World!"
        assert endpoint.sent[1] is payload

    def test_send_true_transmits_once(self, endpoint, make_store):
        """Test send=True transmits the action minus the directive."""
        store = make_store(WebSocketBridge(endpoint))

        store.dispatch(
            {
                "type": "SERVER/SIGN_IN",
                "metadata": {"send": True},
                "payload": {"userID": "u-12345", "token": "t-abcde"},
            }
        )

        assert len(endpoint.sent) == 1
        assert json.loads(endpoint.sent[0]) == {
            "type": "SERVER/SIGN_IN",
            "metadata": {},
            "payload": {"userID": "u-12345", "token": "t-abcde"},
        }

    def test_action_reaches_reducer_unmodified(self, endpoint, make_store):
        """Test the directive is still visible downstream."""
        store = make_store(WebSocketBridge(endpoint))

        store.dispatch({"type": "X", "metadata": {"send": True}})

        assert store.get_state()[-1] == {"type": "X", "metadata": {"send": True}}

    def test_unaddressed_action_not_sent(self, endpoint, make_store):
        """Test ordinary actions stay local."""
        store = make_store(WebSocketBridge(endpoint))
        store.dispatch({"type": "LOCAL"})
        assert endpoint.sent == []

    def test_send_failure_propagates(self, make_endpoint, make_store):
        """Test endpoint errors reach the caller of dispatch."""
        endpoint = make_endpoint(send_error=ConnectionError("closed"))
        store = make_store(WebSocketBridge(endpoint))

        with pytest.raises(ConnectionError):
            store.dispatch({"type": "@@websocket/SEND", "payload": "x"})
        with pytest.raises(ConnectionError):
            store.dispatch({"type": "X", "metadata": {"send": True}})

        assert store.get_state() == []

    def test_custom_fold(self, endpoint, make_store):
        """Test a fold function decides and encodes on its own."""
        store = make_store(
            WebSocketBridge(
                endpoint,
                fold=lambda action, ep, options: action["type"] if action["type"].startswith("OUT/") else None,
            )
        )

        store.dispatch({"type": "OUT/PING"})
        store.dispatch({"type": "IN/PING", "metadata": {"send": True}})

        assert endpoint.sent == ["OUT/PING"]


class TestMultipleInstances:
    """Test namespace isolation between bridges sharing one store."""

    @pytest.mark.asyncio
    async def test_namespaced_events(self, make_endpoint, make_store):
        """Test each endpoint dispatches under its own namespace."""
        ws1, ws2 = make_endpoint(), make_endpoint()
        store = make_store(
            WebSocketBridge(lambda: ws1, namespace="SERVER1/"),
            WebSocketBridge(lambda: ws2, namespace="SERVER2/"),
        )

        ws1.on_open()
        ws2.on_open()
        await ws1.on_message("Hello")
        await ws2.on_message("Aloha")
        ws1.on_close()
        ws2.on_close()

        assert _types(store) == [
            "SERVER1/OPEN",
            "SERVER2/OPEN",
            "SERVER1/MESSAGE",
            "SERVER2/MESSAGE",
            "SERVER1/CLOSE",
            "SERVER2/CLOSE",
        ]
        assert store.get_state()[2]["metadata"]["endpoint"] is ws1
        assert store.get_state()[3]["metadata"]["endpoint"] is ws2

    def test_namespaced_send(self, make_endpoint, make_store):
        """Test namespace, endpoint and broadcast directives."""
        ws1, ws2 = make_endpoint(), make_endpoint()
        store = make_store(
            WebSocketBridge(lambda: ws1, namespace="SERVER1/"),
            WebSocketBridge(lambda: ws2, namespace="SERVER2/"),
        )

        store.dispatch({"type": "SERVER/SIGN_IN", "metadata": {"send": "SERVER1/"}, "payload": 1})
        assert [json.loads(p)["payload"] for p in ws1.sent] == [1]
        assert ws2.sent == []

        store.dispatch({"type": "SERVER/SIGN_IN", "metadata": {"send": ws2}, "payload": 2})
        assert [json.loads(p)["payload"] for p in ws2.sent] == [2]
        assert len(ws1.sent) == 1

        store.dispatch({"type": "SERVER/PING", "metadata": {"send": True}})
        assert json.loads(ws1.sent[-1]) == {"type": "SERVER/PING", "metadata": {}}
        assert json.loads(ws2.sent[-1]) == {"type": "SERVER/PING", "metadata": {}}

    def test_raw_send_is_namespaced(self, make_endpoint, make_store):
        """Test SEND only reaches the instance owning the namespace."""
        ws1, ws2 = make_endpoint(), make_endpoint()
        store = make_store(
            WebSocketBridge(ws1, namespace="A/"),
            WebSocketBridge(ws2, namespace="B/"),
        )

        store.dispatch({"type": "B/SEND", "payload": "raw"})

        assert ws1.sent == []
        assert ws2.sent == ["raw"]

    def test_tag_fan_out(self, make_endpoint, make_store):
        """Test a pattern directive reaches only instances with matching tags."""
        node, browser = make_endpoint(), make_endpoint()
        store = make_store(
            WebSocketBridge(node, namespace="A/", tags=["SERVER/1/NODE"]),
            WebSocketBridge(browser, namespace="B/", tags=["SERVER/1/BROWSER"]),
        )

        store.dispatch({"type": "X", "metadata": {"send": "SERVER/*/NODE"}})
        store.dispatch({"type": "Y", "metadata": {"send": ["SERVER/**/*"]}})

        assert [json.loads(p)["type"] for p in node.sent] == ["X", "Y"]
        assert [json.loads(p)["type"] for p in browser.sent] == ["Y"]


class TestConfiguration:
    """Test construction errors."""

    def test_invalid_option_rejected(self, endpoint):
        """Test bad option values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            WebSocketBridge(endpoint, binary_type="arraybuffer")

    def test_unknown_option_rejected(self, endpoint):
        """Test misspelt options raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            WebSocketBridge(endpoint, namepsace="A/")

    def test_installed_once(self, endpoint, make_store):
        """Test one bridge cannot be installed on two stores."""
        bridge = WebSocketBridge(endpoint)
        make_store(bridge)

        with pytest.raises(ConfigurationError):
            make_store(bridge)

    def test_non_endpoint_rejected(self, make_store):
        """Test installing with something that is not an endpoint fails."""
        with pytest.raises(ConfigurationError):
            make_store(WebSocketBridge("ws://localhost:4000"))

    def test_create_bridge_middleware(self, endpoint):
        """Test the functional constructor passes options through."""
        bridge = create_bridge_middleware(endpoint, namespace="A/", tags="T")
        assert bridge.options.namespace == "A/"
        assert bridge.options.tags == ("T",)

    def test_namespace_from_settings(self, endpoint, monkeypatch):
        """Test the default namespace comes from settings."""
        monkeypatch.setenv("BRIDGE_NAMESPACE", "ENV/")
        assert WebSocketBridge(endpoint).options.namespace == "ENV/"


class TestClientDirectives:
    """Test actions whose send directive was written by a remote client."""

    @pytest.mark.asyncio
    async def test_rebroadcast_does_not_leak_endpoint(self, make_endpoint, make_store):
        """Test an unfolded action sent onward carries no server-side objects."""
        client, other = make_endpoint(), make_endpoint()
        make_store(
            WebSocketBridge(client, namespace="A/"),
            WebSocketBridge(other, namespace="B/"),
        )

        await client.on_message(json.dumps({"type": "ADMIN/RESET", "metadata": {"send": True}}))

        assert [json.loads(p) for p in other.sent] == [{"type": "ADMIN/RESET", "metadata": {}}]
        assert all("object at" not in p for p in other.sent + client.sent)

    @pytest.mark.asyncio
    async def test_oversized_glob_directive_is_cheap(self, make_endpoint, make_store):
        """Test an exponential brace directive neither stalls nor selects."""
        client, node = make_endpoint(), make_endpoint()
        store = make_store(
            WebSocketBridge(client, namespace="A/"),
            WebSocketBridge(node, namespace="B/", tags=["SERVER/1/NODE"]),
        )
        started = time.perf_counter()

        await client.on_message(json.dumps({"type": "X", "metadata": {"send": "{a,b}" * 18}}))

        assert time.perf_counter() - started < 1.0
        assert node.sent == []
        assert _types(store) == ["X"]

    @pytest.mark.asyncio
    async def test_delivery_log_context_has_namespace(self, endpoint, make_store):
        """Test inbound handling logs under the instance namespace."""
        seen = []

        def unfold(payload, ep, options):
            seen.append(namespace_var.get())
            return None

        make_store(WebSocketBridge(endpoint, namespace="SERVER1/", unfold=unfold))

        await endpoint.on_message("x")

        assert seen == ["SERVER1/"]
        assert namespace_var.get() is None
