"""
Tests for the host-application bridge: handshake, keepalive and correlated
request/reply over the WebSocket.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from forge.api.bridge import BridgeManager
from forge.api.main import app
from forge.core.errors import BridgeTimeout, BridgeUnavailable, ForgeError


def _fake_socket():
    websocket = AsyncMock()
    websocket.send_text = AsyncMock()
    return websocket


def _sent(websocket, call=-1):
    return json.loads(websocket.send_text.call_args_list[call][0][0])


class TestBridgeManager:
    """Message dispatch against a fake socket."""

    async def test_handshake_attaches_client(self):
        manager = BridgeManager()
        websocket = _fake_socket()

        await manager.handle_message(websocket, json.dumps({"type": "handshake", "client": "ap-bridge"}))

        assert manager.is_connected()
        assert _sent(websocket) == {"type": "handshake-ack"}

    async def test_handshake_from_unknown_client_ignored(self):
        manager = BridgeManager()
        await manager.handle_message(_fake_socket(), json.dumps({"type": "handshake", "client": "other"}))
        assert not manager.is_connected()

    async def test_ping_pong(self):
        manager = BridgeManager()
        websocket = _fake_socket()
        await manager.handle_message(websocket, json.dumps({"type": "ping"}))
        assert _sent(websocket) == {"type": "pong"}

    async def test_invalid_json_ignored(self):
        manager = BridgeManager()
        websocket = _fake_socket()
        await manager.handle_message(websocket, "{not json")
        websocket.send_text.assert_not_called()

    async def test_request_round_trip(self):
        manager = BridgeManager()
        websocket = _fake_socket()
        manager.attach(websocket)

        task = asyncio.create_task(manager.request("search", {"query": "hat"}))
        await asyncio.sleep(0)
        outbound = _sent(websocket)
        assert outbound["type"] == "search"
        assert outbound["params"] == {"query": "hat"}

        await manager.handle_message(websocket, json.dumps({
            "id": outbound["id"], "success": True, "data": {"items": [{"id": "hat-1"}]},
        }))

        assert await task == {"items": [{"id": "hat-1"}]}
        assert len(manager.pending) == 0

    async def test_failed_reply_raises(self):
        manager = BridgeManager()
        websocket = _fake_socket()
        manager.attach(websocket)

        task = asyncio.create_task(manager.request("getItem", {"dispId": "x"}))
        await asyncio.sleep(0)
        await manager.handle_message(websocket, json.dumps({
            "id": _sent(websocket)["id"], "success": False, "error": "not found",
        }))

        with pytest.raises(ForgeError, match="not found"):
            await task

    async def test_request_times_out(self):
        manager = BridgeManager(request_timeout=0.01)
        manager.attach(_fake_socket())

        with pytest.raises(BridgeTimeout):
            await manager.request("search", {})

    async def test_request_without_client(self):
        with pytest.raises(BridgeUnavailable):
            await BridgeManager().request("search", {})

    async def test_detach_only_current_client(self):
        manager = BridgeManager()
        first, second = _fake_socket(), _fake_socket()
        manager.attach(first)
        manager.attach(second)

        manager.detach(first)
        assert manager.is_connected()
        manager.detach(second)
        assert not manager.is_connected()


class TestBridgeWebSocket:
    """The /ws/bridge endpoint end to end."""

    def test_handshake_and_ping(self):
        manager = BridgeManager()
        app.state.bridge_manager = manager
        client = TestClient(app)

        with client.websocket_connect("/ws/bridge") as websocket:
            websocket.send_text(json.dumps({"type": "handshake", "client": "ap-bridge"}))
            assert websocket.receive_json() == {"type": "handshake-ack"}
            websocket.send_text(json.dumps({"type": "ping"}))
            assert websocket.receive_json() == {"type": "pong"}
            assert manager.is_connected()

        del app.state.bridge_manager
