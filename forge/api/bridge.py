from enum import Enum
from typing import Any, Dict, Optional
from fastapi import WebSocket, WebSocketDisconnect
import json
import logging
from pydantic import BaseModel

from forge.core.constants import BRIDGE_CLIENT_NAME, BRIDGE_REQUEST_TIMEOUT_SECONDS
from forge.core.correlation import PendingRequestTable
from forge.core.errors import BridgeUnavailable, ForgeError

logger = logging.getLogger(__name__)


class BridgeMessageType(str, Enum):
    """Bridge control message types"""
    HANDSHAKE = "handshake"
    HANDSHAKE_ACK = "handshake-ack"
    PING = "ping"
    PONG = "pong"


class BridgeRequest(BaseModel):
    """Outbound request to the host application"""
    id: str
    type: str
    params: Optional[Dict[str, Any]] = None


class BridgeManager:
    """Tracks the single authenticated bridge client and its in-flight requests"""

    def __init__(self, request_timeout: float = BRIDGE_REQUEST_TIMEOUT_SECONDS):
        self.client: Optional[WebSocket] = None
        self.pending = PendingRequestTable(prefix="req")
        self.request_timeout = request_timeout

    def is_connected(self) -> bool:
        return self.client is not None

    def attach(self, websocket: WebSocket):
        if self.client is not None and self.client is not websocket:
            logger.info("Replacing existing bridge client")
        self.client = websocket
        logger.info("Bridge client authenticated")

    def detach(self, websocket: WebSocket):
        if self.client is websocket:
            self.client = None
            logger.info("Bridge client disconnected")

    async def handle_message(self, websocket: WebSocket, raw: str):
        """Dispatch one inbound text frame"""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON received on bridge: {raw[:200]}")
            return
        if not isinstance(message, dict):
            return

        message_type = message.get("type")
        if message_type == BridgeMessageType.HANDSHAKE and message.get("client") == BRIDGE_CLIENT_NAME:
            self.attach(websocket)
            await websocket.send_text(json.dumps({"type": BridgeMessageType.HANDSHAKE_ACK.value}))
            return

        if message_type == BridgeMessageType.PING:
            await websocket.send_text(json.dumps({"type": BridgeMessageType.PONG.value}))
            return

        request_id = message.get("id")
        if request_id and self.pending.is_pending(request_id):
            if message.get("success"):
                self.pending.resolve(request_id, message.get("data"))
            else:
                self.pending.reject(request_id, ForgeError(message.get("error") or "Bridge request failed"))

    async def request(self, request_type: str, params: Optional[Dict[str, Any]] = None,
                      timeout: Optional[float] = None) -> Any:
        """Send a request to the bridge client and wait for the matching reply"""
        if not self.is_connected():
            raise BridgeUnavailable("Bridge not connected")

        request_id, future = self.pending.register(timeout or self.request_timeout)
        outbound = BridgeRequest(id=request_id, type=request_type, params=params)
        try:
            await self.client.send_text(outbound.model_dump_json())
        except Exception as e:
            self.pending.discard(request_id)
            raise BridgeUnavailable(f"Failed to send bridge request: {e}")
        return await future


# Global bridge manager instance
bridge_manager = BridgeManager()


async def bridge_endpoint(websocket: WebSocket, manager: BridgeManager = bridge_manager):
    """WebSocket endpoint handler for the host-application bridge"""
    await websocket.accept()
    logger.info("Bridge connection opened")

    try:
        while True:
            data = await websocket.receive_text()
            await manager.handle_message(websocket, data)
    except WebSocketDisconnect:
        logger.info("Bridge connection closed")
    except Exception as e:
        logger.error(f"Bridge error: {e}")
    finally:
        manager.detach(websocket)
