"""
Correlated request table.

Tracks outbound requests by a generated id until a matching reply resolves
them or their per-entry timeout expires. Transport independent: the bridge
WebSocket endpoint is one user, tests drive it directly.
"""

import asyncio
import itertools
import logging
import time
from typing import Any, Dict, Optional, Tuple

from .errors import BridgeTimeout

logger = logging.getLogger(__name__)


class PendingRequestTable:
    """Maps request ids to futures awaiting a reply."""

    def __init__(self, prefix: str = "req"):
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._pending: Dict[str, Tuple[asyncio.Future, asyncio.TimerHandle]] = {}

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter)}-{int(time.time() * 1000)}"

    def register(self, timeout: float, request_id: Optional[str] = None) -> Tuple[str, asyncio.Future]:
        """Create a pending entry that fails with BridgeTimeout after `timeout` seconds."""
        loop = asyncio.get_running_loop()
        request_id = request_id or self.new_id()
        if request_id in self._pending:
            raise ValueError(f"Duplicate request id: {request_id}")

        future = loop.create_future()
        handle = loop.call_later(timeout, self._expire, request_id)
        self._pending[request_id] = (future, handle)
        return request_id, future

    def _expire(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        future, _ = entry
        if not future.done():
            logger.warning(f"Request {request_id} timed out")
            future.set_exception(BridgeTimeout(f"Bridge request timeout: {request_id}"))

    def resolve(self, request_id: str, data: Any) -> bool:
        """Complete a pending entry. Returns False for unknown or expired ids."""
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False
        future, handle = entry
        handle.cancel()
        if not future.done():
            future.set_result(data)
        return True

    def reject(self, request_id: str, error: Exception) -> bool:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False
        future, handle = entry
        handle.cancel()
        if not future.done():
            future.set_exception(error)
        return True

    def discard(self, request_id: str) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry[1].cancel()

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
