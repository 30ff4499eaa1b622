"""
Diagnostic Log - bounded in-memory ring of recent request/response/error entries.

A single process-wide instance (`diagnostic_log`) backs the debug endpoints.
Entries are only ever appended or read; once the capacity is reached the
oldest entry is dropped.
"""

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from .constants import DIAGNOSTIC_LOG_CAPACITY

logger = logging.getLogger(__name__)

ENTRY_TYPES = ("request", "response", "error", "info")


class DiagnosticLog:
    """Fixed-capacity, append-only log of diagnostic entries."""

    def __init__(self, capacity: int = DIAGNOSTIC_LOG_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry_type: str, data: Any) -> Dict[str, Any]:
        """Append one entry, evicting the oldest when full."""
        if entry_type not in ENTRY_TYPES:
            raise ValueError(f"Unknown diagnostic entry type: {entry_type}")

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": entry_type,
            "data": data,
        }
        with self._lock:
            self._entries.append(entry)

        level = logging.ERROR if entry_type == "error" else logging.INFO
        logger.log(level, f"[{entry_type}] {json.dumps(data, default=str)}")
        return entry

    def read(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return up to `limit` entries, newest first."""
        with self._lock:
            snapshot = list(self._entries)
        snapshot.reverse()
        if limit is not None:
            snapshot = snapshot[:max(0, limit)]
        return snapshot

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide instance
diagnostic_log = DiagnosticLog()
