"""
Tests for the bounded diagnostic log and the correlated request table.
"""

import asyncio

import pytest

from forge.core.correlation import PendingRequestTable
from forge.core.diagnostics import DiagnosticLog
from forge.core.errors import BridgeTimeout


class TestDiagnosticLog:
    """Fixed capacity, newest first, oldest evicted."""

    def test_read_newest_first(self):
        log = DiagnosticLog(capacity=5)
        for i in range(3):
            log.append("info", {"n": i})

        assert [e["data"]["n"] for e in log.read()] == [2, 1, 0]
        assert log.read(limit=1)[0]["data"]["n"] == 2

    def test_oldest_evicted_at_capacity(self):
        log = DiagnosticLog(capacity=100)
        for i in range(150):
            log.append("request", {"n": i})

        entries = log.read()
        assert len(entries) == 100
        assert entries[0]["data"]["n"] == 149
        assert entries[-1]["data"]["n"] == 50

    def test_entry_shape(self):
        entry = DiagnosticLog().append("error", {"error": "x"})
        assert set(entry) == {"timestamp", "type", "data"}
        assert entry["type"] == "error"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            DiagnosticLog().append("warning", {})

    def test_clear(self):
        log = DiagnosticLog()
        log.append("info", {})
        log.clear()
        assert len(log) == 0
        assert log.read() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            DiagnosticLog(capacity=0)


class TestPendingRequestTable:
    """Replies are matched by id; unanswered entries time out."""

    async def test_resolve(self):
        table = PendingRequestTable()
        request_id, future = table.register(timeout=1.0)

        assert table.is_pending(request_id)
        assert table.resolve(request_id, {"items": []}) is True
        assert await future == {"items": []}
        assert len(table) == 0

    async def test_reject(self):
        table = PendingRequestTable()
        request_id, future = table.register(timeout=1.0)

        table.reject(request_id, RuntimeError("host said no"))
        with pytest.raises(RuntimeError, match="host said no"):
            await future

    async def test_timeout(self):
        table = PendingRequestTable()
        request_id, future = table.register(timeout=0.01)

        with pytest.raises(BridgeTimeout):
            await future
        assert not table.is_pending(request_id)
        assert table.resolve(request_id, "late") is False

    async def test_unknown_id(self):
        assert PendingRequestTable().resolve("req-404", None) is False

    async def test_ids_unique(self):
        table = PendingRequestTable(prefix="req")
        first, _ = table.register(timeout=1.0)
        second, _ = table.register(timeout=1.0)

        assert first != second
        assert first.startswith("req-1-")
        table.discard(first)
        table.discard(second)
        assert len(table) == 0

    async def test_duplicate_id_rejected(self):
        table = PendingRequestTable()
        table.register(timeout=1.0, request_id="fixed")
        with pytest.raises(ValueError):
            table.register(timeout=1.0, request_id="fixed")
        table.discard("fixed")
