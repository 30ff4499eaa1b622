"""
Tests for the server-sent event producer: one terminal event per run, crash
handling, and runs that outlive their reader.
"""

import asyncio

from forge.api.streaming import EventChannel, active_run_count, drain, start_run
from forge.core.sse_parser import iter_events
from forge.pipeline.context import ProgressEvent
from forge.pipeline.events import error_event, progress_event


async def _collect(channel):
    frames = [frame async for frame in drain(channel)]
    return list(iter_events(frames))


class TestEventChannel:
    """The channel closes after the first terminal event."""

    async def test_events_after_terminal_dropped(self):
        channel = EventChannel("gen-1")
        channel.emit(progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-1"))
        channel.emit(error_event("boom", "gen-1"))
        channel.emit(progress_event("generating", "GENERATING IMAGE...", 30, "gen-1"))
        channel.emit(error_event("again", "gen-1"))

        assert channel.closed
        assert channel.queue.qsize() == 2

    async def test_drain_stops_at_terminal(self):
        channel = EventChannel("gen-1")
        channel.emit(progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-1"))
        channel.emit(ProgressEvent("complete", {"success": True, "imageUrls": ["a"], "id": "gen-1"}))

        events = await _collect(channel)

        assert [name for name, _ in events] == ["progress", "complete"]


class TestDetachedRuns:
    """Runs execute in their own task and always end with a terminal event."""

    async def test_crashing_run_becomes_single_error(self):
        async def run(emit):
            emit(progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-2"))
            raise RuntimeError("boom")

        events = await _collect(start_run(run, "gen-2"))

        assert [name for name, _ in events] == ["progress", "error"]
        assert events[-1][1] == {"error": "boom", "id": "gen-2"}

    async def test_run_without_terminal_gets_fallback_error(self):
        async def run(emit):
            emit(progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-3"))

        events = await _collect(start_run(run, "gen-3"))

        assert [name for name, _ in events] == ["progress", "error"]
        assert events[-1][1]["error"] == "Generation ended without a result"

    async def test_run_finishes_after_reader_goes_away(self):
        gate = asyncio.Event()
        finished = asyncio.Event()

        async def run(emit):
            emit(progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-4"))
            await gate.wait()
            emit(ProgressEvent("complete", {"success": True, "imageUrls": ["a"], "id": "gen-4"}))
            finished.set()

        channel = start_run(run, "gen-4")
        frames = drain(channel)
        first = await frames.__anext__()
        assert first.startswith("event: progress")

        # Caller disconnects mid-run
        await frames.aclose()
        assert active_run_count() >= 1

        gate.set()
        await asyncio.wait_for(finished.wait(), timeout=1.0)

        assert channel.closed
        assert channel.queue.qsize() == 1

