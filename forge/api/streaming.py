"""
Server-sent event producer for generation runs.

The run executes in its own background task and pushes events into a queue;
the HTTP response drains the queue and closes after the terminal event. If
the caller disconnects, only the reader goes away: the background run keeps
going until its provider calls settle, and its events are dropped.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Set

from fastapi.responses import StreamingResponse

from forge.pipeline.context import ProgressEvent
from forge.pipeline.events import EventEmitter, error_event

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

RunFn = Callable[[EventEmitter], Awaitable[object]]

# Strong references so detached runs are not garbage collected mid-flight
_background_runs: Set[asyncio.Task] = set()


class EventChannel:
    """Queue-backed emitter that enforces a single terminal event."""

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id
        self.queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self.closed = False

    def emit(self, event: ProgressEvent) -> None:
        if self.closed:
            logger.debug(f"[{self.run_id}] Dropping event after close: {event.name}")
            return
        self.queue.put_nowait(event)
        if event.is_terminal:
            self.closed = True


async def _drive(run: RunFn, channel: EventChannel) -> None:
    try:
        await run(channel.emit)
    except Exception as e:
        logger.error(f"[{channel.run_id}] Run crashed: {e}", exc_info=True)
        channel.emit(error_event(str(e), channel.run_id))
    finally:
        if not channel.closed:
            channel.emit(error_event("Generation ended without a result", channel.run_id))


def start_run(run: RunFn, run_id: Optional[str] = None) -> EventChannel:
    """Launch `run` detached from the response and return its channel."""
    channel = EventChannel(run_id)
    task = asyncio.create_task(_drive(run, channel))
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)
    return channel


async def drain(channel: EventChannel) -> AsyncIterator[str]:
    """Yield SSE frames until (and including) the terminal event."""
    while True:
        event = await channel.queue.get()
        yield event.to_sse()
        if event.is_terminal:
            return


async def single_event(event: ProgressEvent) -> AsyncIterator[str]:
    yield event.to_sse()


def sse_response(frames: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(frames, media_type="text/event-stream", headers=SSE_HEADERS)


def active_run_count() -> int:
    return len(_background_runs)
