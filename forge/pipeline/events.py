"""
Builders for the three event kinds of the generation stream.

Payload field names are part of the wire contract with the web client
(`imageUrl`, `imageUrls`, `elapsed`, `variations`, `error`).
"""

from typing import Any, Callable, Dict, Optional

from .context import AggregateResult, ProgressEvent

EVENT_PROGRESS = "progress"
EVENT_COMPLETE = "complete"
EVENT_ERROR = "error"

# Stages report through a synchronous callback; the stream side queues events.
EventEmitter = Callable[[ProgressEvent], None]


def progress_event(
    status: str,
    message: str,
    percent: int,
    run_id: Optional[str] = None,
    elapsed: Optional[float] = None,
) -> ProgressEvent:
    payload: Dict[str, Any] = {
        "status": status,
        "message": message,
        "progress": max(0, min(100, int(percent))),
    }
    if elapsed is not None:
        payload["elapsed"] = elapsed
    if run_id:
        payload["id"] = run_id
    return ProgressEvent(EVENT_PROGRESS, payload)


def complete_event(result: AggregateResult, tier: str, run_id: Optional[str] = None) -> ProgressEvent:
    if result.is_empty:
        raise ValueError("complete event requires at least one image")
    payload: Dict[str, Any] = {
        "success": True,
        "imageUrl": result.images[0],
        "imageUrls": list(result.images),
        "model": tier,
        "elapsed": round(result.elapsed_seconds),
        "variations": result.succeeded_count,
    }
    if run_id:
        payload["id"] = run_id
    return ProgressEvent(EVENT_COMPLETE, payload)


def error_event(message: str, run_id: Optional[str] = None) -> ProgressEvent:
    payload: Dict[str, Any] = {"error": message}
    if run_id:
        payload["id"] = run_id
    return ProgressEvent(EVENT_ERROR, payload)
