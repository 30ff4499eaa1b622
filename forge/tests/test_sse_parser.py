"""
Tests for the incremental event-stream parser used by stream consumers.
"""

import json

from forge.core.sse_parser import SSEStreamParser, iter_events
from forge.pipeline.events import complete_event, error_event, progress_event
from forge.pipeline.context import AggregateResult


class TestSSEStreamParser:
    """Frames split at arbitrary chunk boundaries are reassembled."""

    def test_whole_frame(self):
        parser = SSEStreamParser()
        events = parser.feed('event: progress\ndata: {"progress": 5}\n\n')
        assert events == [("progress", {"progress": 5})]

    def test_frame_split_across_chunks(self):
        frame = 'event: complete\ndata: {"imageUrls": ["a", "b"]}\n\n'
        parser = SSEStreamParser()

        collected = []
        for i in range(0, len(frame), 7):
            collected.extend(parser.feed(frame[i:i + 7]))

        assert collected == [("complete", {"imageUrls": ["a", "b"]})]
        assert parser.remainder == ""

    def test_event_line_and_data_line_in_separate_chunks(self):
        parser = SSEStreamParser()
        assert parser.feed("event: error\n") == []
        assert parser.pending_event == "error"
        assert parser.feed('data: {"error": "x"}\n') == [("error", {"error": "x"})]
        assert parser.pending_event is None

    def test_multibyte_character_split(self):
        frame = 'event: error\ndata: {"error": "café"}\n\n'.encode("utf-8")
        cut = frame.index(b"\xc3") + 1
        parser = SSEStreamParser()

        events = parser.feed(frame[:cut]) + parser.feed(frame[cut:])
        assert events == [("error", {"error": "café"})]

    def test_crlf_lines(self):
        parser = SSEStreamParser()
        assert parser.feed('event: progress\r\ndata: {"a": 1}\r\n\r\n') == [("progress", {"a": 1})]

    def test_data_without_event_ignored(self):
        parser = SSEStreamParser()
        assert parser.feed('data: {"orphan": true}\n\n') == []

    def test_round_trip_with_event_builders(self):
        result = AggregateResult(images=("data:image/png;base64,AA",), elapsed_seconds=2.4,
                                 succeeded_count=1, requested_count=1)
        stream = "".join([
            progress_event("starting", "INITIALIZING GEMINI...", 5, "gen-1").to_sse(),
            complete_event(result, "fast", "gen-1").to_sse(),
        ])

        events = list(iter_events([stream[:20], stream[20:]]))

        assert [name for name, _ in events] == ["progress", "complete"]
        assert events[1][1]["elapsed"] == 2
        assert events[1][1]["imageUrl"] == "data:image/png;base64,AA"

    def test_error_frame_shape(self):
        frame = error_event("boom", "gen-1").to_sse()
        assert frame.startswith("event: error\ndata: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame.split("data: ", 1)[1]) == {"error": "boom", "id": "gen-1"}
