"""
Incremental parser for the generation event stream.

Callers push raw chunks as they arrive; complete `event:`/`data:` pairs come
back as (event_name, payload) tuples. The unterminated tail of the buffer is
carried over to the next chunk, so pairs split across chunk boundaries (even
inside a multi-byte character) are reassembled.
"""

import codecs
import json
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

ParsedEvent = Tuple[str, Any]


class SSEStreamParser:
    """Stateful line parser for `event: <name>\\ndata: <json>\\n\\n` frames."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self._current_event: Optional[str] = None

    def feed(self, chunk: Union[bytes, str]) -> List[ParsedEvent]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events: List[ParsedEvent] = []
        for line in lines:
            line = line.rstrip("\r")
            if line.startswith("event:"):
                self._current_event = line[len("event:"):].strip()
            elif line.startswith("data:") and self._current_event:
                data = json.loads(line[len("data:"):].strip())
                events.append((self._current_event, data))
                self._current_event = None
        return events

    @property
    def pending_event(self) -> Optional[str]:
        return self._current_event

    @property
    def remainder(self) -> str:
        return self._buffer


def iter_events(chunks: Iterable[Union[bytes, str]]) -> Iterator[ParsedEvent]:
    """Parse an iterable of chunks, yielding events in arrival order."""
    parser = SSEStreamParser()
    for chunk in chunks:
        yield from parser.feed(chunk)
