"""
Server-Sent Events (SSE) parsing.

Turns the line stream of a ``text/event-stream`` response into events:

    id: 3
    data: {"id": 2, "response": "diff", "json": {...}}

Comment lines (": keepalive") are ignored; multi-line data is joined
with newlines; a blank line terminates the event.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SSEEvent:
    data: str
    id: Optional[str] = None
    event: str = "message"
    retry: Optional[int] = None


class SSEParser:
    """Incremental parser, one line at a time."""

    def __init__(self) -> None:
        self._data: list[str] = []
        self._id: Optional[str] = None
        self._event = ""
        self._retry: Optional[int] = None
        self.last_event_id: Optional[str] = None

    def feed(self, line: str) -> Optional[SSEEvent]:
        """Consume one line (without its newline). Returns an event on dispatch."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        elif name == "event":
            self._event = value
        elif name == "retry" and value.isdigit():
            self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[SSEEvent]:
        if not self._data:
            self._reset()
            return None
        if self._id is not None:
            self.last_event_id = self._id
        event = SSEEvent(
            data="\n".join(self._data),
            id=self._id,
            event=self._event or "message",
            retry=self._retry,
        )
        self._reset()
        return event

    def _reset(self) -> None:
        self._data = []
        self._id = None
        self._event = ""
        self._retry = None
