"""
Incremental parser for line-delimited server-sent event streams.

Network reads do not respect frame boundaries: a single read may hold half a
line, several lines, or end in the middle of a multi-byte UTF-8 character.
``EventStreamParser`` buffers whatever is incomplete and only emits frames for
complete lines, so the result is the same however the stream was chunked.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class Frame:
    """One ``data:`` line from the stream."""

    data: str

    @property
    def is_done(self) -> bool:
        return self.data == DONE_SENTINEL


class EventStreamParser:
    """Turn arbitrary byte chunks into ``data:`` frames.

    Lines without the ``data:`` tag (``event:``, ``id:``, comments, blank
    separators) are dropped. Both LF and CRLF line endings are accepted.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[Frame]:
        """Consume one network read and return the frames it completed."""
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return [frame for frame in map(self._parse_line, lines) if frame is not None]

    def close(self) -> list[Frame]:
        """Flush a trailing line that had no newline terminator."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        frame = self._parse_line(rest)
        return [frame] if frame is not None else []

    @staticmethod
    def _parse_line(line: str) -> Frame | None:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        payload = line[len(DATA_PREFIX):]
        if payload.startswith(" "):
            payload = payload[1:]
        return Frame(data=payload)
