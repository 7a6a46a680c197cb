"""Split the worker's raw output into protocol lines and route them.

The operating system may deliver several protocol lines in one chunk, or cut
a line in two; a trailing partial line is held until the chunk that
completes it arrives (or until ``close`` at EOF).
"""
from __future__ import annotations
import codecs
from typing import Callable, List

from .logging import core_logger
from .worker_protocol import IdleSentinel, Notification, ProtocolLine, classify_line


class LineBuffer:
    """Incremental UTF-8 decoder that hands back complete lines only."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        text = self._pending + self._decoder.decode(chunk)
        *lines, self._pending = text.split("\n")
        return lines

    def close(self) -> List[str]:
        """Flush whatever is left at EOF, dropping empty lines."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [line for line in text.split("\n") if line]


class OutputDemultiplexer:
    def __init__(self, on_notification: Callable[[str], None], on_idle: Callable[[], None]):
        self._on_notification = on_notification
        self._on_idle = on_idle
        self._lines = LineBuffer()

    def feed(self, chunk: bytes) -> List[ProtocolLine]:
        """Process one raw chunk; returns the classified lines in order."""
        return [self._dispatch(line) for line in self._lines.feed(chunk)]

    def close(self) -> List[ProtocolLine]:
        return [self._dispatch(line) for line in self._lines.close()]

    def _dispatch(self, line: str) -> ProtocolLine:
        kind = classify_line(line)
        if isinstance(kind, Notification):
            self._on_notification(kind.text)
        elif isinstance(kind, IdleSentinel):
            self._on_idle()
        elif line.strip():
            core_logger.debug("ignoring unclassified worker line: %r", line[:200])
        return kind

__all__ = ["LineBuffer", "OutputDemultiplexer"]
