"""Line protocol spoken by the background worker.

Foreground -> worker: one encoded task per line (see ``tasks.encode_task``).

Worker -> foreground: free-form text lines, classified on receipt:
    [[...            notification, forwarded to the user message log
    ***IDLE***       the worker finished one task and waits for the next
    anything else    unclassified, ignored
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

NOTIFICATION_PREFIX = "[["
IDLE_SENTINEL = "***IDLE***"
LINE_TERMINATOR = "\n"


@dataclass(frozen=True)
class Notification:
    text: str


@dataclass(frozen=True)
class IdleSentinel:
    pass


@dataclass(frozen=True)
class Unclassified:
    text: str


ProtocolLine = Union[Notification, IdleSentinel, Unclassified]


def classify_line(line: str) -> ProtocolLine:
    line = line.rstrip("\r")
    if line == IDLE_SENTINEL:
        return IdleSentinel()
    if line.startswith(NOTIFICATION_PREFIX):
        return Notification(line)
    return Unclassified(line)


def format_notification(message: str) -> str:
    """Wrap a worker message so the foreground recognizes it as a notification."""
    # notifications must stay on a single line
    flat = " ".join(message.splitlines())
    return f"{NOTIFICATION_PREFIX}fileferry: {flat}]]"


__all__ = [
    "NOTIFICATION_PREFIX",
    "IDLE_SENTINEL",
    "LINE_TERMINATOR",
    "Notification",
    "IdleSentinel",
    "Unclassified",
    "ProtocolLine",
    "classify_line",
    "format_notification",
]
