"""Background worker entrypoint (one JSON task per line on stdin).

The foreground spawns this module in an isolated interpreter and writes
encoded tasks to its stdin. For every task the worker writes

    [[fileferry: executing {...}]]          (debug mode only)
    [[fileferry: <summary>]]                on success
    [[fileferry: <kind> <id> failed: ...]]  on failure
    ***IDLE***

to stdout. A failing task never ends the loop; the worker runs until it is
killed or its stdin is closed.
"""
from __future__ import annotations

import os
import signal
import sys
from typing import TextIO

from .operations import execute
from .tasks import decode_task
from .worker_protocol import IDLE_SENTINEL, LINE_TERMINATOR, format_notification

DEBUG_ENV = "FILEFERRY_WORKER_DEBUG"


def _clean_context():
    """Drop hooks inherited from the interpreter setup."""
    sys.excepthook = sys.__excepthook__
    sys.displayhook = sys.__displayhook__
    # Ctrl-C in the foreground terminal must not kill delegated work
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def _emit(out: TextIO, line: str):
    out.write(line + LINE_TERMINATOR)
    out.flush()


def run_one(line: str, out: TextIO, debug: bool = False):
    """Execute one wire line and report; always ends with the idle sentinel."""
    label = "task"
    try:
        task = decode_task(line)
        label = task.describe()
        if debug:
            _emit(out, format_notification(f"executing {line.strip()}"))
        summary = execute(task)
        _emit(out, format_notification(f"{label} ok: {summary}"))
    except Exception as e:  # noqa: BLE001 - one bad task must not end the loop
        _emit(out, format_notification(f"{label} failed: {type(e).__name__}: {e}"))
    finally:
        _emit(out, IDLE_SENTINEL)


def serve(stdin: TextIO, stdout: TextIO, debug: bool = False) -> int:
    for line in stdin:
        if not line.strip():
            continue
        run_one(line, stdout, debug=debug)
    return 0


def main() -> int:  # pragma: no cover - exercised through the spawned worker
    _clean_context()
    return serve(sys.stdin, sys.stdout, debug=os.getenv(DEBUG_ENV) == "1")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
