"""Lifecycle manager for the single background worker process.

One ``ProcessManager`` owns the worker handle, the outstanding-task count and
the idle timer. All of its methods run on the foreground asyncio loop thread:
the output callback is attached with ``loop.add_reader`` and the idle timer is
a ``loop.call_later`` handle, so no locking is needed.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import asyncio
import os
import subprocess
import sys
import time
from pathlib import Path

import psutil

from .config_loader import Settings
from .demux import LineBuffer, OutputDemultiplexer
from .errors import SpawnError, TransmissionError
from .logging import core_logger, get_logger, summarize_for_log
from .notifier import Notifier
from .tasks import PreloadTask, SyncPathTask, encode_task
from .worker_entry import DEBUG_ENV
from .worker_protocol import LINE_TERMINATOR

CHUNK_SIZE = 65536

# diagnostics sink for debug mode
worker_logger = get_logger("fileferry.worker")


@dataclass
class WorkerHandle:
    process: subprocess.Popen
    started: float
    demux: Optional[OutputDemultiplexer] = None
    mirror: Optional[LineBuffer] = None
    reader_fd: Optional[int] = None

    @property
    def pid(self) -> int:
        return self.process.pid


def worker_command(python: str) -> list:
    """Command line for an isolated interpreter running the worker loop."""
    package_root = Path(__file__).resolve().parents[2]
    code = (
        f"import sys; sys.path.insert(0, {str(package_root)!r}); "
        "from fileferry.core.worker_entry import main; sys.exit(main())"
    )
    # -I: no user site, no PYTHON* env vars, no startup file; -u: unbuffered stdout
    return [python, "-I", "-u", "-c", code]


class ProcessManager:
    def __init__(self, settings: Optional[Settings] = None, notifier: Optional[Notifier] = None, loop=None):
        self.settings = settings or Settings()
        self.notifier = notifier or Notifier(self.settings.message_history)
        self._loop = loop
        self._worker: Optional[WorkerHandle] = None
        self._idle_timer: Optional[asyncio.TimerHandle] = None
        self.outstanding = 0

    @property
    def loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def worker(self) -> Optional[WorkerHandle]:
        return self._worker

    def worker_status(self) -> str:
        if self._worker is None:
            return "absent"
        return "running" if self._worker.process.poll() is None else "exited"

    # Lifecycle -------------------------------------------------------
    def start(self) -> WorkerHandle:
        if self._worker is not None:
            self.stop()
        cmd = worker_command(self.settings.python)
        env = dict(os.environ)
        if self.settings.debug:
            env[DEBUG_ENV] = "1"
        else:
            env.pop(DEBUG_ENV, None)
        core_logger.debug(f"spawn worker cmd={cmd[:4]} debug={self.settings.debug}")
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=self.settings.workdir,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if self.settings.debug else subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            self.notifier.error(f"cannot start background worker: {e}")
            raise SpawnError(f"Failed spawning worker ({self.settings.python}): {e}") from e
        wi = WorkerHandle(process=proc, started=time.time())
        self._worker = wi
        self.outstanding = 0
        wi.reader_fd = proc.stdout.fileno()
        if self.settings.debug:
            wi.mirror = LineBuffer()
            self.loop.add_reader(wi.reader_fd, self._mirror_output, wi)
        else:
            wi.demux = OutputDemultiplexer(self.notifier.notify, self.task_done)
            self.loop.add_reader(wi.reader_fd, self._consume_output, wi)
        core_logger.info("worker started pid=%s", wi.pid)
        self.transmit(SyncPathTask(paths=[p for p in sys.path if p]))
        self.transmit(PreloadTask(modules=list(self.settings.preload_modules)))
        return wi

    def stop(self) -> bool:
        """Kill the worker, dropping any running or queued task. Safe to repeat."""
        self.disarm_idle_timer()
        self.outstanding = 0
        wi, self._worker = self._worker, None
        if wi is None:
            return False
        self._detach(wi)
        if wi.process.poll() is None:
            wi.process.kill()
            try:
                wi.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                core_logger.warning("worker pid=%s did not exit after kill", wi.pid)
        for pipe in (wi.process.stdin, wi.process.stdout):
            if pipe is None:
                continue
            try:
                pipe.close()
            except OSError as e:  # unflushed data on a dead pipe
                core_logger.debug(f"closing worker pipe: {e}")
        core_logger.info("worker stopped pid=%s", wi.pid)
        return True

    def _detach(self, wi: WorkerHandle):
        if wi.reader_fd is not None and self._loop is not None:
            self._loop.remove_reader(wi.reader_fd)
        wi.reader_fd = None

    # Idle timer -------------------------------------------------------
    def disarm_idle_timer(self):
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def arm_idle_timer(self, timeout: Optional[float] = None):
        self.disarm_idle_timer()
        delay = self.settings.idle_timeout_s if timeout is None else timeout
        self._idle_timer = self.loop.call_later(delay, self._idle_timeout, delay)

    @property
    def idle_timer_armed(self) -> bool:
        return self._idle_timer is not None

    def _idle_timeout(self, delay: float):
        self._idle_timer = None
        core_logger.info("worker idle for %ss, stopping", delay)
        self.stop()

    # Sending / receiving ----------------------------------------------
    def transmit(self, task) -> str:
        """Write one task to the worker and count it as outstanding."""
        wi = self._worker
        line = (encode_task(task) + LINE_TERMINATOR).encode("utf-8")
        self.outstanding += 1
        try:
            if wi is None or wi.process.stdin is None:
                raise BrokenPipeError("no worker input channel")
            wi.process.stdin.write(line)
            wi.process.stdin.flush()
        except (OSError, ValueError) as e:  # ValueError: write to closed file
            msg = f"failed to send {task.describe()} to background worker: {e}"
            self.notifier.error(msg)
            raise TransmissionError(msg) from e
        core_logger.debug("sent %s payload=%s", task.describe(), summarize_for_log(task.model_dump()))
        return task.id

    def task_done(self):
        """Idle sentinel received: one outstanding task finished."""
        if self.outstanding <= 0:
            # stray sentinel, e.g. from a worker stopped mid-task
            core_logger.warning("idle sentinel with no outstanding task; count stays at 0")
            self.outstanding = 0
        else:
            self.outstanding -= 1
        if self.outstanding <= 0:
            self.arm_idle_timer()

    def _read_chunk(self, wi: WorkerHandle) -> bytes:
        try:
            return os.read(wi.reader_fd, CHUNK_SIZE)
        except OSError as e:
            core_logger.warning(f"reading worker output failed: {e}")
            return b""

    def _consume_output(self, wi: WorkerHandle):
        chunk = self._read_chunk(wi)
        if wi is not self._worker:
            # output of a replaced worker
            self._detach(wi)
            return
        if not chunk:
            wi.demux.close()
            self._worker_gone(wi)
            return
        wi.demux.feed(chunk)

    def _mirror_output(self, wi: WorkerHandle):
        chunk = self._read_chunk(wi)
        lines = wi.mirror.feed(chunk) if chunk else wi.mirror.close()
        for line in lines:
            worker_logger.info("[pid %s] %s", wi.pid, line)
        if chunk:
            return
        if wi is self._worker:
            self._worker_gone(wi)
        else:
            self._detach(wi)

    def _worker_gone(self, wi: WorkerHandle):
        """EOF on the worker's output: reap it and forget its unfinished tasks."""
        code = wi.process.poll()
        core_logger.info("worker pid=%s closed its output (exit code %s)", wi.pid, code)
        if self.outstanding > 0 and not self.settings.debug:
            self.notifier.error(
                f"background worker exited (code {code}) with {self.outstanding} task(s) unfinished"
            )
        self.stop()

    # Introspection ----------------------------------------------------
    def status(self) -> Dict[str, Any]:
        wi = self._worker
        snap: Dict[str, Any] = {
            "status": self.worker_status(),
            "pid": wi.pid if wi else None,
            "outstanding": self.outstanding,
            "idle_timer_armed": self.idle_timer_armed,
            "idle_timeout_s": self.settings.idle_timeout_s,
            "debug": self.settings.debug,
            "uptime_s": round(time.time() - wi.started, 3) if wi else None,
            "rss_mb": None,
        }
        if wi is not None and snap["status"] == "running":
            try:
                snap["rss_mb"] = round(psutil.Process(wi.pid).memory_info().rss / (1024 * 1024), 2)
            except (psutil.Error, ValueError):
                pass
        return snap

__all__ = ["ProcessManager", "WorkerHandle", "worker_command", "worker_logger"]
