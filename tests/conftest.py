import io
import json
import os

import pytest

from fileferry.core.config_loader import Settings
from fileferry.core.process_manager import ProcessManager


class FakeTimer:
    def __init__(self, delay, callback, args):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback(*self.args)


class FakeLoop:
    """Records add_reader/call_later instead of running an event loop."""

    def __init__(self):
        self.readers = {}
        self.timers = []

    def add_reader(self, fd, callback, *args):
        self.readers[fd] = (callback, args)

    def remove_reader(self, fd):
        return self.readers.pop(fd, None) is not None

    def call_later(self, delay, callback, *args):
        t = FakeTimer(delay, callback, args)
        self.timers.append(t)
        return t

    def pending_timers(self):
        return [t for t in self.timers if not t.cancelled]


class RecordingStdin(io.BytesIO):
    def lines(self):
        return [json.loads(line) for line in self.getvalue().decode().splitlines()]

    def close(self):
        # keep the buffer readable after stop()
        self.closed_by_manager = True


class DummyProc:
    """Popen stand-in whose stdout is a real pipe the test writes into."""

    def __init__(self, cmd, **kwargs):
        self.args = cmd
        self.kwargs = kwargs
        self.pid = os.getpid()
        self.stdin = RecordingStdin()
        r, w = os.pipe()
        self.stdout = open(r, "rb", buffering=0)
        self._w = w
        self.returncode = None
        self.killed = False
        self.waited = False

    def emit(self, data: bytes):
        os.write(self._w, data)

    def poll(self):
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9

    def wait(self, timeout=None):
        self.waited = True
        return self.returncode

    def close_output(self):
        if self._w is not None:
            os.close(self._w)
            self._w = None

    def cleanup(self):
        self.close_output()
        self.stdout.close()


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def spawned(monkeypatch):
    procs = []

    def fake_popen(cmd, **kwargs):
        proc = DummyProc(cmd, **kwargs)
        procs.append(proc)
        return proc

    monkeypatch.setattr("subprocess.Popen", fake_popen)
    yield procs
    for p in procs:
        p.cleanup()


@pytest.fixture
def manager(fake_loop, spawned):
    return ProcessManager(Settings(idle_timeout_s=30.0), loop=fake_loop)


def pump(loop, proc, data: bytes):
    """Write worker output and run the registered reader callback once."""
    proc.emit(data)
    fd = proc.stdout.fileno()
    callback, args = loop.readers[fd]
    callback(*args)


@pytest.fixture
def feed(fake_loop):
    def _feed(proc, data: bytes):
        pump(fake_loop, proc, data)
    return _feed
