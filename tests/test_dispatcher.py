import pytest

from fileferry.core.dispatcher import Dispatcher
from fileferry.core.errors import TransmissionError
from fileferry.core.tasks import CopyTask, MoveTask, decode_task


def test_submit_starts_worker_and_sends_bootstrap_first(manager, spawned):
    d = Dispatcher(manager)
    task = CopyTask(sources=["/a", "/b"], destination="/c")
    task_id = d.submit(task)
    assert task_id == task.id
    assert len(spawned) == 1
    sent = spawned[0].stdin.lines()
    assert [t["kind"] for t in sent] == ["sync_path", "preload", "copy"]
    assert decode_task(spawned[0].stdin.getvalue().decode().splitlines()[-1]) == task
    assert manager.outstanding == 3


def test_submit_reuses_running_worker_in_order(manager, spawned, feed):
    d = Dispatcher(manager)
    first = d.submit(CopyTask(sources=["/1"], destination="/d"))
    second = d.submit(MoveTask(sources=["/2"], destination="/d"))
    third = d.submit(CopyTask(sources=["/3"], destination="/d"))
    assert len(spawned) == 1
    ids = [t["id"] for t in spawned[0].stdin.lines()[2:]]
    assert ids == [first, second, third]
    assert manager.outstanding == 5


def test_submit_disarms_pending_timer(manager, spawned, fake_loop, feed):
    d = Dispatcher(manager)
    manager.start()
    feed(spawned[0], b"***IDLE***\n***IDLE***\n")
    timer = fake_loop.pending_timers()[0]
    d.submit(CopyTask(sources=["/x"], destination="/y"))
    assert timer.cancelled
    assert not manager.idle_timer_armed
    assert manager.worker_status() == "running"


def test_submit_restarts_exited_worker(manager, spawned):
    d = Dispatcher(manager)
    d.submit(CopyTask(sources=["/x"], destination="/y"))
    spawned[0].returncode = 1
    assert manager.worker_status() == "exited"
    d.submit(CopyTask(sources=["/x"], destination="/y"))
    assert len(spawned) == 2
    # fresh worker: counters reset, bootstrap re-sent
    assert manager.outstanding == 3
    assert [t["kind"] for t in spawned[1].stdin.lines()] == ["sync_path", "preload", "copy"]


def test_submit_reports_broken_pipe(manager, spawned):
    d = Dispatcher(manager)
    manager.start()

    def broken(_data):
        raise BrokenPipeError("gone")

    spawned[0].stdin.write = broken
    with pytest.raises(TransmissionError):
        d.submit(CopyTask(sources=["/x"], destination="/y"))
    assert manager.outstanding == 3
    assert "failed to send" in manager.notifier.recent()[-1]["text"]


def test_full_cycle_count_reaches_zero(manager, spawned, feed):
    d = Dispatcher(manager)
    for n in range(4):
        d.submit(CopyTask(sources=[f"/{n}"], destination="/d"))
    assert manager.outstanding == 6
    feed(spawned[0], b"***IDLE***\n" * 6)
    assert manager.outstanding == 0
    assert manager.idle_timer_armed
