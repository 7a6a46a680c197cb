"""End-to-end: real event loop, real worker process, real files."""
import asyncio
import sys

import pytest

from fileferry.core.config_loader import Settings
from fileferry.core.dispatcher import Dispatcher
from fileferry.core.process_manager import ProcessManager
from fileferry.core.tasks import CopyTask, MoveTask, PreloadTask

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="add_reader needs a selector event loop")


async def _wait_for(predicate, timeout=20.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.02)


def test_tasks_run_in_order_and_worker_stops_when_idle(tmp_path):
    src = tmp_path / "src.txt"
    src.write_text("payload")

    async def scenario():
        pm = ProcessManager(Settings(idle_timeout_s=0.5))
        d = Dispatcher(pm)
        try:
            d.submit(CopyTask(sources=[str(src)], destination=str(tmp_path / "copy.txt")))
            failing = CopyTask(sources=[str(tmp_path / "missing")], destination=str(tmp_path / "x"))
            d.submit(failing)
            d.submit(MoveTask(sources=[str(tmp_path / "copy.txt")], destination=str(tmp_path / "moved.txt")))
            assert pm.outstanding == 5
            await _wait_for(lambda: pm.outstanding == 0)
            assert pm.idle_timer_armed
            texts = [m["text"] for m in pm.notifier.recent()]
            await _wait_for(lambda: pm.worker_status() == "absent", timeout=5.0)
            return texts, failing.id
        finally:
            pm.stop()

    texts, failing_id = asyncio.run(scenario())
    assert (tmp_path / "moved.txt").read_text() == "payload"
    assert not (tmp_path / "copy.txt").exists()
    assert len(texts) == 5
    assert "sync_path" in texts[0] and "preload" in texts[1]
    assert " ok: copied 1 item(s)" in texts[2]
    assert texts[3].startswith(f"[[fileferry: copy {failing_id} failed: FileNotFoundError")
    assert " ok: moved 1 item(s)" in texts[4]


def test_stop_discards_outstanding_work(tmp_path):
    src = tmp_path / "tree"
    (src / "sub").mkdir(parents=True)
    (src / "sub" / "f.txt").write_text("f")

    async def scenario():
        pm = ProcessManager(Settings(idle_timeout_s=30))
        d = Dispatcher(pm)
        d.submit(PreloadTask(modules=["json"]))
        pm.stop()
        assert pm.outstanding == 0
        assert pm.worker_status() == "absent"
        # a later submission starts a fresh worker
        d.submit(CopyTask(sources=[str(src)], destination=str(tmp_path / "again")))
        await _wait_for(lambda: pm.outstanding == 0)
        pm.stop()

    asyncio.run(scenario())
    assert (tmp_path / "again" / "sub" / "f.txt").read_text() == "f"
