"""Single entry point for delegating a task to the background worker."""
from __future__ import annotations

from .process_manager import ProcessManager


class Dispatcher:
    def __init__(self, manager: ProcessManager):
        self.manager = manager

    def submit(self, task) -> str:
        """Send ``task`` to the worker, starting one if needed.

        Returns as soon as the task is written; completion is reported later
        through the notifier. Raises SpawnError or TransmissionError.
        """
        if self.manager.worker_status() != "running":
            self.manager.start()
        # a task is now outstanding; the worker must not be stopped mid-task
        self.manager.disarm_idle_timer()
        return self.manager.transmit(task)

__all__ = ["Dispatcher"]
