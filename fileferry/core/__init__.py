"""Core delegation engine.

Modules:
  config_loader: Settings defaults, YAML file and environment overrides.
  tasks: Versioned task schema and its one-line JSON encoding.
  worker_protocol: Output line classifier and protocol constants.
  operations: Copy / move / bootstrap handlers run inside the worker.
  worker_entry: The worker loop (background process entrypoint).
  demux: Splits worker output into notifications and idle sentinels.
  process_manager: Worker lifecycle, outstanding count and idle timer.
  dispatcher: Submit a task, starting the worker on demand.
  notifier: User-visible message log.
"""

from .dispatcher import Dispatcher  # noqa: F401
from .process_manager import ProcessManager  # noqa: F401
