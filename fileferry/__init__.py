"""
fileferry

Offloads long-running file copies and moves to a supervised background
worker process so the foreground service stays responsive.
"""

from .core.dispatcher import Dispatcher
from .core.process_manager import ProcessManager
from .core.config_loader import Settings, load_settings
from .core.tasks import CopyTask, MoveTask

__version__ = "0.1.0"

__all__ = [
    "Dispatcher",
    "ProcessManager",
    "Settings",
    "load_settings",
    "CopyTask",
    "MoveTask",
    "__version__",
]
