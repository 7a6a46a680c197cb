"""User-visible message log: notifications from the worker plus local errors."""
from __future__ import annotations
from collections import deque
from typing import Any, Deque, Dict, List
import time

from .logging import get_logger

messages_logger = get_logger("fileferry.messages")


class Notifier:
    def __init__(self, history: int = 200):
        self._messages: Deque[Dict[str, Any]] = deque(maxlen=history)

    def notify(self, text: str, level: str = "info"):
        self._messages.append({"time": time.time(), "level": level, "text": text})
        if level == "error":
            messages_logger.error(text)
        else:
            messages_logger.info(text)

    def error(self, text: str):
        self.notify(text, level="error")

    def recent(self, limit: int | None = None) -> List[Dict[str, Any]]:
        items = list(self._messages)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

__all__ = ["Notifier", "messages_logger"]
