"""Lightweight logging setup for the delegation engine.

Users can override log level with FILEFERRY_LOG_LEVEL env var and add a log
file with FILEFERRY_LOG_DIR.

Also includes a helper to summarize task payloads (long source lists, long
paths) for debug logging without dumping them whole.
"""
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _truncate(s: str, limit: int = 200) -> str:
    return s if len(s) <= limit else s[: limit - 3] + "..."


def summarize_for_log(obj: Any, *, max_items: int = 8) -> Any:
    """Return a compact, JSON-serializable summary suitable for logging.

    - Dict: recurse one level into values, keys kept as is
    - List/Tuple/Set: length plus the first ``max_items`` entries
    - str: truncated preview
    - Other scalars: returned directly; anything else becomes its type name
    """
    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    if isinstance(obj, str):
        return _truncate(obj)
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if isinstance(v, (list, tuple, set)):
                items = list(v)
                out[str(k)] = {"len": len(items), "preview": [_truncate(str(x), 120) for x in items[:max_items]]}
            elif isinstance(v, dict):
                out[str(k)] = {"type": "dict", "len": len(v)}
            else:
                out[str(k)] = summarize_for_log(v, max_items=max_items)
        return out
    if isinstance(obj, (list, tuple, set)):
        items = list(obj)
        return {"len": len(items), "preview": [_truncate(str(x), 120) for x in items[:max_items]]}
    return {"type": type(obj).__name__}


def get_logger(name: str = "fileferry") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(stream_handler)
        # Optional file handler if FILEFERRY_LOG_DIR is set
        log_dir = os.getenv("FILEFERRY_LOG_DIR")
        if log_dir:
            try:
                p = Path(log_dir)
                p.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(p / "fileferry.log", encoding="utf-8")
                fh.setFormatter(logging.Formatter(LOG_FORMAT))
                logger.addHandler(fh)
            except OSError as e:
                logger.warning("cannot open log dir %s: %s", log_dir, e)
        logger.setLevel(os.getenv("FILEFERRY_LOG_LEVEL", "INFO").upper())
        logger.propagate = False
    return logger

core_logger = get_logger("fileferry.core")

__all__ = ["get_logger", "core_logger", "summarize_for_log", "LOG_FORMAT"]
