"""Engine settings loading and normalization.

Precedence (later wins): built-in defaults < YAML file < environment < explicit
overrides (CLI flags).

Environment variables:
  FILEFERRY_IDLE_TIMEOUT=30      seconds before an idle worker is stopped
  FILEFERRY_DEBUG=1              mirror worker output, never auto-stop
  FILEFERRY_PYTHON=/usr/bin/python3
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import sys
import yaml
from .errors import ConfigError

DEFAULT_IDLE_TIMEOUT_S = 30.0
_TRUE = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    idle_timeout_s: float = DEFAULT_IDLE_TIMEOUT_S
    debug: bool = False
    python: str = field(default_factory=lambda: sys.executable)
    preload_modules: List[str] = field(default_factory=lambda: ["shutil"])
    message_history: int = 200
    workdir: Optional[str] = None


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    # allow the settings to live under a "fileferry:" section
    return data.get("fileferry", data)


def _from_env() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if os.getenv("FILEFERRY_IDLE_TIMEOUT"):
        out["idle_timeout_s"] = os.environ["FILEFERRY_IDLE_TIMEOUT"]
    if os.getenv("FILEFERRY_DEBUG"):
        out["debug"] = os.environ["FILEFERRY_DEBUG"].lower() in _TRUE
    if os.getenv("FILEFERRY_PYTHON"):
        out["python"] = os.environ["FILEFERRY_PYTHON"]
    return out


def _validate(raw: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(Settings)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
    td = dict(raw)
    if "idle_timeout_s" in td:
        try:
            td["idle_timeout_s"] = float(td["idle_timeout_s"])
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid idle_timeout_s: {raw['idle_timeout_s']!r}")
        if td["idle_timeout_s"] <= 0:
            raise ConfigError("idle_timeout_s must be positive")
    if "debug" in td and isinstance(td["debug"], str):
        td["debug"] = td["debug"].lower() in _TRUE
    if "preload_modules" in td and not isinstance(td["preload_modules"], list):
        raise ConfigError("preload_modules must be a list of module names")
    if "message_history" in td:
        if not isinstance(td["message_history"], int) or td["message_history"] < 1:
            raise ConfigError("message_history must be a positive integer")
    return td


def load_settings(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    merged: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Settings file not found: {path}")
        merged.update(_read_yaml(path))
    merged.update(_from_env())
    # None means "flag not given"
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return Settings(**_validate(merged))

__all__ = ["Settings", "load_settings", "ConfigError", "DEFAULT_IDLE_TIMEOUT_S"]
