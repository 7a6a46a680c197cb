"""Handlers executed inside the worker, keyed by task kind.

Each handler receives a decoded task and returns a short human summary.
Errors propagate to the worker loop, which turns them into notifications.
"""
from __future__ import annotations

import importlib
import os
import shutil
import sys
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from .errors import PathOverlapError, UnknownTaskError
from .tasks import CopyTask, MoveTask, PreloadTask, SyncPathTask


def _check_overlap(src: Path, target: Path):
    """Refuse pairs where writing the target would destroy or recurse into the source."""
    if os.path.lexists(target):
        if os.path.abspath(src) == os.path.abspath(target) or (
            src.exists() and target.exists() and os.path.samefile(src, target)
        ):
            raise PathOverlapError(f"source and target are the same: {src}")
    if src.is_dir() and not src.is_symlink() and target.resolve().is_relative_to(src.resolve()):
        raise PathOverlapError(f"cannot put directory {src} inside itself: {target}")


def _resolve_targets(sources: List[str], destination: str) -> List[Tuple[Path, Path]]:
    """Pair every source with its target path.

    The destination is treated as a directory when it already is one or when
    several sources are given (it is created in that case). Every pair is
    checked for overlap before anything on disk changes.
    """
    dest = Path(destination).expanduser()
    srcs = [Path(s).expanduser() for s in sources]
    for s in srcs:
        if not s.exists() and not s.is_symlink():
            raise FileNotFoundError(f"source does not exist: {s}")
    as_dir = len(srcs) > 1 or dest.is_dir()
    pairs = [(s, dest / s.name) for s in srcs] if as_dir else [(srcs[0], dest)]
    for src, target in pairs:
        _check_overlap(src, target)
    if as_dir and not dest.is_dir():
        dest.mkdir(parents=True, exist_ok=True)
    return pairs


def _check_overwrite(target: Path, overwrite: str):
    if overwrite == "never" and (target.exists() or target.is_symlink()):
        raise FileExistsError(f"target exists: {target}")


def _remove(target: Path):
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    elif target.exists() or target.is_symlink():
        target.unlink()


def handle_copy(task: CopyTask) -> str:
    copy_fn = shutil.copy2 if task.preserve_metadata else shutil.copy
    pairs = _resolve_targets(task.sources, task.destination)
    for src, target in pairs:
        _check_overwrite(target, task.overwrite)
        if src.is_dir() and not src.is_symlink():
            if target.is_symlink() or (target.exists() and not target.is_dir()):
                _remove(target)
            # "always" merges into an existing directory
            shutil.copytree(src, target, copy_function=copy_fn, dirs_exist_ok=True, symlinks=True)
        else:
            if target.is_symlink() or target.is_dir():
                _remove(target)
            copy_fn(src, target, follow_symlinks=False)
    return f"copied {len(pairs)} item(s) to {task.destination}"


def handle_move(task: MoveTask) -> str:
    pairs = _resolve_targets(task.sources, task.destination)
    for src, target in pairs:
        _check_overwrite(target, task.overwrite)
        if os.path.lexists(target):
            _remove(target)
        shutil.move(str(src), str(target))
    return f"moved {len(pairs)} item(s) to {task.destination}"


def handle_sync_path(task: SyncPathTask) -> str:
    added = 0
    for p in task.paths:
        if p not in sys.path:
            sys.path.append(p)
            added += 1
    return f"search path synced ({added} entries added)"


def handle_preload(task: PreloadTask) -> str:
    for name in task.modules:
        importlib.import_module(name)
    return f"preloaded {', '.join(task.modules) or 'nothing'}"


HANDLERS: Dict[str, Callable] = {
    "copy": handle_copy,
    "move": handle_move,
    "sync_path": handle_sync_path,
    "preload": handle_preload,
}


def execute(task) -> str:
    handler = HANDLERS.get(task.kind)
    if handler is None:
        raise UnknownTaskError(f"no handler for task kind {task.kind!r}")
    return handler(task)


__all__ = ["HANDLERS", "execute", "handle_copy", "handle_move", "handle_sync_path", "handle_preload"]
