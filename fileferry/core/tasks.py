"""Versioned task schema shared by the foreground and the worker.

Every task is one JSON object on one line:

    {"v": 1, "kind": "copy", "id": "3f2a9c1b", "sources": [...], "destination": "...",
     "overwrite": "always", "preserve_metadata": true}

``kind`` selects the variant; ``v`` is the schema version. JSON escapes
newlines inside strings, so an encoded task never spans more than one line.
"""
from __future__ import annotations

import uuid
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import TaskDecodeError

SCHEMA_VERSION = 1

OverwritePolicy = Literal["always", "never"]


def _new_id() -> str:
    return uuid.uuid4().hex[:8]


class _TaskBase(BaseModel):
    v: Literal[1] = SCHEMA_VERSION
    id: str = Field(default_factory=_new_id)

    def describe(self) -> str:
        return f"{self.kind} {self.id}"  # type: ignore[attr-defined]


class CopyTask(_TaskBase):
    kind: Literal["copy"] = "copy"
    sources: List[str] = Field(min_length=1)
    destination: str
    overwrite: OverwritePolicy = "always"
    preserve_metadata: bool = True


class MoveTask(_TaskBase):
    kind: Literal["move"] = "move"
    sources: List[str] = Field(min_length=1)
    destination: str
    overwrite: OverwritePolicy = "always"


class SyncPathTask(_TaskBase):
    """Bootstrap: replicate the foreground's module search path."""

    kind: Literal["sync_path"] = "sync_path"
    paths: List[str] = Field(default_factory=list)


class PreloadTask(_TaskBase):
    """Bootstrap: import the modules delegated operations rely on."""

    kind: Literal["preload"] = "preload"
    modules: List[str] = Field(default_factory=list)


Task = Annotated[Union[CopyTask, MoveTask, SyncPathTask, PreloadTask], Field(discriminator="kind")]

_task_adapter: TypeAdapter = TypeAdapter(Task)


def encode_task(task: _TaskBase) -> str:
    """Serialize a task to its single-line wire form (no terminator)."""
    line = task.model_dump_json()
    # model_dump_json escapes control characters; guard anyway
    if "\n" in line or "\r" in line:
        raise ValueError(f"encoded task {task.id} spans several lines")
    return line


def decode_task(line: str):
    """Parse one wire line back into its task variant.

    Raises TaskDecodeError for malformed JSON, unknown kinds or an unsupported
    schema version.
    """
    try:
        return _task_adapter.validate_json(line.strip())
    except ValidationError as e:
        raise TaskDecodeError(f"invalid task line: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


__all__ = [
    "SCHEMA_VERSION",
    "OverwritePolicy",
    "CopyTask",
    "MoveTask",
    "SyncPathTask",
    "PreloadTask",
    "Task",
    "encode_task",
    "decode_task",
]
