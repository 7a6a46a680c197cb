"""Centralized custom exception hierarchy for the delegation engine."""
from __future__ import annotations

class FerryError(Exception):
    """Base class for all fileferry errors."""

class ConfigError(FerryError):
    pass

class SpawnError(FerryError):  # background interpreter could not be created
    pass

class TransmissionError(FerryError):  # writing a task to the worker failed
    pass

class TaskDecodeError(FerryError):
    pass

class UnknownTaskError(FerryError):
    pass

class PathOverlapError(FerryError):  # source and target are the same path or nested
    pass

__all__ = [
    "FerryError",
    "ConfigError",
    "SpawnError",
    "TransmissionError",
    "TaskDecodeError",
    "UnknownTaskError",
    "PathOverlapError",
]
