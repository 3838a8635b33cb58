"""Persistence layer for imgopt run state."""

from __future__ import annotations

from typing import Optional

from ..config import ImgoptConfig
from .inmemory import InMemoryCheckpointStore
from .json_file import JsonFileCheckpointStore
from .models import AbsentState, IncompatibleState, LoadedState, UsableState
from .repository import CheckpointStore
from .sqlite import SQLiteCheckpointStore


def get_checkpoint_store(
    location: Optional[str] = None, config: Optional[ImgoptConfig] = None
) -> CheckpointStore:
    """Factory function to obtain a checkpoint store.

    ``location`` (or ``config.state_file``) selects the backend:
    ``sqlite://<path>`` uses SQLite, ``memory://`` keeps state in memory and
    anything else is treated as the path of a JSON document.
    """

    config = config or ImgoptConfig()
    location = location or config.state_file

    if location.startswith("sqlite://"):
        return SQLiteCheckpointStore(location.replace("sqlite://", "", 1))
    if location == "memory://":
        return InMemoryCheckpointStore()
    return JsonFileCheckpointStore(location)


__all__ = [
    "AbsentState",
    "CheckpointStore",
    "IncompatibleState",
    "InMemoryCheckpointStore",
    "JsonFileCheckpointStore",
    "LoadedState",
    "SQLiteCheckpointStore",
    "UsableState",
    "get_checkpoint_store",
]
