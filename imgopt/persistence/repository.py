"""Checkpoint store abstraction for run-state persistence."""

from __future__ import annotations

from typing import Protocol

from ..contracts import RunState
from .models import LoadedState


class CheckpointStore(Protocol):
    """Protocol for run-state persistence backends."""

    async def save(self, state: RunState) -> None:
        """Persist ``state`` atomically, replacing any previous document."""

    async def load(self) -> LoadedState:
        """Return the saved state, or why none is usable."""

    async def clear(self) -> None:
        """Remove the saved state; a missing document is not an error."""
