"""In-memory implementation of the checkpoint store."""

from __future__ import annotations

import json
from typing import Optional

from ..contracts import RunState
from .models import AbsentState, LoadedState, check_document
from .repository import CheckpointStore


class InMemoryCheckpointStore(CheckpointStore):
    """Keep run state in local memory.

    Useful for tests or dry runs. The serialized document is stored so that
    loading goes through the same validation as the file backends. Data is
    not persisted across process restarts.
    """

    def __init__(self) -> None:
        self._document: Optional[str] = None

    async def save(self, state: RunState) -> None:
        self._document = state.to_json()

    async def load(self) -> LoadedState:
        if self._document is None:
            return AbsentState()
        return check_document(json.loads(self._document))

    async def clear(self) -> None:
        self._document = None

    @property
    def document(self) -> Optional[dict]:
        """Last saved document as plain JSON data."""
        return json.loads(self._document) if self._document is not None else None
