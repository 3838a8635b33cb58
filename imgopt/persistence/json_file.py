"""JSON file implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from ..contracts import RunState
from ..errors import CheckpointError
from .models import AbsentState, IncompatibleState, LoadedState, check_document
from .repository import CheckpointStore

logger = logging.getLogger(__name__)


class JsonFileCheckpointStore(CheckpointStore):
    """Persist run state as a single JSON document.

    Writes go to a temporary file in the target directory which is then
    renamed over the document, so readers see either the old or the new
    state, never a partial one.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"JsonFileCheckpointStore({str(self.path)!r})"

    # ------------------------------------------------------------------
    # Blocking helpers
    def _write(self, payload: str) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _read(self) -> LoadedState:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return AbsentState()
        except UnicodeDecodeError as exc:
            return IncompatibleState(reason=f"unreadable document: {exc}")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            return IncompatibleState(reason=f"unreadable document: {exc}")
        return check_document(data)

    # ------------------------------------------------------------------
    # Store API
    async def save(self, state: RunState) -> None:
        try:
            await asyncio.to_thread(self._write, state.to_json())
        except OSError as exc:
            raise CheckpointError(f"Failed to save state to {self.path}: {exc}") from exc

    async def load(self) -> LoadedState:
        try:
            loaded = await asyncio.to_thread(self._read)
        except OSError as exc:
            loaded = IncompatibleState(reason=f"unreadable document: {exc}")
        if isinstance(loaded, IncompatibleState):
            logger.warning(f"Ignoring saved state in {self.path}: {loaded.reason}")
        return loaded

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self.path.unlink)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error(f"Failed to clear state {self.path}: {exc}")
