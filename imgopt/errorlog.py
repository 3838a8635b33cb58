"""Append-only log of failed processing attempts."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .contracts import ErrorLogEntry

logger = logging.getLogger(__name__)


class ErrorLogger:
    """Write one JSON line per failed attempt.

    Entries recorded during the current process are also kept in memory so
    the end-of-run report can list them. When ``path`` is ``None`` nothing is
    written to disk.
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path) if path is not None else None
        self.entries: List[ErrorLogEntry] = []

    def _append(self, line: str) -> None:
        assert self.path is not None
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def record(self, entry: ErrorLogEntry) -> None:
        self.entries.append(entry)
        if self.path is None:
            return
        try:
            await asyncio.to_thread(
                self._append, entry.model_dump_json(by_alias=True, exclude_none=True)
            )
        except OSError as exc:
            logger.error(f"Failed to write to error log {self.path}: {exc}")

    def read(self) -> List[ErrorLogEntry]:
        """Return every entry stored in the log file."""
        if self.path is None or not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [ErrorLogEntry.model_validate_json(line) for line in f if line.strip()]
