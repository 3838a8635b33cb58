"""SQLite implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..contracts import RunState
from ..errors import CheckpointError
from .models import AbsentState, IncompatibleState, LoadedState, check_document
from .repository import CheckpointStore

logger = logging.getLogger(__name__)


class SQLiteCheckpointStore(CheckpointStore):
    """Persist run state in a single-row SQLite table.

    Each save replaces the row inside one transaction, which gives the same
    all-or-nothing guarantee as the rename used by the JSON store.
    """

    def __init__(self, db_path: str | Path, key: str = "default"):
        self.db_path = str(db_path)
        self.key = key
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        try:
            self._ensure_schema()
        except sqlite3.Error as exc:
            logger.warning(f"Cannot prepare state database {self.db_path}: {exc}")

    def __repr__(self) -> str:
        return f"SQLiteCheckpointStore({self.db_path!r})"

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS run_state (
                key TEXT PRIMARY KEY,
                schema_version TEXT NOT NULL,
                document TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        with self._conn:
            self._conn.execute(query, params)

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    # ------------------------------------------------------------------
    # Store API
    async def save(self, state: RunState) -> None:
        try:
            await asyncio.to_thread(
                self._execute,
                """
                INSERT INTO run_state (key, schema_version, document, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    schema_version = excluded.schema_version,
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                self.key,
                state.schema_version,
                state.to_json(),
                state.last_updated_at.isoformat(),
            )
        except sqlite3.Error as exc:
            raise CheckpointError(f"Failed to save state to {self.db_path}: {exc}") from exc

    async def load(self) -> LoadedState:
        try:
            row = await asyncio.to_thread(
                self._fetchone,
                "SELECT document FROM run_state WHERE key = ?",
                self.key,
            )
        except sqlite3.Error as exc:
            loaded: LoadedState = IncompatibleState(reason=f"unreadable database: {exc}")
        else:
            if not row:
                return AbsentState()
            try:
                loaded = check_document(json.loads(row["document"]))
            except json.JSONDecodeError as exc:
                loaded = IncompatibleState(reason=f"unreadable document: {exc}")
        if isinstance(loaded, IncompatibleState):
            logger.warning(f"Ignoring saved state in {self.db_path}: {loaded.reason}")
        return loaded

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(
                self._execute, "DELETE FROM run_state WHERE key = ?", self.key
            )
        except sqlite3.Error as exc:
            logger.error(f"Failed to clear state in {self.db_path}: {exc}")
