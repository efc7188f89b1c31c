"""SQLite implementation of the checkpoint store."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from ..contracts import Watermark
from .store import CheckpointStore


class SQLiteCheckpointStore(CheckpointStore):
    """Persist watermarks using SQLite, one row per checkpoint name."""

    def __init__(self, db_path: str | Path, name: str = "default"):
        self.db_path = str(db_path)
        self.name = name
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                name TEXT PRIMARY KEY,
                started_after TEXT,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    # ------------------------------------------------------------------
    # Store API
    async def load(self) -> Watermark | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT started_after, updated_at FROM checkpoints WHERE name = ?",
            self.name,
        )
        if not row:
            return None
        return Watermark(
            started_after=(
                datetime.fromisoformat(row["started_after"])
                if row["started_after"]
                else None
            ),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def save(self, watermark: Watermark) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO checkpoints (name, started_after, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                started_after = excluded.started_after,
                updated_at = excluded.updated_at
            """,
            self.name,
            watermark.started_after.isoformat() if watermark.started_after else None,
            watermark.updated_at.isoformat(),
        )

    async def reset(self) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM checkpoints WHERE name = ?", self.name
        )

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)
