"""PostgreSQL implementation of the checkpoint store."""

from __future__ import annotations

import asyncpg

from ..contracts import Watermark
from .store import CheckpointStore


class PostgresCheckpointStore(CheckpointStore):
    """Persist watermarks using PostgreSQL."""

    def __init__(self, dsn: str, name: str = "default"):
        self._dsn = dsn
        self.name = name
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS fluxcdc_checkpoints (
                name TEXT PRIMARY KEY,
                started_after TIMESTAMPTZ,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def load(self) -> Watermark | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT started_after, updated_at FROM fluxcdc_checkpoints WHERE name = $1",
                self.name,
            )
        finally:
            await conn.close()
        if row is None:
            return None
        return Watermark(
            started_after=row["started_after"], updated_at=row["updated_at"]
        )

    async def save(self, watermark: Watermark) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO fluxcdc_checkpoints (name, started_after, updated_at)
                VALUES ($1, $2, $3)
                ON CONFLICT (name) DO UPDATE SET
                    started_after = EXCLUDED.started_after,
                    updated_at = EXCLUDED.updated_at
                """,
                self.name,
                watermark.started_after,
                watermark.updated_at,
            )
        finally:
            await conn.close()

    async def reset(self) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM fluxcdc_checkpoints WHERE name = $1", self.name
            )
        finally:
            await conn.close()

    async def close(self) -> None:
        pass
