"""Watermark persistence for the history poller."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FluxCdcConfig, load_config
from .file import FileCheckpointStore
from .inmemory import InMemoryCheckpointStore
from .sqlite import SQLiteCheckpointStore
from .store import CheckpointStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresCheckpointStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresCheckpointStore = None  # type: ignore


def get_checkpoint_store(
    checkpoint_url: Optional[str] = None, config: Optional[FluxCdcConfig] = None
) -> CheckpointStore:
    """Factory function to obtain a checkpoint store.

    The backend is selected from ``checkpoint_url``, which can be provided
    explicitly, via environment variable ``FLUXCDC_CHECKPOINT_URL``, or from
    loaded configuration. Without one, an in-memory store is returned and
    every restart replays history from the beginning.
    """

    config = config or load_config()
    checkpoint_url = (
        checkpoint_url
        or os.getenv("FLUXCDC_CHECKPOINT_URL")
        or config.pipeline.checkpoint_url
    )
    name = config.pipeline.checkpoint_name

    if not checkpoint_url:
        return InMemoryCheckpointStore()

    if checkpoint_url.startswith("file://"):
        return FileCheckpointStore(checkpoint_url.replace("file://", "", 1), name=name)
    if checkpoint_url.startswith("sqlite://"):
        path = checkpoint_url.replace("sqlite://", "", 1)
        return SQLiteCheckpointStore(path, name=name)
    if checkpoint_url.startswith("postgres://") or checkpoint_url.startswith(
        "postgresql://"
    ):
        if PostgresCheckpointStore is None:
            raise RuntimeError("Postgres support not available; install asyncpg")
        return PostgresCheckpointStore(checkpoint_url, name=name)
    raise ValueError(f"Unsupported checkpoint backend: {checkpoint_url}")


__all__ = [
    "CheckpointStore",
    "FileCheckpointStore",
    "InMemoryCheckpointStore",
    "PostgresCheckpointStore",
    "SQLiteCheckpointStore",
    "get_checkpoint_store",
]
