"""In-memory implementation of the checkpoint store."""

from __future__ import annotations

from ..contracts import Watermark
from .store import CheckpointStore


class InMemoryCheckpointStore(CheckpointStore):
    """Keep the watermark in local memory.

    Useful for tests or when no checkpoint location is configured. The
    watermark is lost on restart and the next run replays from the start.
    """

    def __init__(self) -> None:
        self._watermark: Watermark | None = None

    async def load(self) -> Watermark | None:
        return self._watermark

    async def save(self, watermark: Watermark) -> None:
        self._watermark = watermark

    async def reset(self) -> None:
        self._watermark = None

    async def close(self) -> None:
        pass
