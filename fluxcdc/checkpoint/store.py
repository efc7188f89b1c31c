"""Store abstraction for the poller's watermark."""

from __future__ import annotations

from typing import Protocol

from ..contracts import Watermark


class CheckpointStore(Protocol):
    """Protocol for watermark persistence backends."""

    async def load(self) -> Watermark | None:
        """Return the last saved watermark, or ``None`` if there is none."""

    async def save(self, watermark: Watermark) -> None:
        """Persist ``watermark``, replacing the previous one."""

    async def reset(self) -> None:
        """Forget the saved watermark so the next run starts from scratch."""

    async def close(self) -> None:
        """Release backend resources."""
