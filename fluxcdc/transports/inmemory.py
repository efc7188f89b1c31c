"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Dict, List, Tuple

from .base import BaseTransport, Record


class InMemoryTransport(BaseTransport):
    """Collects published records per topic in process memory."""

    def __init__(self) -> None:
        self.topics: Dict[str, List[Tuple[str, Record]]] = defaultdict(list)
        self.connected = False
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def publish(self, topic: str, key: str, record: Record) -> None:
        async with self._lock:
            self.topics[topic].append((key, record))

    def latest(self, topic: str) -> Dict[str, Record]:
        """Upsert view of ``topic``: the last record per key."""
        return {key: record for key, record in self.topics[topic]}
