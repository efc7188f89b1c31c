"""Base transport interface for publishing CDC records."""

from __future__ import annotations

import abc
from typing import Any, Dict

Record = Dict[str, Any]


class BaseTransport(metaclass=abc.ABCMeta):
    """Abstract producer for a message broker."""

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def flush(self) -> None:
        """Push out any buffered records (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, key: str, record: Record) -> None:
        """Send one record to ``topic``, partitioned by ``key``."""
        raise NotImplementedError
