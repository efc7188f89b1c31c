"""Transport factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FluxCdcConfig, load_config
from .base import BaseTransport, Record
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[FluxCdcConfig] = None
) -> BaseTransport:
    """Factory function to get the configured transport."""

    config = config or load_config()
    backend = (
        backend or os.getenv("FLUXCDC_TRANSPORT") or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTransport()
    elif backend == "kafka":
        from .kafka import KafkaTransport

        return KafkaTransport(brokers=config.kafka.brokers)
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


__all__ = ["BaseTransport", "InMemoryTransport", "Record", "get_transport"]
