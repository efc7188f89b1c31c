"""Kafka transport implementation using aiokafka."""

from __future__ import annotations

import json
from typing import Iterable, Optional

from aiokafka import AIOKafkaProducer

from .base import BaseTransport, Record


class KafkaTransport(BaseTransport):
    """Publishes JSON records keyed by entity id."""

    def __init__(
        self,
        brokers: Iterable[str] | str = "localhost:9092",
        client_id: str = "fluxcdc",
    ) -> None:
        self.brokers = [brokers] if isinstance(brokers, str) else list(brokers)
        self.client_id = client_id
        self._producer: Optional[AIOKafkaProducer] = None

    async def connect(self) -> None:
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self.brokers,
            client_id=self.client_id,
            acks="all",
            key_serializer=lambda key: key.encode("utf-8"),
            value_serializer=lambda value: json.dumps(value, default=str).encode("utf-8"),
        )
        await self._producer.start()

    async def flush(self) -> None:
        if self._producer:
            await self._producer.flush()

    async def disconnect(self) -> None:
        if self._producer:
            producer, self._producer = self._producer, None
            await producer.stop()

    async def publish(self, topic: str, key: str, record: Record) -> None:
        if not self._producer:
            raise RuntimeError("KafkaTransport not connected")
        await self._producer.send_and_wait(topic, value=record, key=key)
