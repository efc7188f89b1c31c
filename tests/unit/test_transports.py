"""Transport tests."""

import json

import pytest

from fluxcdc.transports import kafka as kafka_module
from fluxcdc.transports.inmemory import InMemoryTransport
from fluxcdc.transports.kafka import KafkaTransport


@pytest.mark.asyncio
async def test_inmemory_transport_keeps_order_and_latest_view():
    transport = InMemoryTransport()
    await transport.connect()

    await transport.publish("processes", "P1", {"state": "ACTIVE"})
    await transport.publish("processes", "P2", {"state": "ACTIVE"})
    await transport.publish("processes", "P1", {"state": "COMPLETED"})

    assert [key for key, _ in transport.topics["processes"]] == ["P1", "P2", "P1"]
    assert transport.latest("processes")["P1"] == {"state": "COMPLETED"}
    await transport.disconnect()
    assert not transport.connected


class FakeProducer:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sent = []
        self.started = False
        self.flushed = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def flush(self):
        self.flushed = True

    async def send_and_wait(self, topic, value=None, key=None):
        self.sent.append(
            (
                topic,
                self.kwargs["key_serializer"](key),
                self.kwargs["value_serializer"](value),
            )
        )


@pytest.mark.asyncio
async def test_kafka_transport_serializes_keyed_json(monkeypatch):
    monkeypatch.setattr(kafka_module, "AIOKafkaProducer", FakeProducer)
    transport = KafkaTransport(brokers="k1:9092")

    await transport.connect()
    producer = transport._producer
    assert producer.kwargs["bootstrap_servers"] == ["k1:9092"]
    assert producer.kwargs["acks"] == "all"

    await transport.publish("fluxnova-processes", "P1", {"_id": "P1", "duration_millis": None})
    await transport.flush()
    await transport.disconnect()

    topic, key, value = producer.sent[0]
    assert topic == "fluxnova-processes"
    assert key == b"P1"
    assert json.loads(value) == {"_id": "P1", "duration_millis": None}
    assert producer.flushed
    assert not producer.started


@pytest.mark.asyncio
async def test_kafka_transport_requires_connect():
    with pytest.raises(RuntimeError):
        await KafkaTransport().publish("t", "k", {})
