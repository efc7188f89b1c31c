import json
from datetime import datetime, timezone

import pytest

from fluxcdc.contracts import ActivityRecord, ProcessEvent, ProcessState
from fluxcdc.publisher import EventPublisher, activity_record, process_record
from fluxcdc.transports import InMemoryTransport
from fluxcdc.utils import retry

START = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
END = datetime(2024, 5, 1, 10, 1, tzinfo=timezone.utc)


def make_activity(aid: str, pid: str = "P1") -> ActivityRecord:
    return ActivityRecord(
        activity_instance_id=aid,
        process_instance_id=pid,
        activity_id="analyze-sentiment",
        activity_name="Analyze sentiment",
        activity_type="serviceTask",
        execution_id=f"exec-{pid}",
        start_time=START,
    )


def make_event(pid: str = "P1", activities=None, variables=None, completed=False) -> ProcessEvent:
    return ProcessEvent(
        process_instance_id=pid,
        process_definition_key="support-ticket",
        state=ProcessState.COMPLETED if completed else ProcessState.ACTIVE,
        engine_state="COMPLETED" if completed else "ACTIVE",
        start_time=START,
        end_time=END if completed else None,
        duration_millis=60000 if completed else None,
        variables=variables,
        activities=activities or [],
    )


class FlakyTransport(InMemoryTransport):
    """Fails the first ``failures`` sends of selected keys."""

    def __init__(self, failures: dict) -> None:
        super().__init__()
        self.failures = dict(failures)
        self.attempts = []

    async def publish(self, topic, key, record):
        self.attempts.append(key)
        if self.failures.get(key, 0) > 0:
            self.failures[key] -= 1
            raise ConnectionError(f"broker rejected {key}")
        await super().publish(topic, key, record)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def _no_sleep(attempt):
        return None

    monkeypatch.setattr(retry, "schedule_retry", _no_sleep)


def test_process_record_shape():
    record = process_record(make_event(completed=True, variables={"customerId": "c-1"}))

    assert record["_id"] == "P1"
    assert record["state"] == "COMPLETED"
    assert record["start_time"] == "2024-05-01T10:00:00+00:00"
    assert record["end_time"] == "2024-05-01T10:01:00+00:00"
    assert record["duration_millis"] == 60000
    assert record["_valid_from"] == record["start_time"]
    assert record["variables"] == {"customerId": "c-1"}


def test_active_process_record_has_no_end():
    record = process_record(make_event())
    assert record["state"] == "ACTIVE"
    assert record["end_time"] is None
    assert record["duration_millis"] is None


def test_activity_record_carries_parent_variables_as_json():
    record = activity_record(make_activity("A1"), {"customerId": "c-1"})
    assert record["_id"] == "A1"
    assert record["process_instance_id"] == "P1"
    assert json.loads(record["process_variables"]) == {"customerId": "c-1"}

    assert "process_variables" not in activity_record(make_activity("A1"), None)


@pytest.mark.asyncio
async def test_publish_writes_both_streams_keyed_by_id():
    transport = InMemoryTransport()
    publisher = EventPublisher(transport, "fluxnova-processes", "fluxnova-events")
    event = make_event(activities=[make_activity("A1"), make_activity("A2")])

    report = await publisher.publish([event])

    assert report.ok
    assert report.processes == ["P1"]
    assert sorted(report.events) == ["A1", "A2"]
    assert [key for key, _ in transport.topics["fluxnova-processes"]] == ["P1"]
    assert set(transport.latest("fluxnova-events")) == {"A1", "A2"}


@pytest.mark.asyncio
async def test_republishing_upserts_by_key():
    transport = InMemoryTransport()
    publisher = EventPublisher(transport, "processes", "events")

    await publisher.publish([make_event()])
    await publisher.publish([make_event(completed=True)])

    assert len(transport.topics["processes"]) == 2
    assert transport.latest("processes")["P1"]["state"] == "COMPLETED"


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    transport = FlakyTransport({"A1": 2})
    publisher = EventPublisher(transport, "processes", "events", max_attempts=3)

    report = await publisher.publish([make_event(activities=[make_activity("A1")])])

    assert report.ok
    assert transport.attempts.count("A1") == 3


@pytest.mark.asyncio
async def test_failed_record_does_not_block_siblings():
    transport = FlakyTransport({"A1": 5})
    publisher = EventPublisher(transport, "processes", "events", max_attempts=2)
    events = [
        make_event("P1", activities=[make_activity("A1"), make_activity("A2")]),
        make_event("P2", activities=[make_activity("A3", "P2")]),
    ]

    report = await publisher.publish(events)

    assert not report.ok
    assert [f.key for f in report.failures] == ["A1"]
    assert report.failures[0].topic == "events"
    assert report.processes == ["P1", "P2"]
    assert sorted(report.events) == ["A2", "A3"]
    assert transport.attempts.count("A1") == 2


@pytest.mark.asyncio
async def test_failed_process_record_still_sends_activities():
    transport = FlakyTransport({"P1": 5})
    publisher = EventPublisher(transport, "processes", "events", max_attempts=1)

    report = await publisher.publish([make_event(activities=[make_activity("A1")])])

    assert report.processes == []
    assert report.events == ["A1"]
    assert report.failures[0].key == "P1"
