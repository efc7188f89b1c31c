"""Fan process events out to the processes and events streams."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .contracts import ActivityRecord, ProcessEvent
from .errors import PublishError
from .timefmt import to_rfc3339
from .transports import BaseTransport, Record
from .utils import retry

logger = logging.getLogger(__name__)


def process_record(event: ProcessEvent) -> Record:
    """Flat, sink-ready record for the processes stream."""
    return {
        "_id": event.process_instance_id,
        "process_instance_id": event.process_instance_id,
        "process_definition_key": event.process_definition_key,
        "business_key": event.business_key,
        "state": event.state.value,
        "engine_state": event.engine_state,
        "start_time": to_rfc3339(event.start_time),
        "end_time": to_rfc3339(event.end_time),
        "duration_millis": event.duration_millis,
        "variables": event.variables,
        "observed_at": to_rfc3339(event.observed_at),
        "_valid_from": to_rfc3339(event.start_time),
    }


def activity_record(
    activity: ActivityRecord, process_variables: Optional[Dict[str, Any]] = None
) -> Record:
    """Flat, sink-ready record for the events stream.

    The parent's variables travel along as JSON text so consumers see the
    decision context without a join.
    """
    record: Record = {
        "_id": activity.activity_instance_id,
        "process_instance_id": activity.process_instance_id,
        "activity_id": activity.activity_id,
        "activity_name": activity.activity_name,
        "activity_type": activity.activity_type,
        "execution_id": activity.execution_id,
        "task_id": activity.task_id,
        "assignee": activity.assignee,
        "start_time": to_rfc3339(activity.start_time),
        "end_time": to_rfc3339(activity.end_time),
        "duration_millis": activity.duration_millis,
        "canceled": activity.canceled,
        "_valid_from": to_rfc3339(activity.start_time),
    }
    if process_variables:
        record["process_variables"] = json.dumps(process_variables, default=str)
    return record


@dataclass
class PublishReport:
    """Keys delivered per stream and the records that could not be sent."""

    processes: List[str] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    failures: List[PublishError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class EventPublisher:
    """Publish each event as one process record plus one record per activity.

    Every record is retried and reported on its own; a failed record never
    prevents its siblings from being sent.
    """

    def __init__(
        self,
        transport: BaseTransport,
        processes_topic: str,
        events_topic: str,
        max_attempts: int = 3,
    ) -> None:
        self._transport = transport
        self.processes_topic = processes_topic
        self.events_topic = events_topic
        self.max_attempts = max_attempts

    async def publish(self, events: Sequence[ProcessEvent]) -> PublishReport:
        report = PublishReport()
        for event in events:
            error = await self._send(
                self.processes_topic, event.process_instance_id, process_record(event)
            )
            if error is None:
                report.processes.append(event.process_instance_id)
            else:
                report.failures.append(error)

            results = await asyncio.gather(
                *(
                    self._send(
                        self.events_topic,
                        activity.activity_instance_id,
                        activity_record(activity, event.variables),
                    )
                    for activity in event.activities
                )
            )
            for activity, error in zip(event.activities, results):
                if error is None:
                    report.events.append(activity.activity_instance_id)
                else:
                    report.failures.append(error)
        return report

    async def _send(self, topic: str, key: str, record: Record) -> Optional[PublishError]:
        try:
            await retry.with_retries(
                lambda: self._transport.publish(topic, key, record),
                attempts=self.max_attempts,
            )
        except Exception as exc:
            error = PublishError(topic, key, str(exc))
            logger.error(str(error))
            return error
        logger.debug(f"Sent {key} to {topic}")
        return None
