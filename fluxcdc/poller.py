"""Incremental change capture over the engine's history API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .contracts import ActivityRecord, ProcessEvent, ProcessState, Watermark
from .engine.history import HistoryClient
from .errors import DecodeError, TransportError
from .models import HistoricProcessInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    """Events of one cycle and the watermark to hand to the next one."""

    events: List[ProcessEvent] = field(default_factory=list)
    watermark: Watermark = field(default_factory=Watermark.initial)


class CheckpointedPoller:
    """Turn the stateless history API into an ordered, checkpointed stream.

    The poller holds no watermark of its own: each call to :meth:`poll`
    receives the current watermark and returns its successor, so persisting
    it between runs is the caller's job. Instances whose start time equals
    the watermark are fetched again on the next cycle; consumers upsert by
    process instance id.
    """

    def __init__(self, history: HistoryClient, batch_size: int = 100) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._history = history
        self.batch_size = batch_size

    async def poll(self, watermark: Optional[Watermark] = None) -> PollResult:
        """Fetch the next batch of process instances after ``watermark``.

        Raises:
            TransportError: The base history query could not be executed.
            DecodeError: The base history query returned a malformed body.
        """
        watermark = watermark or Watermark.initial()
        instances = await self._history.process_instances(
            watermark.started_after, self.batch_size
        )
        if not instances:
            return PollResult(events=[], watermark=watermark)

        instances = sorted(instances, key=lambda proc: proc.start_time)
        events = [await self._build_event(proc) for proc in instances]

        # Only advance once every event of the cycle exists.
        next_watermark = watermark.advance(event.start_time for event in events)
        logger.debug(
            f"Polled {len(events)} process instances, watermark "
            f"{watermark.started_after} -> {next_watermark.started_after}"
        )
        return PollResult(events=events, watermark=next_watermark)

    async def _build_event(self, proc: HistoricProcessInstance) -> ProcessEvent:
        activities: List[ActivityRecord] = []
        try:
            activities = [
                ActivityRecord.from_engine(activity)
                for activity in await self._history.activity_instances(proc.id)
            ]
        except (TransportError, DecodeError) as exc:
            logger.warning(f"Failed to fetch activities for {proc.id}: {exc}")

        variables: Optional[Dict[str, Any]] = None
        try:
            variables = {
                variable.name: variable.value
                for variable in await self._history.variable_instances(proc.id)
            }
        except (TransportError, DecodeError) as exc:
            logger.warning(f"Failed to fetch variables for {proc.id}: {exc}")

        state = ProcessState.from_engine(proc.state)
        end_time = proc.end_time
        duration = proc.duration_in_millis
        if state is ProcessState.ACTIVE:
            end_time = None
            duration = None
        elif end_time is None:
            logger.warning(
                f"Process {proc.id} reported as {proc.state} without an end time; "
                "emitting it as ACTIVE"
            )
            state = ProcessState.ACTIVE
            duration = None
        elif duration is None:
            duration = int((end_time - proc.start_time).total_seconds() * 1000)

        return ProcessEvent(
            process_instance_id=proc.id,
            process_definition_key=proc.process_definition_key,
            business_key=proc.business_key,
            state=state,
            engine_state=proc.state,
            start_time=proc.start_time,
            end_time=end_time,
            duration_millis=duration,
            variables=variables,
            activities=activities,
        )
