"""Domain contracts produced by the poller and consumed by the worker."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import ExternalTask, HistoricActivityInstance
from .timefmt import utcnow

RUNNING_ENGINE_STATES = frozenset({"ACTIVE", "SUSPENDED"})


class ProcessState(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def from_engine(cls, engine_state: str) -> "ProcessState":
        """Collapse the engine's lifecycle states onto ACTIVE/COMPLETED."""
        if engine_state.upper() in RUNNING_ENGINE_STATES:
            return cls.ACTIVE
        return cls.COMPLETED


class ActivityRecord(BaseModel):
    """One activity execution within a process instance."""

    model_config = ConfigDict(frozen=True)

    activity_instance_id: str
    process_instance_id: str
    activity_id: str
    activity_name: Optional[str] = None
    activity_type: str
    execution_id: str
    task_id: Optional[str] = None
    assignee: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_millis: Optional[int] = None
    canceled: bool = False

    @classmethod
    def from_engine(cls, activity: HistoricActivityInstance) -> "ActivityRecord":
        return cls(
            activity_instance_id=activity.id,
            process_instance_id=activity.process_instance_id,
            activity_id=activity.activity_id,
            activity_name=activity.activity_name,
            activity_type=activity.activity_type,
            execution_id=activity.execution_id,
            task_id=activity.task_id,
            assignee=activity.assignee,
            start_time=activity.start_time,
            end_time=activity.end_time,
            duration_millis=activity.duration_in_millis,
            canceled=activity.canceled,
        )


class ProcessEvent(BaseModel):
    """Snapshot of one process instance observed during a poll cycle."""

    process_instance_id: str
    process_definition_key: str
    business_key: Optional[str] = None
    state: ProcessState
    engine_state: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_millis: Optional[int] = None
    variables: Optional[Dict[str, Any]] = None
    activities: List[ActivityRecord] = Field(default_factory=list)
    observed_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "ProcessEvent":
        if self.state is ProcessState.COMPLETED:
            if self.end_time is None or self.duration_millis is None:
                raise ValueError("completed process requires end_time and duration")
        elif self.end_time is not None or self.duration_millis is not None:
            raise ValueError("active process cannot carry end_time or duration")
        return self


class Watermark(BaseModel):
    """Start time of the latest process instance emitted so far.

    Immutable: every poll receives one and hands back its successor. Never
    moves backwards except through an explicit checkpoint reset.
    """

    model_config = ConfigDict(frozen=True)

    started_after: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def initial(cls) -> "Watermark":
        return cls()

    @property
    def is_initial(self) -> bool:
        return self.started_after is None

    def advance(self, start_times: Iterable[datetime]) -> "Watermark":
        """Return a watermark at the maximum of ``self`` and ``start_times``."""
        candidates = list(start_times)
        if self.started_after is not None:
            candidates.append(self.started_after)
        if not candidates:
            return self
        latest = max(candidates)
        if latest == self.started_after:
            return self
        return Watermark(started_after=latest)


class LeasedTask(BaseModel):
    """An external task claimed by this worker for a bounded lock duration."""

    id: str
    worker_id: str
    topic_name: str
    process_instance_id: str
    process_definition_id: Optional[str] = None
    activity_id: Optional[str] = None
    activity_instance_id: str
    execution_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    lock_expiration_time: Optional[datetime] = None
    retries: Optional[int] = None
    priority: int = 0
    business_key: Optional[str] = None

    @classmethod
    def from_engine(cls, task: ExternalTask, worker_id: str) -> "LeasedTask":
        return cls(
            id=task.id,
            worker_id=task.worker_id or worker_id,
            topic_name=task.topic_name,
            process_instance_id=task.process_instance_id,
            process_definition_id=task.process_definition_id,
            activity_id=task.activity_id,
            activity_instance_id=task.activity_instance_id,
            execution_id=task.execution_id,
            variables=task.variables,
            lock_expiration_time=task.lock_expiration_time,
            retries=task.retries,
            priority=task.priority,
            business_key=task.business_key,
        )
