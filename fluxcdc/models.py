"""Wire models for the engine REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .timefmt import parse_engine_time

EngineTime = Annotated[datetime, BeforeValidator(parse_engine_time)]


class EngineModel(BaseModel):
    """Base for engine payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class HistoricProcessInstance(EngineModel):
    id: str
    business_key: Optional[str] = None
    process_definition_id: Optional[str] = None
    process_definition_key: str
    process_definition_name: Optional[str] = None
    process_definition_version: Optional[int] = None
    start_time: EngineTime
    end_time: Optional[EngineTime] = None
    duration_in_millis: Optional[int] = None
    start_user_id: Optional[str] = None
    start_activity_id: Optional[str] = None
    delete_reason: Optional[str] = None
    super_process_instance_id: Optional[str] = None
    tenant_id: Optional[str] = None
    state: str = "ACTIVE"


class HistoricActivityInstance(EngineModel):
    id: str
    parent_activity_instance_id: Optional[str] = None
    activity_id: str
    activity_name: Optional[str] = None
    activity_type: str
    process_definition_key: Optional[str] = None
    process_definition_id: Optional[str] = None
    process_instance_id: str
    execution_id: str
    task_id: Optional[str] = None
    assignee: Optional[str] = None
    called_process_instance_id: Optional[str] = None
    start_time: EngineTime
    end_time: Optional[EngineTime] = None
    duration_in_millis: Optional[int] = None
    canceled: bool = False
    complete_scope: bool = False
    tenant_id: Optional[str] = None


class HistoricVariableInstance(EngineModel):
    id: str
    name: str
    type: Optional[str] = None
    value: Any = None
    process_instance_id: Optional[str] = None
    execution_id: Optional[str] = None
    activity_instance_id: Optional[str] = None
    create_time: Optional[EngineTime] = None
    state: Optional[str] = None


class HistoricDetail(EngineModel):
    """One entry of the engine's audit log (variable updates, form fields)."""

    id: str
    type: str
    process_instance_id: Optional[str] = None
    execution_id: Optional[str] = None
    activity_instance_id: Optional[str] = None
    task_id: Optional[str] = None
    time: Optional[EngineTime] = None
    variable_name: Optional[str] = None
    variable_instance_id: Optional[str] = None
    variable_type: Optional[str] = None
    value: Any = None
    revision: Optional[int] = None
    initial: Optional[bool] = None


class TopicSubscription(EngineModel):
    topic_name: str
    lock_duration: int


class FetchAndLockRequest(EngineModel):
    worker_id: str
    max_tasks: int
    use_priority: bool = True
    topics: List[TopicSubscription] = Field(default_factory=list)


class ExternalTask(EngineModel):
    id: str
    worker_id: Optional[str] = None
    topic_name: str
    process_instance_id: str
    process_definition_id: Optional[str] = None
    process_definition_key: Optional[str] = None
    activity_id: Optional[str] = None
    activity_instance_id: str
    execution_id: str
    lock_expiration_time: Optional[EngineTime] = None
    retries: Optional[int] = None
    priority: int = 0
    business_key: Optional[str] = None
    # Raw engine values; typed per task so one bad variable cannot fail a batch.
    variables: Dict[str, Any] = Field(default_factory=dict)


class CompleteRequest(EngineModel):
    worker_id: str
    variables: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class FailureRequest(EngineModel):
    worker_id: str
    error_message: str
    error_details: Optional[str] = None
    retries: int = 0
    retry_timeout: int = 0
