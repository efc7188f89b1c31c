"""Read-only access to the engine's process and activity history."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..models import (
    HistoricActivityInstance,
    HistoricDetail,
    HistoricProcessInstance,
    HistoricVariableInstance,
)
from ..timefmt import format_engine_time
from .client import EngineClient


class HistoryClient:
    """Typed, pull-only queries over the history endpoints."""

    def __init__(self, client: EngineClient) -> None:
        self._client = client

    async def ping(self) -> None:
        await self._client.ping()

    async def process_instances(
        self, started_after: Optional[datetime], max_results: int
    ) -> List[HistoricProcessInstance]:
        """Process instances started after ``started_after``, oldest first."""
        params = {
            "sortBy": "startTime",
            "sortOrder": "asc",
            "maxResults": max_results,
        }
        if started_after is not None:
            params["startedAfter"] = format_engine_time(started_after)
        return await self._client.get_list(
            "/history/process-instance", HistoricProcessInstance, params
        )

    async def activity_instances(
        self, process_instance_id: str
    ) -> List[HistoricActivityInstance]:
        return await self._client.get_list(
            "/history/activity-instance",
            HistoricActivityInstance,
            {
                "processInstanceId": process_instance_id,
                "sortBy": "startTime",
                "sortOrder": "asc",
            },
        )

    async def variable_instances(
        self, process_instance_id: str
    ) -> List[HistoricVariableInstance]:
        return await self._client.get_list(
            "/history/variable-instance",
            HistoricVariableInstance,
            {"processInstanceId": process_instance_id},
        )

    async def details(self, process_instance_id: str) -> List[HistoricDetail]:
        """Audit log entries of one instance in time order."""
        return await self._client.get_list(
            "/history/detail",
            HistoricDetail,
            {
                "processInstanceId": process_instance_id,
                "sortBy": "time",
                "sortOrder": "asc",
            },
        )
