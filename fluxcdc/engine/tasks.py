"""External task endpoints: fetch-and-lock, complete and failure."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..constants import FAILURE_RETRIES, FAILURE_RETRY_TIMEOUT_MS
from ..contracts import LeasedTask
from ..models import (
    CompleteRequest,
    ExternalTask,
    FailureRequest,
    FetchAndLockRequest,
    TopicSubscription,
)
from .client import EngineClient

logger = logging.getLogger(__name__)


class ExternalTaskClient:
    """Lease, complete and fail external tasks on behalf of one worker id."""

    def __init__(self, client: EngineClient, worker_id: str) -> None:
        self._client = client
        self.worker_id = worker_id

    async def ping(self) -> None:
        await self._client.ping()

    async def fetch_and_lock(
        self,
        topics: Sequence[str],
        max_tasks: int,
        lock_duration_ms: int,
        use_priority: bool = True,
    ) -> List[LeasedTask]:
        """Claim up to ``max_tasks`` tasks across ``topics``.

        Each topic is subscribed with the same lock duration; the engine
        guarantees a task is handed to at most one worker per lock window.
        """
        request = FetchAndLockRequest(
            worker_id=self.worker_id,
            max_tasks=max_tasks,
            use_priority=use_priority,
            topics=[
                TopicSubscription(topic_name=topic, lock_duration=lock_duration_ms)
                for topic in topics
            ],
        )
        response = await self._client.request(
            "POST",
            "/external-task/fetchAndLock",
            json_body=request.model_dump(by_alias=True),
        )
        tasks = EngineClient.decode_list(response, ExternalTask)
        return [LeasedTask.from_engine(task, self.worker_id) for task in tasks]

    async def complete(
        self, task_id: str, variables: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> None:
        request = CompleteRequest(worker_id=self.worker_id, variables=variables or {})
        await self._client.request(
            "POST",
            f"/external-task/{task_id}/complete",
            json_body=request.model_dump(by_alias=True),
        )
        logger.info(f"Completed task {task_id}")

    async def failure(
        self,
        task_id: str,
        error_message: str,
        error_details: Optional[str] = None,
    ) -> None:
        """Report a failed task with no engine-side retries left."""
        request = FailureRequest(
            worker_id=self.worker_id,
            error_message=error_message,
            error_details=error_details,
            retries=FAILURE_RETRIES,
            retry_timeout=FAILURE_RETRY_TIMEOUT_MS,
        )
        await self._client.request(
            "POST",
            f"/external-task/{task_id}/failure",
            json_body=request.model_dump(by_alias=True),
        )
        logger.info(f"Reported failure for task {task_id}")
