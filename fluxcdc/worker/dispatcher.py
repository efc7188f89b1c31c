"""Lease-based dispatch of external tasks to registered handlers."""

from __future__ import annotations

import asyncio
import logging
import traceback
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import FluxCdcConfig, load_config
from ..constants import DEFAULT_LOCK_DURATION_MS
from ..contracts import LeasedTask
from ..engine import EngineClient, ExternalTaskClient
from ..errors import DecodeError, TransportError
from ..utils.ticker import PeriodicRunner
from .registry import TopicRegistry

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Outcome of one fetch-and-execute cycle."""

    fetched: int = 0
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    unreported: List[str] = field(default_factory=list)
    error: Optional[Exception] = None


class TaskDispatcher:
    """Claim tasks for the registry's topics and resolve each one.

    Every fetched task is resolved independently: a handler error becomes a
    failure report for that task only. Leases are never renewed, so handlers
    must finish well within ``lock_duration_ms``.
    """

    def __init__(
        self,
        tasks: ExternalTaskClient,
        registry: TopicRegistry,
        max_tasks: int = 10,
        lock_duration_ms: int = DEFAULT_LOCK_DURATION_MS,
        concurrency: int = 1,
        tick_interval: float = 1.0,
        use_priority: bool = True,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._tasks = tasks
        self._registry = registry
        self._registry.freeze()
        self.topics = registry.topics
        self.max_tasks = max_tasks
        self.lock_duration_ms = lock_duration_ms
        self.concurrency = concurrency
        self.use_priority = use_priority
        self._runner = PeriodicRunner(tick_interval, name="worker")

    @classmethod
    def from_config(
        cls,
        registry: TopicRegistry,
        config: Optional[FluxCdcConfig] = None,
        engine: Optional[EngineClient] = None,
    ) -> "TaskDispatcher":
        config = config or load_config()
        engine = engine or EngineClient.from_config(config.engine)
        worker = config.worker
        return cls(
            ExternalTaskClient(engine, worker_id=worker.worker_id),
            registry,
            max_tasks=worker.max_tasks,
            lock_duration_ms=worker.lock_duration_ms,
            concurrency=worker.concurrency,
            tick_interval=worker.tick_interval,
            use_priority=worker.use_priority,
        )

    @property
    def runner(self) -> PeriodicRunner:
        return self._runner

    async def run_cycle(self) -> DispatchReport:
        """Fetch one batch of tasks and drive each to completion or failure."""
        if not self.topics:
            logger.warning("No topics registered; nothing to fetch")
            return DispatchReport()

        try:
            leased = await self._tasks.fetch_and_lock(
                self.topics,
                max_tasks=self.max_tasks,
                lock_duration_ms=self.lock_duration_ms,
                use_priority=self.use_priority,
            )
        except (TransportError, DecodeError) as exc:
            logger.error(f"Error fetching tasks: {exc}")
            return DispatchReport(error=exc)

        report = DispatchReport(fetched=len(leased))
        if not leased:
            return report

        queue: asyncio.Queue[LeasedTask] = asyncio.Queue()
        for task in leased:
            queue.put_nowait(task)
        workers = min(self.concurrency, len(leased))
        await asyncio.gather(*(self._consume(queue, report) for _ in range(workers)))
        return report

    async def _consume(self, queue: "asyncio.Queue[LeasedTask]", report: DispatchReport) -> None:
        while True:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await self._execute(task, report)
            finally:
                queue.task_done()

    async def _execute(self, task: LeasedTask, report: DispatchReport) -> None:
        logger.info(
            f"Handling task {task.id} (topic: {task.topic_name}, "
            f"process: {task.process_instance_id})"
        )
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            handler = self._registry.get(task.topic_name)
            variables = await handler(task)
        except Exception as exc:
            self._check_lease(task, loop.time() - started)
            logger.error(f"Error handling task {task.id}: {exc}")
            await self._report_failure(task, exc, report)
            return

        self._check_lease(task, loop.time() - started)
        try:
            await self._tasks.complete(task.id, variables)
        except TransportError as exc:
            logger.error(f"Failed to complete task {task.id}: {exc}")
            report.unreported.append(task.id)
            return
        report.completed.append(task.id)

    async def _report_failure(
        self, task: LeasedTask, exc: Exception, report: DispatchReport
    ) -> None:
        details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        try:
            await self._tasks.failure(task.id, str(exc) or type(exc).__name__, details)
        except TransportError as report_exc:
            logger.error(f"Failed to report failure for task {task.id}: {report_exc}")
            report.unreported.append(task.id)
            return
        report.failed.append(task.id)

    def _check_lease(self, task: LeasedTask, elapsed: float) -> None:
        elapsed_ms = int(elapsed * 1000)
        if elapsed_ms > self.lock_duration_ms:
            logger.warning(
                f"Task {task.id} ran {elapsed_ms}ms, beyond its {self.lock_duration_ms}ms "
                "lease; the engine may have handed it to another worker"
            )

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Fetch on a fixed tick until ``stop_event`` is set."""
        stop_event = stop_event or asyncio.Event()
        logger.info(
            f"Starting external task worker {self._tasks.worker_id} "
            f"for topics {', '.join(self.topics)}"
        )
        await self._runner.run(self.run_cycle, stop_event)
        logger.info("Worker shutting down")
