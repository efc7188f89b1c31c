"""Change-data-capture pipeline from engine history to the broker."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .checkpoint import CheckpointStore, get_checkpoint_store
from .config import FluxCdcConfig, load_config
from .contracts import Watermark
from .engine import EngineClient, HistoryClient
from .errors import DecodeError, FatalStartupError, TransportError
from .poller import CheckpointedPoller
from .publisher import EventPublisher, PublishReport
from .transports import BaseTransport, get_transport
from .utils.ticker import PeriodicRunner

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    POLLING = "polling"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass
class CycleReport:
    """Outcome of one poll-and-publish cycle."""

    polled: int = 0
    published: Optional[PublishReport] = None
    error: Optional[Exception] = None
    watermark: Optional[Watermark] = None


class Pipeline:
    """Own the poll/publish cadence and the checkpoint lifecycle.

    ``Idle -> Connected -> Polling -> Draining -> Stopped``. The watermark is
    written only by :meth:`run_cycle`, which never runs concurrently with
    itself.
    """

    def __init__(
        self,
        history: HistoryClient,
        poller: CheckpointedPoller,
        publisher: EventPublisher,
        transport: BaseTransport,
        checkpoints: CheckpointStore,
        poll_interval: float = 10.0,
    ) -> None:
        self._history = history
        self._poller = poller
        self._publisher = publisher
        self._transport = transport
        self._checkpoints = checkpoints
        self.poll_interval = poll_interval
        self.state = PipelineState.IDLE
        self.watermark = Watermark.initial()
        self._runner = PeriodicRunner(poll_interval, name="pipeline")

    @classmethod
    def from_config(
        cls,
        config: Optional[FluxCdcConfig] = None,
        engine: Optional[EngineClient] = None,
        transport: Optional[BaseTransport] = None,
        checkpoints: Optional[CheckpointStore] = None,
    ) -> "Pipeline":
        config = config or load_config()
        engine = engine or EngineClient.from_config(config.engine)
        transport = transport or get_transport(config=config)
        history = HistoryClient(engine)
        return cls(
            history=history,
            poller=CheckpointedPoller(history, batch_size=config.pipeline.batch_size),
            publisher=EventPublisher(
                transport,
                processes_topic=config.kafka.processes_topic,
                events_topic=config.kafka.events_topic,
                max_attempts=config.pipeline.publish_attempts,
            ),
            transport=transport,
            checkpoints=checkpoints or get_checkpoint_store(config=config),
            poll_interval=config.pipeline.poll_interval,
        )

    @property
    def runner(self) -> PeriodicRunner:
        return self._runner

    async def connect(self) -> None:
        """Verify the engine is reachable, open the broker, load the checkpoint.

        Raises:
            FatalStartupError: The engine, the broker or the checkpoint store
                cannot be reached.
        """
        try:
            await self._history.ping()
        except TransportError as exc:
            raise FatalStartupError(f"Failed to connect to engine: {exc}") from exc
        logger.info("Connected to engine")

        try:
            await self._transport.connect()
        except Exception as exc:
            raise FatalStartupError(f"Failed to connect to broker: {exc}") from exc
        try:
            saved = await self._checkpoints.load()
        except Exception as exc:
            try:
                await self._transport.disconnect()
            except Exception as close_exc:
                logger.warning(f"Failed to close broker connection: {close_exc}")
            raise FatalStartupError(f"Failed to load checkpoint: {exc}") from exc
        if saved is not None:
            self.watermark = saved
            logger.info(f"Resuming from watermark {saved.started_after}")
        self.state = PipelineState.CONNECTED

    async def run_cycle(self) -> CycleReport:
        """Poll once, publish the events, then persist the new watermark."""
        try:
            result = await self._poller.poll(self.watermark)
        except (TransportError, DecodeError) as exc:
            logger.error(f"Poll error: {exc}")
            return CycleReport(error=exc, watermark=self.watermark)

        if not result.events:
            return CycleReport(watermark=self.watermark)

        logger.info(f"Polled {len(result.events)} process events from engine")
        report = await self._publisher.publish(result.events)
        if report.failures:
            logger.warning(
                f"{len(report.failures)} records failed to publish in this cycle"
            )

        self.watermark = result.watermark
        try:
            await self._checkpoints.save(self.watermark)
        except Exception as exc:
            logger.error(
                f"Failed to persist watermark {self.watermark.started_after}: {exc}"
            )
        return CycleReport(
            polled=len(result.events), published=report, watermark=self.watermark
        )

    async def drain(self) -> None:
        """Flush and close the broker connection; losses are logged, not raised."""
        self.state = PipelineState.DRAINING
        try:
            await self._transport.flush()
            await self._transport.disconnect()
        except Exception as exc:
            logger.warning(f"Buffered records may have been lost while draining: {exc}")
        try:
            await self._checkpoints.close()
        except Exception as exc:
            logger.warning(f"Failed to close checkpoint store: {exc}")
        self.state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run until ``stop_event`` is set.

        Raises:
            FatalStartupError: The engine is unreachable at startup.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(f"Starting CDC pipeline, poll interval {self.poll_interval}s")
        await self.connect()
        self.state = PipelineState.POLLING
        try:
            await self._runner.run(self.run_cycle, stop_event)
        finally:
            await self.drain()
