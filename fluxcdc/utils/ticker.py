"""Fixed-cadence loop with re-entry skipping and cooperative shutdown."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Cycle = Callable[[], Awaitable[object]]


class PeriodicRunner:
    """Fire ``cycle`` every ``interval`` seconds until a stop event is set.

    Ticks follow a fixed rate. A tick that arrives while the previous cycle
    is still running is skipped, never queued. Setting the stop event never
    interrupts a running cycle; :meth:`run` waits for it before returning.
    """

    def __init__(self, interval: float, name: str = "loop") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.name = name
        self.ticks = 0
        self.skipped = 0
        self._guard = asyncio.Lock()
        self._current: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._guard.locked()

    def tick(self, cycle: Cycle) -> bool:
        """Start ``cycle`` in the background unless one is still running.

        Returns ``True`` when a cycle was started.
        """
        self.ticks += 1
        if self._guard.locked() or (self._current and not self._current.done()):
            self.skipped += 1
            logger.debug(f"{self.name}: previous cycle still running, skipping tick")
            return False
        self._current = asyncio.create_task(self._guarded(cycle))
        return True

    async def _guarded(self, cycle: Cycle) -> None:
        async with self._guard:
            try:
                await cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"{self.name}: cycle failed")

    async def wait_idle(self) -> None:
        """Wait for the in-flight cycle, if any, to finish."""
        if self._current is not None:
            await asyncio.shield(self._current)

    async def run(self, cycle: Cycle, stop_event: asyncio.Event, immediate: bool = True) -> None:
        loop = asyncio.get_running_loop()
        if immediate and not stop_event.is_set():
            self.tick(cycle)
        next_tick = loop.time() + self.interval

        while not stop_event.is_set():
            timeout = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                self.tick(cycle)
                next_tick += self.interval
                # Ticks missed while the loop itself was blocked are dropped.
                if next_tick < loop.time():
                    next_tick = loop.time() + self.interval

        logger.info(f"{self.name}: stop requested, waiting for in-flight cycle")
        await self.wait_idle()
