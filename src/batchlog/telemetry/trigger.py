"""Periodic and forced flushing with a single flush in flight."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from .queue import BatchQueue
from .transmitter import FlushOutcome, Transmitter


logger = logging.getLogger(__name__)


@dataclass
class FlushTrigger:
    """
    Decides when the queue is drained and transmitted.

    Flushes happen on a fixed interval and on demand via ``force_flush``.
    Only one flush runs at a time:
    - a periodic tick that lands while a flush is in flight is skipped
    - a forced flush waits for the in-flight flush, then drains whatever
      is still pending

    Batches therefore leave in the order their flushes started.
    """
    queue: BatchQueue
    transmitter: Transmitter
    interval_msec: int = 1000

    # Internal state
    _timer_task: asyncio.Task | None = field(default=None, init=False)
    _in_flight: asyncio.Task | None = field(default=None, init=False)
    _last_flush: float = field(default_factory=time.time, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "batches_sent": 0,
            "events_sent": 0,
            "flush_errors": 0,
            "events_dropped": 0,
            "ticks_skipped": 0,
        }

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Arm the periodic timer on the running loop (no-op if armed)."""
        if self.running:
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._timer_loop())
        logger.info(f"Flush timer started (interval={self.interval_msec}ms)")

    def stop(self) -> None:
        """Disarm the periodic timer. In-flight flushes are left to finish."""
        if self._timer_task is None:
            return
        self._timer_task.cancel()
        self._timer_task = None
        logger.info(f"Flush timer stopped. Stats: {self.stats}")

    async def force_flush(self) -> FlushOutcome:
        """Flush now, outside the periodic schedule."""
        while (in_flight := self._current_in_flight()) is not None:
            await asyncio.shield(in_flight)
        return await asyncio.shield(self._start_flush())

    def _current_in_flight(self) -> asyncio.Task | None:
        task = self._in_flight
        if task is None or task.done():
            return None
        # A task from a loop that is no longer running can never complete
        if task.get_loop() is not asyncio.get_running_loop():
            return None
        return task

    def _start_flush(self) -> asyncio.Task:
        self._in_flight = asyncio.get_running_loop().create_task(self._flush())
        return self._in_flight

    async def _flush(self) -> FlushOutcome:
        batch = self.queue.drain_all()
        if not batch:
            return FlushOutcome(success=True)

        self._last_flush = time.time()
        outcome = await self.transmitter.send(batch)

        if outcome.success:
            self._stats["batches_sent"] += 1
            self._stats["events_sent"] += outcome.event_count
        else:
            self._stats["flush_errors"] += 1
            self._stats["events_dropped"] += outcome.event_count
        return outcome

    async def _timer_loop(self) -> None:
        """
        Fire on a fixed cadence measured from start.

        Forced flushes do not move the schedule. Ticks missed while the
        loop was busy are not replayed.
        """
        loop = asyncio.get_running_loop()
        interval = self.interval_msec / 1000.0
        next_at = loop.time() + interval

        while True:
            try:
                await asyncio.sleep(max(0.0, next_at - loop.time()))
                now = loop.time()
                while next_at <= now:
                    next_at += interval

                if self._current_in_flight() is not None:
                    self._stats["ticks_skipped"] += 1
                    continue

                self._start_flush()

            except asyncio.CancelledError:
                logger.debug("Flush timer cancelled")
                raise
            except Exception as e:
                logger.error(f"Flush timer error: {e}")

    @property
    def stats(self) -> dict:
        """Get flush statistics."""
        return {
            **self._stats,
            "pending": len(self.queue),
            "seconds_since_flush": time.time() - self._last_flush,
        }
