"""Async tick loop connecting a sample source → engine → display consumers."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

import structlog

from mindstate.engine import MindStateEngine
from mindstate.models import DisplayModel, Sample

logger = structlog.get_logger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class EngineRunner:
    """Drives a :class:`MindStateEngine` at its tick cadence.

    Producers publish samples at whatever rate the headset delivers them;
    the runner ticks on its own schedule, scoring only the newest sample
    that arrived since the previous tick, and forwards every resulting
    :class:`DisplayModel` to the registered consumers.  A failing consumer
    is logged and skipped; it never stops the loop.

    The runner owns the clock.  An engine that has not ticked yet is reset
    to the clock's current reading, so the default session starts when the
    runner is created rather than at ``0``.
    """

    def __init__(
        self,
        engine: MindStateEngine,
        interval_ms: float | None = None,
        clock: Callable[[], float] | None = None,
        maxsize: int = 1_000,
    ) -> None:
        self._engine = engine
        self._interval_ms = interval_ms or engine.config.tick_interval_ms
        self._clock = clock or _monotonic_ms
        if engine.stabilizer.tick_count == 0:
            engine.reset(self._clock())
        self._queue: asyncio.Queue[Sample] = asyncio.Queue(maxsize=maxsize)
        self._consumers: list[Callable[[DisplayModel], Awaitable[None]]] = []
        self._running = False
        self._ticks = 0

    # ── Configuration ─────────────────────────────────────────

    def add_consumer(self, fn: Callable[[DisplayModel], Awaitable[None]]) -> None:
        """Register an async callback that receives every display model."""
        self._consumers.append(fn)

    # ── Producer side ─────────────────────────────────────────

    async def publish(self, sample: Sample) -> None:
        await self._queue.put(sample)

    async def publish_batch(self, samples: list[Sample]) -> None:
        for s in samples:
            await self._queue.put(s)

    # ── Tick loop ─────────────────────────────────────────────

    async def tick_once(self) -> DisplayModel:
        """Drain pending samples, tick the engine once and notify consumers."""
        latest: Sample | None = None
        while not self._queue.empty():
            latest = self._queue.get_nowait()
            self._queue.task_done()
        if latest is not None:
            self._engine.ingest(latest)

        model = self._engine.tick(now_ms=self._clock())
        self._ticks += 1

        for consumer in self._consumers:
            try:
                await consumer(model)
            except Exception as exc:
                logger.error(
                    "runner.consumer_error",
                    consumer=getattr(consumer, "__qualname__", repr(consumer)),
                    error=str(exc),
                )
        return model

    async def start(self) -> None:
        """Run the tick loop until :meth:`stop` is called (run as a background task)."""
        self._running = True
        logger.info(
            "runner.started",
            consumers=len(self._consumers),
            interval_ms=self._interval_ms,
        )
        interval = self._interval_ms / 1000.0
        while self._running:
            started = time.monotonic()
            await self.tick_once()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    async def stop(self) -> None:
        """Gracefully stop the tick loop."""
        self._running = False
        logger.info("runner.stopped", ticks=self._ticks)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def ticks(self) -> int:
        return self._ticks
