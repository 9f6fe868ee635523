"""Background reaper for stale index entries."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from types import TracebackType

import structlog

from src.core.types import Event
from src.state.index import Index

logger = structlog.get_logger(__name__)

ExpiredCallback = Callable[[Event], Awaitable[None] | None]


class ExpirySweeper:
    """Sweeps the index on a fixed period, independent of event traffic.

    Each sweep removes expired entries and hands the synthetic ``expired``
    events to the registered callbacks.  The loop never dies on an error;
    it logs and tries again next period.

    Usage::

        sweeper = ExpirySweeper(index, interval_secs=10)
        sweeper.on_expired(engine.on_expired)
        async with sweeper:
            ...
    """

    def __init__(
        self,
        index: Index,
        interval_secs: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._index = index
        self._interval = interval_secs
        self._clock = clock
        self._callbacks: list[ExpiredCallback] = []
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._sweeps = 0
        self._expired = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        return {"sweeps": self._sweeps, "expired": self._expired}

    def on_expired(self, callback: ExpiredCallback) -> None:
        """Register a callback for expired events."""
        self._callbacks.append(callback)

    async def sweep_once(self) -> list[Event]:
        """Run one sweep now and deliver its expired events."""
        expired = self._index.sweep(self._clock())
        self._sweeps += 1
        self._expired += len(expired)
        for event in expired:
            await self._emit(event)
        return expired

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("sweeper_started", interval_secs=self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("sweeper_stopped", **self.stats)

    async def _emit(self, event: Event) -> None:
        for cb in self._callbacks:
            try:
                result = cb(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(
                    "expired_callback_error",
                    host=event.host,
                    service=event.service,
                )

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._interval)
                await self.sweep_once()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("sweeper_loop_error")

    async def __aenter__(self) -> ExpirySweeper:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
