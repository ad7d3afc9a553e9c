"""
Periodic Sweeper

Runs a cleanup coroutine on a fixed interval in a background task: purging
expired cache entries, forgetting idle rate-limit clients.

A failing sweep is logged and the loop carries on with the next interval;
one bad pass must not stop future cleanups.

Author: Platform Engineering
Date: 2026-02-15
"""

import asyncio
from collections.abc import Awaitable, Callable

from iris.core.config.constants import Stage
from iris.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicSweeper:
    """
    Background task calling `sweep()` every `interval_seconds`.

    Usage:
        sweeper = PeriodicSweeper("cache", 300, cache.purge_expired)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        sweep: Callable[[], Awaitable[int]],
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._sweep = sweep
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"iris-sweeper-{self.name}")
        logger.info("Sweeper started", stage=Stage.SWEEP, sweeper=self.name, interval=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Sweeper stopped", stage=Stage.SWEEP, sweeper=self.name, runs=self.runs)

    async def run_once(self) -> int:
        removed = await self._sweep()
        self.runs += 1
        if removed:
            logger.debug("Sweep removed entries", stage=Stage.SWEEP, sweeper=self.name, removed=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Sweep failed", stage=Stage.SWEEP, sweeper=self.name)
