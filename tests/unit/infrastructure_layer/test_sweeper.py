"""
Unit Tests for PeriodicSweeper
"""

import asyncio

import pytest

from iris.infrastructure.sweeper import PeriodicSweeper


async def yield_sleep(seconds):
    await asyncio.sleep(0)


@pytest.mark.unit
@pytest.mark.asyncio
class TestPeriodicSweeper:
    async def test_run_once_counts_runs(self):
        async def sweep():
            return 3

        sweeper = PeriodicSweeper("cache", 300, sweep)
        assert await sweeper.run_once() == 3
        assert sweeper.runs == 1

    async def test_loop_sleeps_between_sweeps(self):
        intervals = []
        swept = asyncio.Event()

        async def sleep(seconds):
            intervals.append(seconds)
            await asyncio.sleep(0)

        async def sweep():
            swept.set()
            return 0

        sweeper = PeriodicSweeper("cache", 300, sweep, sleep=sleep)
        sweeper.start()
        await asyncio.wait_for(swept.wait(), timeout=1)
        await sweeper.stop()

        assert intervals[0] == 300
        assert not sweeper.running

    async def test_failed_sweep_does_not_stop_the_loop(self):
        calls = []
        recovered = asyncio.Event()

        async def sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            recovered.set()
            return 1

        sweeper = PeriodicSweeper("rate-limiter", 60, sweep, sleep=yield_sleep)
        sweeper.start()
        await asyncio.wait_for(recovered.wait(), timeout=1)
        await sweeper.stop()

        assert len(calls) >= 2
        assert sweeper.runs >= 1

    async def test_start_is_idempotent_and_stop_is_safe(self):
        async def sweep():
            return 0

        sweeper = PeriodicSweeper("cache", 300, sweep)
        await sweeper.stop()

        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task
        await sweeper.stop()
        assert task.cancelled()


@pytest.mark.unit
class TestSweeperConfiguration:
    def test_rejects_non_positive_interval(self):
        async def sweep():
            return 0

        with pytest.raises(ValueError):
            PeriodicSweeper("cache", 0, sweep)
