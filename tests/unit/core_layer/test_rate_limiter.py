"""
Unit Tests for SlidingWindowRateLimiter

Tests quota enforcement, window sliding, Retry-After computation and idle
client sweeping.
"""

import asyncio

import pytest

from iris.core.resilience.rate_limiter import SlidingWindowRateLimiter


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(max_requests=3, window_ms=60000, clock=clock)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSlidingWindow:
    async def test_allows_up_to_limit(self, limiter):
        remaining = []
        for _ in range(3):
            decision = await limiter.check("user:1")
            assert decision.allowed
            remaining.append(decision.remaining)

        assert remaining == [2, 1, 0]

    async def test_rejects_over_limit_with_retry_after(self, limiter):
        for _ in range(3):
            await limiter.check("user:1")

        decision = await limiter.check("user:1")
        assert not decision.allowed
        assert decision.remaining == 0
        assert decision.retry_after_seconds == pytest.approx(60.0)

    async def test_retry_after_shrinks_as_time_passes(self, limiter, clock):
        for _ in range(3):
            await limiter.check("user:1")

        clock.advance(45)
        decision = await limiter.check("user:1")
        assert decision.retry_after_seconds == pytest.approx(15.0)

    async def test_rejected_requests_do_not_consume_quota(self, limiter, clock):
        for _ in range(3):
            await limiter.check("user:1")
        for _ in range(5):
            await limiter.check("user:1")

        clock.advance(60)
        assert (await limiter.check("user:1")).allowed

    async def test_window_slides(self, limiter, clock):
        await limiter.check("user:1")          # t=0
        clock.advance(20)
        await limiter.check("user:1")          # t=20
        clock.advance(20)
        await limiter.check("user:1")          # t=40

        clock.advance(19)                      # t=59
        decision = await limiter.check("user:1")
        assert not decision.allowed
        assert decision.retry_after_seconds == pytest.approx(1.0)

        clock.advance(1)                       # t=60, first request leaves the window
        decision = await limiter.check("user:1")
        assert decision.allowed
        assert decision.remaining == 0

    async def test_timestamp_on_window_edge_is_expired(self, limiter, clock):
        for _ in range(3):
            await limiter.check("user:1")
        clock.advance(60)

        decision = await limiter.check("user:1")
        assert decision.allowed
        assert decision.remaining == 2

    async def test_clients_are_independent(self, limiter):
        for _ in range(3):
            await limiter.check("user:1")

        assert not (await limiter.check("user:1")).allowed
        assert (await limiter.check("user:2")).allowed

    async def test_concurrent_checks_respect_limit(self, limiter):
        decisions = await asyncio.gather(*(limiter.check("user:1") for _ in range(10)))
        assert sum(d.allowed for d in decisions) == 3

    async def test_allow_shortcut(self, limiter):
        assert await limiter.allow("user:1") is True


@pytest.mark.unit
@pytest.mark.asyncio
class TestRateLimitHeaders:
    async def test_allowed_headers(self, limiter):
        headers = (await limiter.check("user:1")).headers()

        assert headers["X-RateLimit-Limit"] == "3"
        assert headers["X-RateLimit-Remaining"] == "2"
        assert int(headers["X-RateLimit-Reset"]) > 0
        assert "Retry-After" not in headers

    async def test_rejected_headers_carry_retry_after(self, limiter, clock):
        for _ in range(3):
            await limiter.check("user:1")
        clock.advance(ms=59500)

        headers = (await limiter.check("user:1")).headers()
        assert headers["X-RateLimit-Remaining"] == "0"
        # Never advertises a zero-second wait
        assert headers["Retry-After"] == "1"


@pytest.mark.unit
@pytest.mark.asyncio
class TestMaintenance:
    async def test_sweep_forgets_idle_clients(self, limiter, clock):
        await limiter.check("user:old")
        clock.advance(30)
        await limiter.check("user:recent")
        clock.advance(30)

        assert await limiter.sweep() == 1
        assert limiter.get_stats()["total_clients"] == 1

    async def test_reset_single_client(self, limiter):
        for _ in range(3):
            await limiter.check("user:1")
        await limiter.reset("user:1")
        assert (await limiter.check("user:1")).allowed

    async def test_reset_all(self, limiter):
        await limiter.check("user:1")
        await limiter.check("user:2")
        await limiter.reset()
        assert limiter.get_stats()["total_clients"] == 0

    async def test_stats(self, limiter):
        for _ in range(4):
            await limiter.check("user:1")
        await limiter.check("user:2")

        stats = limiter.get_stats()
        assert stats["total_clients"] == 2
        assert stats["total_requests"] == 4
        assert stats["average_requests_per_client"] == 2.0
        assert stats["rejected"] == 1
        assert stats["max_requests"] == 3


@pytest.mark.unit
class TestRateLimiterConfiguration:
    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_ms": 0}])
    def test_rejects_invalid_limits(self, kwargs):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(**kwargs)

    def test_from_settings(self, settings):
        limiter = SlidingWindowRateLimiter.from_settings(settings)
        assert limiter.max_requests == 100
        assert limiter.window_ms == 60000
