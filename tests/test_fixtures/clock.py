"""
Simulated Clock

Stands in for time.monotonic wherever a component accepts `clock=`, so that
cooldowns, TTLs and windows can be crossed without sleeping.
"""


class FakeClock:
    """
    Usage:
        clock = FakeClock()
        breaker = CircuitBreakerManager(registry, cooldown_ms=60000, clock=clock)
        clock.advance(60)
    """

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0.0, ms: float = 0.0) -> float:
        self.now += seconds + ms / 1000.0
        return self.now


class SleepRecorder:
    """Async sleep replacement that records requested delays instead of waiting."""

    def __init__(self, on_sleep=None):
        self.delays: list[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)
