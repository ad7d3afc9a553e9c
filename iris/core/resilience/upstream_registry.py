"""
Upstream Registry

Owns the per-upstream mutable state: the rolling health window and the
circuit breaker state. The registry is created by the orchestrator and
injected into the health tracker, the breaker manager and the selector, so
several orchestrators (and every test) keep fully separate state.

Author: Platform Engineering
Date: 2026-02-13
"""

import threading
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from iris.core.config.constants import CircuitState
from iris.core.config.upstreams import UpstreamDescriptor
from iris.core.exceptions import ConfigurationError
from iris.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class HealthSample:
    """One completed invocation attempt."""

    timestamp: float
    latency_ms: float
    success: bool


class HealthRecord:
    """
    Rolling window of recent samples for one upstream.

    The deque evicts the oldest sample once window_size is reached. All
    access goes through the record's lock so readers always see a
    consistent snapshot.
    """

    def __init__(self, upstream_id: str, window_size: int):
        self.upstream_id = upstream_id
        self.window_size = window_size
        self.total_requests = 0
        self.total_failures = 0
        self._samples: deque[HealthSample] = deque(maxlen=window_size)
        self._lock = threading.Lock()

    def append(self, sample: HealthSample) -> None:
        with self._lock:
            self._samples.append(sample)
            self.total_requests += 1
            if not sample.success:
                self.total_failures += 1

    def snapshot(self) -> list[HealthSample]:
        with self._lock:
            return list(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)


@dataclass
class BreakerState:
    """
    Mutable breaker fields for one upstream.

    `guard` serializes every read-modify-write of these fields. It is held
    only for a handful of assignments, never across an await.
    """

    upstream_id: str
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    last_transition_at: float = 0.0
    opened_at: float | None = None
    trial_in_flight: bool = False
    guard: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class UpstreamRegistry:
    """
    Configured upstreams plus their health and breaker state.

    Usage:
        registry = UpstreamRegistry(settings_upstreams, window_size=50)
        registry.get("groq").max_concurrency
        registry.health_record("groq").append(sample)
    """

    def __init__(self, upstreams: Iterable[UpstreamDescriptor], window_size: int = 50):
        if window_size < 1:
            raise ConfigurationError(
                "Health window size must be at least 1",
                details={"window_size": window_size},
            )
        self.window_size = window_size
        self._lock = threading.Lock()
        self._descriptors: dict[str, UpstreamDescriptor] = {}
        self._health: dict[str, HealthRecord] = {}
        self._breakers: dict[str, BreakerState] = {}
        self._install(list(upstreams))

    def _install(self, upstreams: list[UpstreamDescriptor]) -> None:
        seen: set[str] = set()
        for upstream in upstreams:
            if upstream.id in seen:
                raise ConfigurationError(
                    f"Duplicate upstream id '{upstream.id}'",
                    details={"upstream": upstream.id},
                )
            seen.add(upstream.id)

        with self._lock:
            self._descriptors = {u.id: u for u in upstreams}
            for upstream_id in self._descriptors:
                self._health.setdefault(upstream_id, HealthRecord(upstream_id, self.window_size))
                self._breakers.setdefault(upstream_id, BreakerState(upstream_id))

    def reconfigure(self, upstreams: Iterable[UpstreamDescriptor]) -> None:
        """
        Replace the descriptor set.

        Health and breaker state of upstreams that survive the change are
        kept; removed upstreams lose their state.
        """
        upstreams = list(upstreams)
        self._install(upstreams)
        with self._lock:
            for stale in set(self._health) - set(self._descriptors):
                del self._health[stale]
                self._breakers.pop(stale, None)
        logger.info("Upstreams reconfigured", upstreams=[u.id for u in upstreams])

    def get(self, upstream_id: str) -> UpstreamDescriptor | None:
        return self._descriptors.get(upstream_id)

    def descriptors(self) -> list[UpstreamDescriptor]:
        """Descriptors in configuration order."""
        return list(self._descriptors.values())

    def ids(self) -> list[str]:
        return list(self._descriptors)

    def position(self, upstream_id: str) -> int:
        """Configuration order index, used as the final selection tiebreak."""
        try:
            return self.ids().index(upstream_id)
        except ValueError:
            return len(self._descriptors)

    def health_record(self, upstream_id: str) -> HealthRecord | None:
        return self._health.get(upstream_id)

    def breaker_state(self, upstream_id: str) -> BreakerState | None:
        return self._breakers.get(upstream_id)

    def __contains__(self, upstream_id: object) -> bool:
        return upstream_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[UpstreamDescriptor]:
        return iter(self.descriptors())
