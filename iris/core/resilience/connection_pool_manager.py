"""
Connection Pool Manager for upstream invocations.

Bounds the number of upstream calls in flight across all backends and wraps
each call in the retry policy.

STAGE-4: Pool acquisition
-------------------------
4.1: Acquire a slot (or wait FIFO when the pool is saturated)
4.2: Invoke inside the slot
4.3: Release the slot, handing it straight to the oldest waiter
4.4: Back off outside the slot and retry transient failures

Invariants:
- active <= max_connections at all times
- waiters are served strictly in arrival order
- every slot is released exactly once; releasing twice raises SlotReleaseError
- a cancelled waiter leaves the queue; a slot handed to a waiter that is
  cancelled at the same moment is passed on, never lost

All bookkeeping happens without awaiting between read and update, so the
manager is safe for any number of tasks on one event loop. It is not meant
to be shared across event loops.

Author: Platform Engineering
Date: 2026-02-14
"""

import asyncio
import itertools
import time
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from iris.core.config.constants import Stage
from iris.core.exceptions import CircuitBreakerOpenError, SlotReleaseError, UpstreamTransientError
from iris.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEGRADED_THRESHOLD = 0.7
CRITICAL_THRESHOLD = 0.9


class ConnectionState(str, Enum):
    """Connection pool health states."""

    HEALTHY = "healthy"          # < 70% capacity
    DEGRADED = "degraded"        # 70-90% capacity
    CRITICAL = "critical"        # 90-100% capacity
    EXHAUSTED = "exhausted"      # At 100% capacity


@dataclass(eq=False)
class PooledSlot:
    """One reserved unit of pool capacity, owned by a single request."""

    slot_id: int
    upstream_id: str
    acquired_at: float
    released: bool = field(default=False, init=False)


@dataclass(eq=False)
class _Waiter:
    future: asyncio.Future
    upstream_id: str


class ConnectionPoolManager:
    """
    Global concurrency limiter with FIFO queuing and retrying execution.

    Usage:
        pool = ConnectionPoolManager(max_connections=10, max_retries=3)

        async with pool.slot("groq") as slot:
            ...

        result = await pool.execute(call_groq, "groq", admit=lambda: breakers.allow("groq"))
    """

    def __init__(
        self,
        max_connections: int = 10,
        max_retries: int = 3,
        retry_base_delay_ms: float = 1000,
        retry_max_delay_ms: float = 30000,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        self.max_connections = max_connections
        self.max_retries = max_retries
        self.retry_base_delay_ms = retry_base_delay_ms
        self.retry_max_delay_ms = retry_max_delay_ms
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

        self._active = 0
        self._waiters: deque[_Waiter] = deque()
        self._slot_ids = itertools.count(1)
        self._leased: dict[int, PooledSlot] = {}
        self._active_by_upstream: defaultdict[str, int] = defaultdict(int)
        self._waiting_by_upstream: defaultdict[str, int] = defaultdict(int)

        # Statistics
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._retries = 0
        self._total_response_time = 0.0

        logger.info(
            "Connection pool initialized",
            stage="4.0_POOL_INIT",
            max_connections=max_connections,
            max_retries=max_retries,
        )

    @classmethod
    def from_settings(cls, settings, clock=None, sleep=None) -> "ConnectionPoolManager":
        pool = settings.pool
        return cls(
            max_connections=pool.POOL_MAX_CONNECTIONS,
            max_retries=pool.POOL_MAX_RETRIES,
            retry_base_delay_ms=pool.POOL_RETRY_BASE_DELAY_MS,
            retry_max_delay_ms=pool.POOL_RETRY_MAX_DELAY_MS,
            clock=clock,
            sleep=sleep,
        )

    # =========================================================================
    # Slot management
    # =========================================================================

    async def acquire(self, upstream_id: str) -> PooledSlot:
        """
        Reserve one unit of capacity, waiting FIFO if the pool is full.

        STAGE-4.1: Slot acquisition
        """
        self._waiting_by_upstream[upstream_id] += 1
        try:
            if self._active < self.max_connections and not self._waiters:
                self._active += 1
            else:
                await self._wait_for_handoff(upstream_id)
        finally:
            self._waiting_by_upstream[upstream_id] -= 1

        slot = PooledSlot(next(self._slot_ids), upstream_id, self._clock())
        self._leased[slot.slot_id] = slot
        self._active_by_upstream[upstream_id] += 1
        logger.debug(
            "Slot acquired",
            stage=Stage.POOL_ACQUIRE,
            upstream=upstream_id,
            slot_id=slot.slot_id,
            active=self._active,
            queued=len(self._waiters),
        )
        return slot

    async def _wait_for_handoff(self, upstream_id: str) -> None:
        waiter = _Waiter(asyncio.get_running_loop().create_future(), upstream_id)
        self._waiters.append(waiter)
        logger.debug(
            "Pool saturated, queuing request",
            stage=Stage.POOL_ACQUIRE,
            upstream=upstream_id,
            queued=len(self._waiters),
        )
        try:
            await waiter.future
        except asyncio.CancelledError:
            if waiter.future.done() and not waiter.future.cancelled():
                # Capacity was handed over just as we were cancelled: pass it on
                self._release_capacity()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _release_capacity(self) -> None:
        # Hand the unit to the oldest live waiter, or return it to the pool
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.future.done():
                waiter.future.set_result(None)
                return
        self._active -= 1

    def release(self, slot: PooledSlot) -> None:
        """
        Return a slot to the pool.

        STAGE-6.0: Slot release

        Raises:
            SlotReleaseError: If the slot was already released or never issued
        """
        if slot.released or self._leased.get(slot.slot_id) is not slot:
            error = SlotReleaseError(
                "Pooled slot released more than once",
                details={"slot_id": slot.slot_id, "upstream": slot.upstream_id},
            )
            logger.error("Slot release invariant violated", stage=Stage.RELEASE, **error.to_dict())
            raise error

        slot.released = True
        del self._leased[slot.slot_id]
        self._active_by_upstream[slot.upstream_id] -= 1
        self._release_capacity()
        logger.debug(
            "Slot released",
            stage=Stage.RELEASE,
            upstream=slot.upstream_id,
            slot_id=slot.slot_id,
            active=self._active,
            queued=len(self._waiters),
        )

    @asynccontextmanager
    async def slot(self, upstream_id: str):
        """Acquire a slot for the duration of the block; always released."""
        slot = await self.acquire(upstream_id)
        try:
            yield slot
        finally:
            self.release(slot)

    # =========================================================================
    # Execution with retry
    # =========================================================================

    @staticmethod
    def _backoff_logger(upstream_id: str) -> Callable[[RetryCallState], None]:
        """tenacity before_sleep hook; STAGE-4.4 backoff, no slot held."""

        def log_backoff(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                "Upstream call failed, backing off",
                stage=Stage.RETRY,
                upstream=upstream_id,
                attempt=retry_state.attempt_number,
                delay=round(delay, 3),
                error_type=type(error).__name__ if error else None,
                error=str(error) if error else None,
            )

        return log_backoff

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        upstream_id: str,
        admit: Callable[[], bool] | None = None,
    ) -> T:
        """
        Run `operation` inside a slot, retrying transient failures.

        Each attempt holds its own slot; backoff sleeps happen with no slot
        held. Before every retry `admit()` is consulted (normally the
        upstream's circuit breaker) and a refusal ends the loop with
        CircuitBreakerOpenError.

        Raises:
            UpstreamTransientError: Retries exhausted
            CircuitBreakerOpenError: Breaker refused a retry
            Any non-transient error from `operation`, unchanged
        """
        self._total_requests += 1
        started = self._clock()
        last_error: UpstreamTransientError | None = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_base_delay_ms / 1000.0,
                max=self.retry_max_delay_ms / 1000.0,
            ),
            retry=retry_if_exception_type(UpstreamTransientError),
            before_sleep=self._backoff_logger(upstream_id),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        self._retries += 1
                        if admit is not None and not admit():
                            raise CircuitBreakerOpenError(
                                f"Circuit opened for '{upstream_id}' during retries",
                                details={"upstream": upstream_id, "attempts": attempt_number - 1},
                            ) from last_error
                        logger.info(
                            "Retrying upstream call",
                            stage=Stage.RETRY,
                            upstream=upstream_id,
                            attempt=attempt_number,
                        )
                    try:
                        async with self.slot(upstream_id):
                            result = await operation()
                    except UpstreamTransientError as exc:
                        last_error = exc
                        raise
        except BaseException:
            self._failed_requests += 1
            raise

        self._successful_requests += 1
        self._total_response_time += (self._clock() - started) * 1000.0
        return result

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._waiters)

    def in_flight(self, upstream_id: str) -> int:
        """Calls for an upstream that are running or waiting for a slot."""
        return self._active_by_upstream[upstream_id] + self._waiting_by_upstream[upstream_id]

    def get_pool_state(self) -> ConnectionState:
        utilization = self._active / self.max_connections
        if utilization >= 1.0:
            return ConnectionState.EXHAUSTED
        if utilization >= CRITICAL_THRESHOLD:
            return ConnectionState.CRITICAL
        if utilization >= DEGRADED_THRESHOLD:
            return ConnectionState.DEGRADED
        return ConnectionState.HEALTHY

    def get_stats(self) -> dict[str, Any]:
        completed = self._successful_requests + self._failed_requests
        upstreams = set(self._active_by_upstream) | set(self._waiting_by_upstream)
        return {
            "active": self._active,
            "queued": len(self._waiters),
            "max_connections": self.max_connections,
            "utilization_percent": round(100.0 * self._active / self.max_connections, 2),
            "state": self.get_pool_state().value,
            "total_requests": self._total_requests,
            "successful_requests": self._successful_requests,
            "failed_requests": self._failed_requests,
            "retries": self._retries,
            "success_rate": round(100.0 * self._successful_requests / completed, 2) if completed else 0.0,
            "average_response_time_ms": (
                round(self._total_response_time / self._successful_requests, 2)
                if self._successful_requests else 0.0
            ),
            "per_upstream": {
                uid: {
                    "active": self._active_by_upstream[uid],
                    "waiting": self._waiting_by_upstream[uid],
                }
                for uid in sorted(upstreams)
            },
        }
