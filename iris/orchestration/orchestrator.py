"""
Orchestrator Service
====================

WHAT IS THE ORCHESTRATOR?
-------------------------
The single entry point for a logical query. Callers hand it a QueryRequest
and get back either a QueryResponse or a classified QueryFailure; they never
pick a backend themselves.

THE REQUEST LIFECYCLE:
----------------------
┌─────────────────────────────────────────────────────────────────┐
│ 1.0 RATE_CHECK    per-client sliding window quota               │
│ 2.0 CACHE_LOOKUP  normalized query -> cached answer? respond    │
│ 3.0 SELECT        best upstream by health, priority and load    │
│ 4.0 POOL_ACQUIRE  global concurrency slot (FIFO wait when full) │
│ 5.0 INVOKE        adapter call bounded by the upstream timeout  │
│ 6.0 RELEASE       slot returned, exactly once                   │
│ 7.0 RECORD        health sample + breaker outcome per attempt   │
│ 8.0 RESPOND       answer cached, outcome returned               │
└─────────────────────────────────────────────────────────────────┘

Transient failures (timeouts, network errors) are retried inside the pool
with exponential backoff. When an upstream is exhausted, or its breaker
opens between retries, the orchestrator fails over to the next-best
upstream, up to ORCHESTRATOR_MAX_FAILOVERS extra hops. Explicit rejections
are returned at once: retrying a request the backend considers malformed
elsewhere would not help.

DEPENDENCY INJECTION:
---------------------
All per-upstream state lives in an UpstreamRegistry owned by this instance;
nothing is a module-level singleton. Clock and sleep are injectable so that
cooldowns, TTLs and backoff can be driven by a simulated clock.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from iris.core.config.constants import FailureKind, Stage
from iris.core.config.settings import Settings
from iris.core.config.upstreams import UpstreamDescriptor
from iris.core.exceptions import (
    CircuitBreakerOpenError,
    IrisError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)
from iris.core.logging import clear_request_id, get_logger, get_request_id, log_stage, set_request_id
from iris.core.resilience.circuit_breaker import Admission, CircuitBreakerManager
from iris.core.resilience.connection_pool_manager import ConnectionPoolManager
from iris.core.resilience.health_tracker import HealthTracker
from iris.core.resilience.provider_selector import ProviderSelector
from iris.core.resilience.rate_limiter import RateLimitDecision, SlidingWindowRateLimiter
from iris.core.resilience.upstream_registry import UpstreamRegistry
from iris.infrastructure.cache.cache_manager import ResponseCache
from iris.infrastructure.monitoring.metrics_collector import MetricsCollector
from iris.infrastructure.sweeper import PeriodicSweeper
from iris.models.query import QueryFailure, QueryOutcome, QueryRequest, QueryResponse
from iris.providers.base_provider import ProviderFactory, ProviderResponse

logger = get_logger(__name__)


class Orchestrator:
    """
    Health-aware query orchestrator.

    Usage:
        orchestrator = Orchestrator.from_settings(get_settings())
        await orchestrator.start()
        outcome = await orchestrator.submit(QueryRequest(text="What is Python?", client_id="ip:1.2.3.4"))
        if outcome.ok:
            print(outcome.content, outcome.provider)
        await orchestrator.stop()
    """

    def __init__(
        self,
        settings: Settings,
        providers: ProviderFactory,
        upstreams: list[UpstreamDescriptor],
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.settings = settings
        self.providers = providers
        self._clock = clock or time.monotonic
        self.metrics = metrics or MetricsCollector()

        providers.validate(upstreams)

        self.registry = UpstreamRegistry(upstreams, window_size=settings.health.HEALTH_WINDOW_SIZE)
        self.health = HealthTracker.from_settings(self.registry, settings, clock=self._clock)
        self.breakers = CircuitBreakerManager.from_settings(
            self.registry, settings, clock=self._clock, listener=self.metrics.on_circuit_transition
        )
        self.cache = ResponseCache.from_settings(settings, clock=self._clock)
        self.pool = ConnectionPoolManager.from_settings(settings, clock=self._clock, sleep=sleep)
        self.rate_limiter = SlidingWindowRateLimiter.from_settings(settings, clock=self._clock)
        self.selector = ProviderSelector.from_settings(
            self.registry, self.health, self.breakers, self.pool, settings
        )
        self.max_failovers = settings.selector.ORCHESTRATOR_MAX_FAILOVERS

        self._sweepers = [
            PeriodicSweeper("response-cache", settings.cache.CACHE_SWEEP_INTERVAL_SECONDS, self.cache.purge_expired),
            PeriodicSweeper(
                "rate-limiter", settings.rate_limit.RATE_LIMIT_SWEEP_INTERVAL_SECONDS, self.rate_limiter.sweep
            ),
        ]

        # Performance statistics
        self._started_at = self._clock()
        self._total_queries = 0
        self._successful_queries = 0
        self._cache_hits = 0
        self._failures: dict[FailureKind, int] = {kind: 0 for kind in FailureKind}
        self._total_response_ms = 0.0
        self._failovers = 0

        for upstream in self.registry.descriptors():
            self.metrics.set_circuit_state(upstream.id, self.breakers.get_state(upstream.id))

        logger.info(
            "Orchestrator initialized",
            stage=Stage.STARTUP,
            upstreams=self.registry.ids(),
            max_connections=self.pool.max_connections,
            max_failovers=self.max_failovers,
        )

    @classmethod
    def from_settings(cls, settings: Settings, providers: ProviderFactory | None = None, **kwargs) -> "Orchestrator":
        """Build the fleet and adapters from configuration."""
        from iris.core.config.provider_registry import build_upstreams, register_providers

        providers = providers or register_providers()
        return cls(settings, providers, build_upstreams(settings), **kwargs)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start background sweeps (expired cache entries, idle rate-limit clients)."""
        for sweeper in self._sweepers:
            sweeper.start()

    async def stop(self) -> None:
        for sweeper in self._sweepers:
            await sweeper.stop()
        await self.providers.aclose()
        logger.info("Orchestrator stopped", stage=Stage.SHUTDOWN)

    # =========================================================================
    # Request pipeline
    # =========================================================================

    def _elapsed_ms(self, started: float) -> float:
        return max(0.0, (self._clock() - started) * 1000.0)

    async def submit(self, request: QueryRequest) -> QueryOutcome:
        """
        Run one query through the full pipeline.

        Returns:
            QueryResponse on success (fresh or cached), QueryFailure otherwise.

        Raises:
            InternalInvariantViolationError: Internal bookkeeping broke; never
                converted into a QueryFailure.
            asyncio.CancelledError: The caller was cancelled; every slot and
                trial claim has been released.
        """
        outer_request_id = get_request_id()
        set_request_id(request.request_id)
        started = self._clock()
        self._total_queries += 1
        try:
            outcome = await self._run_pipeline(request, started)
        finally:
            self.metrics.set_pool_occupancy(self.pool.active, self.pool.queued)
            if outer_request_id:
                set_request_id(outer_request_id)
            else:
                clear_request_id()

        duration_ms = self._elapsed_ms(started)
        if outcome.ok:
            self._successful_queries += 1
            self._total_response_ms += duration_ms
            self.metrics.record_query("success", duration_ms / 1000.0, cached=outcome.cached)
        else:
            self._failures[outcome.kind] += 1
            self.metrics.record_query(outcome.kind.value, duration_ms / 1000.0)
        return outcome

    async def ask(self, request: QueryRequest) -> QueryResponse:
        """
        Like submit(), but raises instead of returning a QueryFailure.

        Raises:
            RateLimitExceededError, NoProviderAvailableError,
            UpstreamTransientError (exhausted), UpstreamRejectedError
        """
        outcome = await self.submit(request)
        if not outcome.ok:
            raise outcome.to_error()
        return outcome

    async def _run_pipeline(self, request: QueryRequest, started: float) -> QueryOutcome:
        # STAGE 1.0: Rate check
        decision = None
        if self.settings.rate_limit.RATE_LIMIT_ENABLED:
            decision = await self.rate_limiter.check(request.client_id)
            if not decision.allowed:
                self.metrics.record_rate_limited()
                return QueryFailure(
                    kind=FailureKind.RATE_LIMITED,
                    message="Rate limit exceeded",
                    request_id=request.request_id,
                    retry_after_seconds=round(decision.retry_after_seconds, 3),
                    details={"limit": decision.limit, "window_ms": self.rate_limiter.window_ms},
                    rate_limit=decision,
                )

        # STAGE 2.0: Cache lookup
        cache_key = None
        if self.settings.cache.CACHE_ENABLED:
            cache_key = self.cache.make_key(request.text, request.provider_hint, request.task_type)
            cached = await self.cache.get(cache_key)
            self.metrics.record_cache_lookup(cached is not None)
            if cached is not None:
                self._cache_hits += 1
                log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", provider=cached["provider"])
                return QueryResponse(
                    content=cached["content"],
                    provider=cached["provider"],
                    cached=True,
                    latency_ms=self._elapsed_ms(started),
                    request_id=request.request_id,
                    model=cached.get("model"),
                    finish_reason=cached.get("finish_reason"),
                    usage=cached.get("usage", {}),
                    rate_limit=decision,
                )

        # STAGES 3.0 - 7.0: Select, acquire, invoke, record (with failover)
        return await self._dispatch(request, started, cache_key, decision)

    def _choose(self, request: QueryRequest, tried: list[str]) -> tuple[UpstreamDescriptor, Admission] | None:
        """Select an upstream and claim breaker admission for it."""
        skipped: set[str] = set(tried)
        hint = request.provider_hint if not tried else None

        while True:
            upstream_id = None
            if hint is not None:
                if hint not in skipped and self.selector.is_eligible(hint, request.task_type):
                    upstream_id = hint
                else:
                    log_stage(
                        logger, Stage.SELECT, "Requested provider unavailable, selecting automatically",
                        level="warning", provider_hint=hint,
                    )
                hint = None
            if upstream_id is None:
                upstream_id = self.selector.select(request.task_type, exclude=skipped)
            if upstream_id is None:
                return None

            admission = self.breakers.claim(upstream_id)
            if admission is not Admission.DENIED:
                return self.registry.get(upstream_id), admission
            skipped.add(upstream_id)

    async def _dispatch(
        self,
        request: QueryRequest,
        started: float,
        cache_key: str | None,
        decision: RateLimitDecision | None,
    ) -> QueryOutcome:
        tried: list[str] = []
        last_error: IrisError | None = None

        for hop in range(self.max_failovers + 1):
            choice = self._choose(request, tried)
            if choice is None:
                break
            upstream, admission = choice
            tried.append(upstream.id)
            if hop > 0:
                self._failovers += 1
                log_stage(
                    logger, Stage.FAILOVER, "Failing over", level="warning",
                    upstream=upstream.id, tried=tried[:-1],
                )

            # `admission` tracks the trial this request currently holds: a retry
            # may claim it in HALF_OPEN, a recorded failure spends it.
            def readmit() -> bool:
                nonlocal admission
                admission = self.breakers.claim(upstream.id)
                return admission is not Admission.DENIED

            async def attempt() -> ProviderResponse:
                nonlocal admission
                try:
                    return await self._invoke_once(upstream, request)
                except UpstreamTransientError:
                    admission = Admission.ADMITTED
                    raise

            try:
                response = await self.pool.execute(attempt, upstream.id, admit=readmit)
            except UpstreamRejectedError as exc:
                if admission is Admission.TRIAL:
                    self.breakers.release_trial(upstream.id)
                return QueryFailure(
                    kind=FailureKind.UPSTREAM_REJECTED,
                    message=exc.message,
                    request_id=request.request_id,
                    provider=upstream.id,
                    details=exc.details,
                    rate_limit=decision,
                )
            except (UpstreamTransientError, CircuitBreakerOpenError) as exc:
                last_error = exc
                log_stage(
                    logger, Stage.INVOKE, "Upstream exhausted", level="warning",
                    upstream=upstream.id, error=exc.message,
                )
                continue
            except asyncio.CancelledError:
                if admission is Admission.TRIAL:
                    self.breakers.release_trial(upstream.id)
                raise

            if cache_key is not None:
                await self.cache.put(cache_key, {
                    "content": response.content,
                    "provider": upstream.id,
                    "model": response.model,
                    "finish_reason": response.finish_reason,
                    "usage": dict(response.usage),
                })

            latency_ms = self._elapsed_ms(started)
            log_stage(
                logger, Stage.RESPOND, "Query answered",
                upstream=upstream.id, latency_ms=round(latency_ms, 2), failover=hop > 0,
            )
            return QueryResponse(
                content=response.content,
                provider=upstream.id,
                cached=False,
                latency_ms=latency_ms,
                request_id=request.request_id,
                model=response.model,
                finish_reason=response.finish_reason,
                usage=dict(response.usage),
                failover_used=hop > 0,
                rate_limit=decision,
            )

        if last_error is None:
            return QueryFailure(
                kind=FailureKind.NO_PROVIDER_AVAILABLE,
                message="No upstream is available for this request",
                request_id=request.request_id,
                retry_after_seconds=self._no_provider_retry_after(),
                details={"task_type": request.task_type},
                rate_limit=decision,
            )

        return QueryFailure(
            kind=FailureKind.UPSTREAM_EXHAUSTED,
            message=last_error.message,
            request_id=request.request_id,
            provider=tried[-1] if tried else None,
            details={"tried": tried, **last_error.details},
            rate_limit=decision,
        )

    async def _invoke_once(self, upstream: UpstreamDescriptor, request: QueryRequest) -> ProviderResponse:
        """
        One attempt against one upstream, inside a pool slot.

        Every completed attempt feeds the health tracker and the breaker,
        except explicit rejections, which say nothing about upstream health.
        Unclassified adapter errors are treated as transient.
        """
        attempt_started = self._clock()
        try:
            response = await asyncio.wait_for(
                self.providers.invoke(upstream, request, upstream.timeout_ms),
                timeout=upstream.timeout_ms / 1000.0,
            )
        except UpstreamRejectedError:
            self.metrics.record_upstream_call(upstream.id, "rejected", self._elapsed_ms(attempt_started) / 1000.0)
            raise
        except UpstreamTransientError as exc:
            self._record(upstream.id, attempt_started, success=False, status="error")
            exc.request_id = exc.request_id or request.request_id
            raise
        except asyncio.TimeoutError as exc:
            self._record(upstream.id, attempt_started, success=False, status="timeout")
            raise UpstreamTimeoutError(
                f"{upstream.id} did not answer within {upstream.timeout_ms}ms",
                request_id=request.request_id,
                details={"upstream": upstream.id, "timeout_ms": upstream.timeout_ms},
            ) from exc
        except Exception as exc:
            self._record(upstream.id, attempt_started, success=False, status="error")
            logger.error(
                "Unclassified adapter error",
                stage=Stage.INVOKE,
                upstream=upstream.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise UpstreamTransientError.wrap(
                exc, request_id=request.request_id, upstream=upstream.id
            ) from exc

        self._record(upstream.id, attempt_started, success=True, status="success")
        return response

    def _record(self, upstream_id: str, attempt_started: float, success: bool, status: str) -> None:
        """STAGE 7.0: health sample + breaker outcome for one attempt."""
        latency_ms = self._elapsed_ms(attempt_started)
        self.health.record(upstream_id, latency_ms, success)
        self.breakers.on_result(upstream_id, success)
        self.metrics.record_upstream_call(upstream_id, status, latency_ms / 1000.0)
        log_stage(
            logger, Stage.RECORD, "Attempt recorded", level="debug",
            upstream=upstream_id, success=success, latency_ms=round(latency_ms, 2),
        )

    def _no_provider_retry_after(self) -> float | None:
        """Seconds until the first open breaker admits a trial, if any is cooling down."""
        remaining = [
            stats["cooldown_remaining_ms"] / 1000.0
            for stats in self.breakers.get_all_stats().values()
            if stats["state"] == "open"
        ]
        return round(min(remaining), 3) if remaining else None

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_health(self) -> dict[str, dict[str, Any]]:
        """Per-upstream health score, status, breaker state and load."""
        health = {}
        breaker_stats = self.breakers.get_all_stats()
        for upstream in self.registry.descriptors():
            snapshot = self.health.snapshot(upstream.id).to_dict()
            snapshot.pop("upstream_id")
            health[upstream.id] = {
                **snapshot,
                "state": breaker_stats[upstream.id]["state"],
                "breaker": breaker_stats[upstream.id],
                "load": round(self.selector.load(upstream.id), 3),
                "in_flight": self.pool.in_flight(upstream.id),
                "enabled": upstream.enabled,
            }
        return health

    def get_system_health(self) -> dict[str, Any]:
        report = self.health.report()
        available = [u.id for u in self.registry.descriptors() if self.selector.is_eligible(u.id)]
        if not available:
            status = "unhealthy"
        elif len(available) < len(self.registry):
            status = "degraded"
        else:
            status = "healthy"
        return {
            "status": status,
            "system_health": report["system_health"],
            "available_upstreams": available,
            "total_upstreams": len(self.registry),
        }

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()

    def get_pool_stats(self) -> dict[str, Any]:
        return self.pool.get_stats()

    def get_rate_limit_stats(self) -> dict[str, Any]:
        return self.rate_limiter.get_stats()

    def get_performance_stats(self) -> dict[str, Any]:
        completed = self._successful_queries + sum(self._failures.values())
        return {
            "total_queries": self._total_queries,
            "successful_queries": self._successful_queries,
            "failed_queries": sum(self._failures.values()),
            "failures_by_kind": {kind.value: count for kind, count in self._failures.items()},
            "success_rate": round(100.0 * self._successful_queries / completed, 2) if completed else 0.0,
            "cache_hits": self._cache_hits,
            "cache_hit_rate": self.cache.get_stats()["hit_rate"],
            "failovers": self._failovers,
            "average_response_time_ms": (
                round(self._total_response_ms / self._successful_queries, 2) if self._successful_queries else 0.0
            ),
            "uptime_seconds": round(self._clock() - self._started_at, 1),
        }

    def describe_config(self) -> dict[str, Any]:
        """Effective configuration, without secrets."""
        return {
            "upstreams": [u.public_view() for u in self.registry.descriptors()],
            "cache": {
                "enabled": self.settings.cache.CACHE_ENABLED,
                "max_size": self.cache.max_size,
                "ttl_seconds": self.settings.cache.CACHE_TTL_SECONDS,
            },
            "pool": {
                "max_connections": self.pool.max_connections,
                "max_retries": self.pool.max_retries,
                "retry_base_delay_ms": self.pool.retry_base_delay_ms,
                "retry_max_delay_ms": self.pool.retry_max_delay_ms,
            },
            "rate_limit": {
                "enabled": self.settings.rate_limit.RATE_LIMIT_ENABLED,
                "window_ms": self.rate_limiter.window_ms,
                "max_requests": self.rate_limiter.max_requests,
            },
            "circuit_breaker": {
                "failure_threshold": self.breakers.failure_threshold,
                "cooldown_ms": self.breakers.cooldown_ms,
            },
            "selector": {
                "health_weight": self.selector.health_weight,
                "priority_weight": self.selector.priority_weight,
                "load_weight": self.selector.load_weight,
                "max_failovers": self.max_failovers,
            },
        }
