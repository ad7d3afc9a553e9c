#!/usr/bin/env python3
"""
Metrics Collector with Prometheus Integration

Prometheus metrics for the orchestrator:
- Query outcomes by result
- Upstream call counts and latency histograms
- Cache hit/miss counts
- Rate limit rejections
- Circuit breaker state per upstream
- Pool occupancy

Every MetricsCollector owns its own CollectorRegistry, so several
orchestrators (or tests) in one process never collide on metric names.

Author: Platform Engineering
Date: 2026-02-15
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from iris.core.config.constants import CIRCUIT_STATE_GAUGE, CircuitState


class MetricsCollector:
    """
    Thin wrapper around prometheus-client collectors.

    Usage:
        metrics = MetricsCollector()
        metrics.record_query("success")
        metrics.record_upstream_call("groq", "success", 0.42)
        body = metrics.get_prometheus_metrics()
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        self.queries = Counter(
            'iris_queries_total',
            'Queries handled by the orchestrator',
            ['outcome'],
            registry=self.registry,
        )
        self.query_duration = Histogram(
            'iris_query_duration_seconds',
            'End-to-end query latency',
            ['cached'],
            buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )
        self.upstream_calls = Counter(
            'iris_upstream_calls_total',
            'Upstream invocation attempts',
            ['upstream', 'status'],
            registry=self.registry,
        )
        self.upstream_latency = Histogram(
            'iris_upstream_latency_seconds',
            'Upstream invocation latency',
            ['upstream'],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )
        self.cache_lookups = Counter(
            'iris_cache_lookups_total',
            'Response cache lookups',
            ['result'],
            registry=self.registry,
        )
        self.rate_limited = Counter(
            'iris_rate_limited_total',
            'Queries rejected by the rate limiter',
            registry=self.registry,
        )
        self.circuit_state = Gauge(
            'iris_circuit_breaker_state',
            'Circuit breaker state (0=closed, 1=half_open, 2=open)',
            ['upstream'],
            registry=self.registry,
        )
        self.pool_active = Gauge(
            'iris_pool_active_slots',
            'Pool slots in use',
            registry=self.registry,
        )
        self.pool_queued = Gauge(
            'iris_pool_queued_requests',
            'Requests waiting for a pool slot',
            registry=self.registry,
        )

    def record_query(self, outcome: str, duration_seconds: float | None = None, cached: bool = False) -> None:
        self.queries.labels(outcome=outcome).inc()
        if duration_seconds is not None:
            self.query_duration.labels(cached=str(cached).lower()).observe(duration_seconds)

    def record_upstream_call(self, upstream: str, status: str, duration_seconds: float) -> None:
        self.upstream_calls.labels(upstream=upstream, status=status).inc()
        self.upstream_latency.labels(upstream=upstream).observe(duration_seconds)

    def record_cache_lookup(self, hit: bool) -> None:
        self.cache_lookups.labels(result="hit" if hit else "miss").inc()

    def record_rate_limited(self) -> None:
        self.rate_limited.inc()

    def set_circuit_state(self, upstream: str, state: CircuitState) -> None:
        self.circuit_state.labels(upstream=upstream).set(CIRCUIT_STATE_GAUGE[state])

    def on_circuit_transition(self, upstream: str, old_state: CircuitState, new_state: CircuitState) -> None:
        """Listener hook for CircuitBreakerManager."""
        self.set_circuit_state(upstream, new_state)

    def set_pool_occupancy(self, active: int, queued: int) -> None:
        self.pool_active.set(active)
        self.pool_queued.set(queued)

    def get_prometheus_metrics(self) -> bytes:
        return generate_latest(self.registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
