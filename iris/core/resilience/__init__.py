"""
Resilience Module - Core Resilience Components

Everything that keeps the orchestrator answering while individual backends
misbehave:

- UpstreamRegistry: per-upstream descriptors, health windows and breaker state
- HealthTracker: rolling health scores from invocation samples
- CircuitBreakerManager: per-upstream CLOSED / OPEN / HALF_OPEN breakers
- ConnectionPoolManager: global concurrency bound, FIFO queue, retries
- SlidingWindowRateLimiter: per-client quotas
- ProviderSelector: health/priority/load-weighted upstream choice
"""

from .circuit_breaker import Admission, CircuitBreaker, CircuitBreakerManager
from .connection_pool_manager import ConnectionPoolManager, ConnectionState, PooledSlot
from .health_tracker import HealthSnapshot, HealthTracker
from .provider_selector import Candidate, ProviderSelector
from .rate_limiter import RateLimitDecision, SlidingWindowRateLimiter
from .upstream_registry import BreakerState, HealthRecord, HealthSample, UpstreamRegistry

__all__ = [
    "Admission",
    "BreakerState",
    "Candidate",
    "CircuitBreaker",
    "CircuitBreakerManager",
    "ConnectionPoolManager",
    "ConnectionState",
    "HealthRecord",
    "HealthSample",
    "HealthSnapshot",
    "HealthTracker",
    "PooledSlot",
    "ProviderSelector",
    "RateLimitDecision",
    "SlidingWindowRateLimiter",
    "UpstreamRegistry",
]
