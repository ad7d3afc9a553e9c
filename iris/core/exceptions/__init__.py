"""
Exception Module

Structured exception hierarchy for the IRIS orchestrator, organized by theme.

Module Structure:
-----------------
- **base.py**: IrisError base class, ConfigurationError, InternalInvariantViolationError
- **provider.py**: Upstream provider exceptions (transient / rejected / none available)
- **circuit_breaker.py**: Circuit breaker exceptions
- **connection_pool.py**: Connection pool exceptions
- **rate_limit.py**: Rate limiting exceptions
- **validation.py**: Request validation exceptions

Usage:
------
```python
from iris.core.exceptions import UpstreamTransientError, RateLimitExceededError
```
"""

from iris.core.exceptions.base import (
    ConfigurationError,
    InternalInvariantViolationError,
    IrisError,
)
from iris.core.exceptions.circuit_breaker import CircuitBreakerError, CircuitBreakerOpenError
from iris.core.exceptions.connection_pool import ConnectionPoolError, SlotReleaseError
from iris.core.exceptions.provider import (
    NoProviderAvailableError,
    ProviderError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)
from iris.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from iris.core.exceptions.validation import InvalidRequestError

__all__ = [
    # Base
    "IrisError",
    "ConfigurationError",
    "InternalInvariantViolationError",
    # Provider
    "ProviderError",
    "UpstreamTransientError",
    "UpstreamTimeoutError",
    "UpstreamRejectedError",
    "NoProviderAvailableError",
    # Circuit Breaker
    "CircuitBreakerError",
    "CircuitBreakerOpenError",
    # Connection Pool
    "ConnectionPoolError",
    "SlotReleaseError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Validation
    "InvalidRequestError",
]
