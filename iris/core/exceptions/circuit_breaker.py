"""
Circuit Breaker Exceptions

Author: Platform Engineering
Date: 2026-02-11
"""

from iris.core.exceptions.base import IrisError


class CircuitBreakerError(IrisError):
    """Base exception for circuit breaker errors."""
    pass


class CircuitBreakerOpenError(CircuitBreakerError):
    """
    Raised when the breaker refuses a call (fail fast).

    The connection pool raises this when the breaker for an upstream trips
    between two retry attempts. The orchestrator treats it like an exhausted
    upstream and moves on to the next candidate.
    """

    status_code = 503
