"""
Rate Limiting Exceptions

Author: Platform Engineering
Date: 2026-02-11
"""

from iris.core.config.constants import FailureKind
from iris.core.exceptions.base import IrisError


class RateLimitError(IrisError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a client exceeds its quota for the sliding window.

    The HTTP response should include:
    - X-RateLimit-Limit: Maximum requests allowed
    - X-RateLimit-Remaining: Requests remaining
    - X-RateLimit-Reset: Time when a request slot frees up (Unix timestamp)
    - Retry-After: Seconds to wait
    """

    failure_kind = FailureKind.RATE_LIMITED
    status_code = 429
