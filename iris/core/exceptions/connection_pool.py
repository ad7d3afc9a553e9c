"""
Connection Pool Exceptions

Author: Platform Engineering
Date: 2026-02-11
"""

from iris.core.exceptions.base import InternalInvariantViolationError, IrisError


class ConnectionPoolError(IrisError):
    """Base exception for connection pool errors."""
    pass


class SlotReleaseError(InternalInvariantViolationError):
    """
    Raised when a pooled slot is released more than once.

    Each slot belongs to exactly one request and is returned exactly once.
    A second release means the caller's bookkeeping is broken.
    """
    pass
