"""
Upstream Provider Exceptions

Errors raised while talking to inference backends (cloud APIs, local model
servers). Adapters classify every failure into one of two families:

- UpstreamTransientError: timeouts, network errors, overload. Retried by the
  connection pool and counted against upstream health.
- UpstreamRejectedError: the backend explicitly refused the request
  (malformed input, auth, unknown model). Never retried and not a health
  signal.

Author: Platform Engineering
Date: 2026-02-11
"""

from iris.core.config.constants import FailureKind
from iris.core.exceptions.base import IrisError


class ProviderError(IrisError):
    """Base exception for upstream provider errors."""
    pass


class UpstreamTransientError(ProviderError):
    """
    Raised when an upstream call fails in a way that may succeed on retry.

    Common causes:
    - Connection refused or reset
    - DNS failure
    - HTTP 429 / 5xx from the backend
    """

    failure_kind = FailureKind.UPSTREAM_EXHAUSTED
    status_code = 504


class UpstreamTimeoutError(UpstreamTransientError):
    """Raised when an upstream does not answer within its timeout_ms."""
    pass


class UpstreamRejectedError(ProviderError):
    """
    Raised when the backend explicitly rejects the request.

    Common causes:
    - Invalid request format
    - Invalid or missing API key
    - Unsupported model
    - Content policy violation
    """

    failure_kind = FailureKind.UPSTREAM_REJECTED
    status_code = 422


class NoProviderAvailableError(ProviderError):
    """
    Raised when no upstream can take the request right now.

    Every configured upstream is either tripped open, saturated, disabled or
    lacks the capability for the task type. Callers should retry later.
    """

    failure_kind = FailureKind.NO_PROVIDER_AVAILABLE
    status_code = 503
