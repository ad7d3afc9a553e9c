"""
Base Exception Class

IrisError is the root of every orchestrator error. Besides the message and
request id it carries how the failure is classified for callers:

- failure_kind: the FailureKind a query ends with when this error stops it
- status_code: HTTP status the API answers with
- retry_after: seconds after which the same query may succeed (optional)

Subclasses that declare their own `failure_kind` are registered, so a
classified QueryFailure can be turned back into the matching exception with
IrisError.for_failure().

Author: Platform Engineering
Date: 2026-02-11
"""

from typing import Any, ClassVar

from iris.core.config.constants import FailureKind


class IrisError(Exception):
    """
    Base exception for all orchestrator errors.

    Example:
        raise UpstreamTimeoutError(
            "groq did not answer within 30000ms",
            request_id="abc-123",
            details={"upstream": "groq", "timeout_ms": 30000}
        )
    """

    failure_kind: ClassVar[FailureKind | None] = None
    status_code: ClassVar[int] = 500

    _by_failure_kind: ClassVar[dict[FailureKind, type["IrisError"]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        kind = cls.__dict__.get("failure_kind")
        if kind is not None:
            IrisError._by_failure_kind.setdefault(kind, cls)

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ):
        self.message = message
        self.request_id = request_id
        self.details = dict(details or {})
        self.retry_after = retry_after
        if retry_after is not None:
            self.details.setdefault("retry_after", retry_after)
        super().__init__(message)

    @property
    def disposition(self) -> str | None:
        """retry_later, exhausted or failed; None for errors that never end a query."""
        return self.failure_kind.disposition if self.failure_kind else None

    def to_dict(self) -> dict[str, Any]:
        """Body for API error responses and structured log fields."""
        body = {
            "error_type": type(self).__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }
        if self.failure_kind is not None:
            body["error"] = self.failure_kind.value
            body["disposition"] = self.disposition
        return body

    def with_suggestion(self, suggestion: str) -> "IrisError":
        self.details["suggestion"] = suggestion
        return self

    @classmethod
    def wrap(
        cls,
        exc: BaseException,
        message: str | None = None,
        request_id: str | None = None,
        **details,
    ) -> "IrisError":
        """
        Classify a third-party exception (httpx, openai, asyncio) as this error.

        The cause's type is kept in details["cause"]; its text becomes the
        message unless one is given.

        Example:
            except httpx.ConnectError as exc:
                raise UpstreamTransientError.wrap(exc, f"Could not reach {upstream.id}", upstream=upstream.id) from exc
        """
        cause_text = str(exc)
        details = {"cause": type(exc).__name__, **details}
        if message and cause_text:
            details["cause_message"] = cause_text
        return cls(message or cause_text or type(exc).__name__, request_id=request_id, details=details)

    @classmethod
    def error_class_for(cls, kind: FailureKind) -> type["IrisError"]:
        return cls._by_failure_kind[kind]

    @classmethod
    def for_failure(
        cls,
        kind: FailureKind,
        message: str,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
        retry_after: float | None = None,
    ) -> "IrisError":
        """The registered exception for a FailureKind, instantiated."""
        error_class = cls.error_class_for(kind)
        return error_class(message, request_id=request_id, details=details, retry_after=retry_after)


class ConfigurationError(IrisError):
    """Raised when configuration is invalid or missing."""
    pass


class InternalInvariantViolationError(IrisError):
    """
    Raised when an internal bookkeeping invariant is broken.

    These errors indicate a programming defect (for example a pooled slot
    released twice). They are logged and re-raised, never converted into a
    query failure.
    """
    pass
