"""
Query Models

The request the orchestrator accepts and the two shapes of outcome it
returns: an answer (QueryResponse) or a classified failure (QueryFailure).

Author: Platform Engineering
Date: 2026-02-16
"""

import re
import unicodedata
import uuid
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from iris.core.config.constants import AUTO_PROVIDER, DEFAULT_TASK_TYPE, MAX_INPUT_LENGTH, FailureKind
from iris.core.exceptions import InvalidRequestError, IrisError
from iris.core.resilience.rate_limiter import RateLimitDecision

_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\u2060\ufeff]")
_TASK_TYPE_RE = re.compile(r"^[a-z0-9_-]{1,32}$")


def sanitize_text(text: str, max_length: int = MAX_INPUT_LENGTH) -> str:
    """
    Clean user input before it reaches the cache or an upstream.

    Removes control characters (keeping newlines and tabs) and zero-width
    characters, trims surrounding whitespace and truncates to max_length.

    Raises:
        InvalidRequestError: If nothing is left after cleaning
    """
    cleaned = _ZERO_WIDTH_RE.sub("", text)
    cleaned = "".join(
        ch for ch in cleaned
        if ch in "\n\t" or unicodedata.category(ch) != "Cc"
    )
    cleaned = cleaned.strip()[:max_length]
    if not cleaned:
        raise InvalidRequestError("Message must not be empty")
    return cleaned


class QueryRequest(BaseModel):
    """
    One logical query.

    Attributes:
        text: User message
        task_type: Task category (balanced, code, creative, fast, complex, analysis, ...)
        provider_hint: Preferred upstream id; None or "auto" lets the selector decide
        client_id: Identity the rate limiter counts against
        request_id: Correlation id, generated when absent
    """

    model_config = ConfigDict(frozen=True)

    text: str
    task_type: str = DEFAULT_TASK_TYPE
    provider_hint: str | None = None
    client_id: str = "anonymous"
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @field_validator("text")
    @classmethod
    def clean_text(cls, v: str) -> str:
        return sanitize_text(v)

    @field_validator("task_type", mode="before")
    @classmethod
    def normalize_task_type(cls, v: str | None) -> str:
        v = (v or DEFAULT_TASK_TYPE).strip().lower()
        if not _TASK_TYPE_RE.match(v):
            raise InvalidRequestError(f"Invalid task type '{v}'")
        return v

    @field_validator("provider_hint", mode="before")
    @classmethod
    def normalize_provider_hint(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        return None if v in ("", AUTO_PROVIDER) else v


@dataclass(frozen=True)
class QueryResponse:
    """A successful answer, either fresh from an upstream or from the cache."""

    content: str
    provider: str
    cached: bool
    latency_ms: float
    request_id: str
    model: str | None = None
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    failover_used: bool = False
    rate_limit: RateLimitDecision | None = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "provider": self.provider,
            "cached": self.cached,
            "latency_ms": round(self.latency_ms, 2),
            "request_id": self.request_id,
            "model": self.model,
            "finish_reason": self.finish_reason,
            "usage": dict(self.usage),
            "failover_used": self.failover_used,
        }


@dataclass(frozen=True)
class QueryFailure:
    """A query that produced no answer, classified by FailureKind."""

    kind: FailureKind
    message: str
    request_id: str
    retry_after_seconds: float | None = None
    provider: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    rate_limit: RateLimitDecision | None = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return False

    @property
    def disposition(self) -> str:
        """retry_later, failed or exhausted."""
        return self.kind.disposition

    @property
    def http_status(self) -> int:
        return IrisError.error_class_for(self.kind).status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "disposition": self.disposition,
            "request_id": self.request_id,
            "retry_after_seconds": self.retry_after_seconds,
            "provider": self.provider,
            "details": dict(self.details),
        }

    def to_error(self) -> IrisError:
        """The exception a raising caller sees for this failure."""
        details = {"provider": self.provider, **self.details} if self.provider else dict(self.details)
        return IrisError.for_failure(
            self.kind,
            self.message,
            request_id=self.request_id,
            details=details,
            retry_after=self.retry_after_seconds,
        )


QueryOutcome = QueryResponse | QueryFailure
