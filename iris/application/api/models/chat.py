"""
Chat API Models
===============

Pydantic models for the query endpoint. They validate the HTTP payload only;
text sanitizing and task-type normalization happen when the payload is turned
into a QueryRequest.

    POST /api/chat
    {"message": "What is Python?", "provider": "auto", "task_type": "code"}

Author: Platform Engineering
Date: 2026-02-17
"""

from typing import Any

from pydantic import BaseModel, Field

from iris.core.config.constants import AUTO_PROVIDER, DEFAULT_TASK_TYPE, MAX_INPUT_LENGTH


class ChatRequest(BaseModel):
    """
    Request body for the chat endpoint.

    `provider` names a preferred upstream id; "auto" (the default) lets the
    selector decide. An unavailable preferred upstream falls back to normal
    selection rather than failing the request.
    """

    message: str = Field(
        ..., min_length=1, max_length=MAX_INPUT_LENGTH, description="User message to answer"
    )
    provider: str | None = Field(default=AUTO_PROVIDER, max_length=64, description="Preferred upstream id or 'auto'")
    task_type: str | None = Field(default=DEFAULT_TASK_TYPE, max_length=32, description="Task category")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Explain Python decorators", "provider": "auto", "task_type": "code"},
            ]
        }
    }


class ChatResponse(BaseModel):
    content: str = Field(..., description="Answer text")
    provider: str = Field(..., description="Upstream that produced the answer")
    cached: bool = Field(..., description="True when served from the response cache")
    latency_ms: float = Field(..., ge=0.0, description="End-to-end latency")
    request_id: str = Field(..., description="Correlation id")
    model: str | None = None
    finish_reason: str | None = None
    usage: dict[str, int] = Field(default_factory=dict)
    failover_used: bool = False


class ErrorResponse(BaseModel):
    """Body returned for every failed query."""

    error: str = Field(..., description="Failure kind, e.g. rate_limited")
    message: str
    disposition: str | None = Field(default=None, description="retry_later, failed or exhausted")
    request_id: str | None = None
    retry_after_seconds: float | None = None
    provider: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
