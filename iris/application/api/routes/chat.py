"""
Chat Routes
===========

The query endpoint. HTTP handling only: the payload becomes a QueryRequest,
the orchestrator does the work, and the outcome is rendered as JSON.

Status codes:
    200  answer (fresh or cached)
    422  invalid input, or the upstream rejected the request
    429  client over its rate limit (Retry-After set)
    503  no upstream available right now (Retry-After set when a breaker is cooling down)
    504  upstreams exhausted their retries

Every response carries X-Request-ID and, when rate limiting is on,
X-RateLimit-Limit / X-RateLimit-Remaining / X-RateLimit-Reset.
"""

import math

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from iris.application.api.dependencies import ClientIdDep, OrchestratorDep
from iris.application.api.models.chat import ChatRequest, ChatResponse, ErrorResponse
from iris.core.config.constants import HEADER_REQUEST_ID, HEADER_RETRY_AFTER
from iris.core.exceptions import InvalidRequestError
from iris.core.logging import get_logger, get_request_id
from iris.models.query import QueryRequest

logger = get_logger(__name__)

router = APIRouter(tags=["Chat"])


def _build_query(body: ChatRequest, client_id: str) -> QueryRequest:
    fields = {
        "text": body.message,
        "task_type": body.task_type,
        "provider_hint": body.provider,
        "client_id": client_id,
    }
    request_id = get_request_id()
    if request_id:
        fields["request_id"] = request_id
    try:
        return QueryRequest(**fields)
    except ValidationError as exc:
        raise InvalidRequestError(
            "Invalid chat request",
            request_id=request_id,
            details={"errors": [err["msg"] for err in exc.errors()]},
        ) from exc


@router.post(
    "/chat",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    responses={
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def chat(body: ChatRequest, orchestrator: OrchestratorDep, client_id: ClientIdDep):
    """Answer one message through the orchestrator."""
    query = _build_query(body, client_id)
    outcome = await orchestrator.submit(query)

    headers = {HEADER_REQUEST_ID: query.request_id}
    if outcome.rate_limit is not None:
        headers.update(outcome.rate_limit.headers())

    if outcome.ok:
        return JSONResponse(content=outcome.to_dict(), headers=headers)

    if outcome.retry_after_seconds and HEADER_RETRY_AFTER not in headers:
        headers[HEADER_RETRY_AFTER] = str(max(1, math.ceil(outcome.retry_after_seconds)))

    logger.info(
        "Query failed",
        error=outcome.kind.value,
        disposition=outcome.disposition,
        provider=outcome.provider,
        client_id=client_id,
    )
    return JSONResponse(status_code=outcome.http_status, content=outcome.to_dict(), headers=headers)
