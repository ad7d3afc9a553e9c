#!/usr/bin/env python3
"""
OpenAI-Compatible Provider Implementation

Chat completions through the official AsyncOpenAI client. Any backend that
speaks the OpenAI wire format is served by this adapter; the upstream's
endpoint becomes the client's base_url:

- OpenAI:  https://api.openai.com/v1
- Groq:    https://api.groq.com/openai/v1
- Gemini:  https://generativelanguage.googleapis.com/v1beta/openai/

Architectural Decision: Use the official SDK
- Typed responses and error classes
- SDK retries disabled (max_retries=0); the connection pool owns retries

Author: Platform Engineering
Date: 2026-02-16
"""

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from iris.core.config.constants import Stage
from iris.core.config.upstreams import UpstreamDescriptor
from iris.core.exceptions import (
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)
from iris.core.logging import get_logger
from iris.models.query import QueryRequest
from iris.providers.base_provider import BaseProvider, ProviderResponse

logger = get_logger(__name__)

# Status codes that say "try again later" rather than "this request is wrong"
TRANSIENT_STATUS_CODES = frozenset({408, 409, 425, 429})


class OpenAIProvider(BaseProvider):
    """
    OpenAI-compatible chat completions adapter.

    One AsyncOpenAI client is kept per upstream (each has its own base URL
    and key).
    """

    kind = "openai"

    def __init__(self, http_client: httpx.AsyncClient | None = None, temperature: float = 0.7):
        self._http_client = http_client
        self._temperature = temperature
        self._clients: dict[str, AsyncOpenAI] = {}

    def _client_for(self, upstream: UpstreamDescriptor) -> AsyncOpenAI:
        client = self._clients.get(upstream.id)
        if client is None:
            api_key = upstream.api_key.get_secret_value() if upstream.api_key else "unset"
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=upstream.endpoint or None,
                timeout=upstream.timeout_ms / 1000.0,
                max_retries=0,
                http_client=self._http_client,
            )
            self._clients[upstream.id] = client
            logger.info(
                "OpenAI-compatible client created",
                stage="5.0_CLIENT_INIT",
                upstream=upstream.id,
                base_url=upstream.endpoint,
            )
        return client

    async def _invoke_internal(
        self,
        upstream: UpstreamDescriptor,
        request: QueryRequest,
        model: str,
        timeout_ms: int,
    ) -> ProviderResponse:
        """
        Raises:
            UpstreamTimeoutError: The SDK timed out
            UpstreamTransientError: Connection failure, 429, 5xx
            UpstreamRejectedError: Any other 4xx (bad request, auth, unknown model)
        """
        client = self._client_for(upstream)
        context = {"upstream": upstream.id, "model": model}

        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=self.build_messages(request),
                temperature=self._temperature,
                timeout=timeout_ms / 1000.0,
            )

        except APITimeoutError as exc:
            raise UpstreamTimeoutError.wrap(
                exc, f"{upstream.id} timed out", request_id=request.request_id, **context
            ) from exc

        except APIConnectionError as exc:
            raise UpstreamTransientError.wrap(
                exc, f"Could not connect to {upstream.id}", request_id=request.request_id, **context
            ) from exc

        except RateLimitError as exc:
            logger.warning("Upstream rate limit hit", stage=Stage.INVOKE, **context)
            raise UpstreamTransientError.wrap(
                exc, f"{upstream.id} is rate limiting", request_id=request.request_id,
                status_code=exc.status_code, **context
            ) from exc

        except APIStatusError as exc:
            if exc.status_code >= 500 or exc.status_code in TRANSIENT_STATUS_CODES:
                raise UpstreamTransientError.wrap(
                    exc, f"{upstream.id} returned {exc.status_code}", request_id=request.request_id,
                    status_code=exc.status_code, **context
                ) from exc
            logger.error(
                "Upstream rejected request",
                stage=Stage.INVOKE,
                status_code=exc.status_code,
                error=exc.message,
                **context,
            )
            raise UpstreamRejectedError.wrap(
                exc, f"{upstream.id} rejected the request ({exc.status_code})",
                request_id=request.request_id, status_code=exc.status_code, **context
            ) from exc

        except APIError as exc:
            raise UpstreamTransientError.wrap(
                exc, f"{upstream.id} returned an unusable response", request_id=request.request_id, **context
            ) from exc

        choice = completion.choices[0] if completion.choices else None
        usage = {}
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }
        return ProviderResponse(
            content=(choice.message.content or "") if choice else "",
            usage=usage,
            finish_reason=choice.finish_reason if choice else None,
            model=completion.model or model,
        )

    async def health_check(self, upstream: UpstreamDescriptor) -> dict:
        try:
            await self._client_for(upstream).models.list()
        except APIError as exc:
            return {"status": "unhealthy", "upstream": upstream.id, "error": str(exc)}
        return {"status": "healthy", "upstream": upstream.id}

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
