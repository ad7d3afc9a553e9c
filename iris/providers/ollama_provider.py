#!/usr/bin/env python3
"""
Ollama Provider Implementation

Local model server adapter speaking Ollama's native HTTP API over httpx.

    POST {endpoint}/api/chat   {"model", "messages", "stream": false}
    GET  {endpoint}/api/tags   installed models (health check)

Error mapping:
- httpx timeouts                  -> UpstreamTimeoutError
- connection / transport errors   -> UpstreamTransientError
- 408, 429, 5xx                   -> UpstreamTransientError
- other 4xx (e.g. unknown model)  -> UpstreamRejectedError

Author: Platform Engineering
Date: 2026-02-16
"""

from typing import Any

import httpx

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

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """
    Adapter for a local Ollama server.

    Args:
        transport: Optional httpx transport (tests pass httpx.MockTransport)
        temperature: Sampling temperature sent with every request
    """

    kind = "ollama"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, temperature: float = 0.7):
        self._transport = transport
        self._temperature = temperature
        self._clients: dict[str, httpx.AsyncClient] = {}

    def _client_for(self, upstream: UpstreamDescriptor) -> httpx.AsyncClient:
        client = self._clients.get(upstream.id)
        if client is None:
            client = httpx.AsyncClient(
                base_url=upstream.endpoint or DEFAULT_OLLAMA_URL,
                timeout=upstream.timeout_ms / 1000.0,
                transport=self._transport,
            )
            self._clients[upstream.id] = client
        return client

    async def _invoke_internal(
        self,
        upstream: UpstreamDescriptor,
        request: QueryRequest,
        model: str,
        timeout_ms: int,
    ) -> ProviderResponse:
        client = self._client_for(upstream)
        context = {"upstream": upstream.id, "model": model}
        payload = {
            "model": model,
            "messages": self.build_messages(request),
            "stream": False,
            "options": {"temperature": self._temperature},
        }

        try:
            response = await client.post("/api/chat", json=payload, timeout=timeout_ms / 1000.0)
            response.raise_for_status()
            data: dict[str, Any] = response.json()

        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError.wrap(
                exc, f"{upstream.id} timed out", request_id=request.request_id, **context
            ) from exc

        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status >= 500 or status in (408, 429):
                raise UpstreamTransientError.wrap(
                    exc, f"{upstream.id} returned {status}", request_id=request.request_id,
                    status_code=status, **context
                ) from exc
            logger.error(
                "Upstream rejected request",
                stage=Stage.INVOKE,
                status_code=status,
                body=exc.response.text[:200],
                **context,
            )
            raise UpstreamRejectedError.wrap(
                exc, f"{upstream.id} rejected the request ({status})", request_id=request.request_id,
                status_code=status, **context
            ) from exc

        except httpx.TransportError as exc:
            raise UpstreamTransientError.wrap(
                exc, f"Could not reach {upstream.id}", request_id=request.request_id, **context
            ) from exc

        except ValueError as exc:
            raise UpstreamTransientError.wrap(
                exc, f"{upstream.id} returned malformed JSON", request_id=request.request_id, **context
            ) from exc

        message = data.get("message") or {}
        prompt_tokens = int(data.get("prompt_eval_count") or 0)
        completion_tokens = int(data.get("eval_count") or 0)
        return ProviderResponse(
            content=message.get("content", ""),
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason=data.get("done_reason") or ("stop" if data.get("done") else None),
            model=data.get("model") or model,
        )

    async def list_models(self, upstream: UpstreamDescriptor) -> list[str]:
        response = await self._client_for(upstream).get("/api/tags")
        response.raise_for_status()
        return [m.get("name", "") for m in response.json().get("models", [])]

    async def health_check(self, upstream: UpstreamDescriptor) -> dict:
        try:
            models = await self.list_models(upstream)
        except (httpx.HTTPError, ValueError) as exc:
            return {"status": "unhealthy", "upstream": upstream.id, "error": str(exc)}
        return {
            "status": "healthy",
            "upstream": upstream.id,
            "models": models,
            "model_available": upstream.model in models,
        }

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
