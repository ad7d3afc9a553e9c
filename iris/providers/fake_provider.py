"""
Fake Provider

Deterministic echo backend for running the service without any real model
server (USE_FAKE_LLM=true). The same query always produces the same answer,
so cache and failover behavior can be observed end to end.
"""

import asyncio

from iris.core.config.upstreams import UpstreamDescriptor
from iris.models.query import QueryRequest
from iris.providers.base_provider import BaseProvider, ProviderResponse


class FakeProvider(BaseProvider):
    kind = "fake"

    def __init__(self, delay_ms: float = 0.0):
        self.delay_ms = delay_ms
        self.calls = 0

    async def _invoke_internal(
        self,
        upstream: UpstreamDescriptor,
        request: QueryRequest,
        model: str,
        timeout_ms: int,
    ) -> ProviderResponse:
        self.calls += 1
        if self.delay_ms:
            await asyncio.sleep(self.delay_ms / 1000.0)

        content = f"[{upstream.display_name}/{request.task_type}] {request.text}"
        prompt_tokens = len(request.text.split())
        completion_tokens = len(content.split())
        return ProviderResponse(
            content=content,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            finish_reason="stop",
            model=model or "echo",
        )

    async def health_check(self, upstream: UpstreamDescriptor) -> dict:
        return {"status": "healthy", "upstream": upstream.id}
