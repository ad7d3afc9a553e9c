#!/usr/bin/env python3
"""
Base Provider Abstract Class

The transport seam between the orchestrator and a backend. An adapter turns
(upstream descriptor, query) into one completed answer and classifies every
failure as either transient (UpstreamTransientError) or an explicit
rejection (UpstreamRejectedError).

Adapters are registered per upstream kind, so a single OpenAI-compatible
adapter serves OpenAI, Groq and Gemini upstreams alike.

Adapters do not retry, trip breakers or record health; the orchestrator
does all of that around them.

Author: Platform Engineering
Date: 2026-02-16
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from iris.core.config.constants import DEFAULT_TASK_TYPE, TASK_SYSTEM_PROMPTS, Stage
from iris.core.config.upstreams import UpstreamDescriptor
from iris.core.exceptions import ConfigurationError, UpstreamRejectedError
from iris.core.logging import get_logger
from iris.models.query import QueryRequest

logger = get_logger(__name__)


@dataclass
class ProviderResponse:
    """
    One completed answer from an upstream.

    Attributes:
        content: Generated text
        usage: Token counts (prompt_tokens, completion_tokens, total_tokens) when reported
        finish_reason: Why generation stopped
        model: Model that produced the answer
    """

    content: str
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None
    model: str | None = None


class BaseProvider(ABC):
    """
    Abstract base class for upstream adapters.

    Subclasses implement _invoke_internal() and map their client library's
    errors onto the provider exception hierarchy.

    Usage:
        class EchoProvider(BaseProvider):
            kind = "echo"

            async def _invoke_internal(self, upstream, request, model, timeout_ms):
                return ProviderResponse(content=request.text, model=model)
    """

    kind: str = ""

    async def invoke(
        self, upstream: UpstreamDescriptor, request: QueryRequest, timeout_ms: int
    ) -> ProviderResponse:
        """
        Send one query to one upstream.

        STAGE-5.0: Upstream invocation

        Raises:
            UpstreamTransientError: Timeout, network failure, overload
            UpstreamRejectedError: The backend refused the request
        """
        model = upstream.model_for(request.task_type)
        started = time.perf_counter()
        logger.debug(
            "Invoking upstream",
            stage=Stage.INVOKE,
            upstream=upstream.id,
            kind=self.kind,
            model=model,
            timeout_ms=timeout_ms,
        )

        response = await self._invoke_internal(upstream, request, model, timeout_ms)

        logger.debug(
            "Upstream answered",
            stage=Stage.INVOKE,
            upstream=upstream.id,
            model=response.model or model,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            finish_reason=response.finish_reason,
        )
        return response

    @abstractmethod
    async def _invoke_internal(
        self,
        upstream: UpstreamDescriptor,
        request: QueryRequest,
        model: str,
        timeout_ms: int,
    ) -> ProviderResponse:
        """Adapter-specific call. Must raise only provider exceptions."""
        pass

    @staticmethod
    def build_messages(request: QueryRequest) -> list[dict[str, str]]:
        """Chat messages: a task-specific system prompt, then the user message."""
        system_prompt = TASK_SYSTEM_PROMPTS.get(request.task_type, TASK_SYSTEM_PROMPTS[DEFAULT_TASK_TYPE])
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": request.text},
        ]

    async def health_check(self, upstream: UpstreamDescriptor) -> dict[str, Any]:
        """Check an upstream outside the request path."""
        return {"status": "unknown", "upstream": upstream.id}

    async def aclose(self) -> None:
        """Release client resources."""
        return None


class ProviderFactory:
    """
    Registry of adapters keyed by upstream kind.

    STAGE-5.F: Provider factory

    Usage:
        factory = ProviderFactory()
        factory.register("ollama", OllamaProvider)
        response = await factory.invoke(upstream, request, timeout_ms=30000)
    """

    def __init__(self):
        self._providers: dict[str, BaseProvider] = {}
        self._classes: dict[str, type[BaseProvider]] = {}
        self._kwargs: dict[str, dict[str, Any]] = {}

    @staticmethod
    def _key(kind) -> str:
        return getattr(kind, "value", kind)

    def register(self, kind, provider_class: type[BaseProvider], **kwargs) -> None:
        """Register an adapter class, instantiated on first use."""
        key = self._key(kind)
        self._classes[key] = provider_class
        self._kwargs[key] = kwargs
        self._providers.pop(key, None)
        logger.info("Registered provider adapter", stage="5.F.1", kind=key, adapter=provider_class.__name__)

    def register_instance(self, kind, provider: BaseProvider) -> None:
        """Register a ready-made adapter instance."""
        key = self._key(kind)
        self._providers[key] = provider
        self._classes[key] = type(provider)
        self._kwargs[key] = {}

    def get(self, kind) -> BaseProvider:
        key = self._key(kind)
        if key not in self._classes:
            raise ConfigurationError(
                f"No provider adapter registered for kind '{key}'",
                details={"kind": key, "available": self.get_available()},
            )
        if key not in self._providers:
            self._providers[key] = self._classes[key](**self._kwargs[key])
        return self._providers[key]

    def get_available(self) -> list[str]:
        return list(self._classes)

    def validate(self, upstreams: list[UpstreamDescriptor]) -> None:
        """
        Fail fast if any upstream points at an unregistered kind.

        Raises:
            ConfigurationError: Listing the upstreams without an adapter
        """
        missing = sorted(u.id for u in upstreams if self._key(u.kind) not in self._classes)
        if missing:
            raise ConfigurationError(
                "Upstreams reference unregistered provider kinds",
                details={"upstreams": missing, "available": self.get_available()},
            )

    async def invoke(
        self, upstream: UpstreamDescriptor, request: QueryRequest, timeout_ms: int
    ) -> ProviderResponse:
        """Dispatch to the adapter registered for upstream.kind."""
        try:
            provider = self.get(upstream.kind)
        except ConfigurationError as exc:
            raise UpstreamRejectedError(
                exc.message, request_id=request.request_id, details={"upstream": upstream.id, **exc.details}
            ) from exc
        return await provider.invoke(upstream, request, timeout_ms)

    async def health_check(self, upstream: UpstreamDescriptor) -> dict[str, Any]:
        return await self.get(upstream.kind).health_check(upstream)

    async def aclose(self) -> None:
        for provider in list(self._providers.values()):
            await provider.aclose()
        self._providers.clear()
