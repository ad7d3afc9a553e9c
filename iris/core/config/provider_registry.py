"""
Provider Registry

Builds the upstream fleet from settings and registers one adapter per
upstream kind with the provider factory.

When UPSTREAMS is set explicitly it is used as is. Otherwise the fleet is
derived from the available credentials:

    id       kind     priority  max_concurrency
    groq     openai   3         15     (GROQ_API_KEY set)
    gemini   openai   2         10     (GOOGLE_API_KEY set)
    openai   openai   2         10     (OPENAI_API_KEY set)
    ollama   ollama   1         5      (OLLAMA_ENABLED, local)
    fake     fake     0         50     (USE_FAKE_LLM)

Author: Platform Engineering
Date: 2026-02-16
"""

from iris.core.config.constants import UpstreamKind
from iris.core.config.settings import Settings
from iris.core.config.upstreams import UpstreamDescriptor
from iris.core.exceptions import ConfigurationError
from iris.core.logging import get_logger
from iris.providers import FakeProvider, OllamaProvider, OpenAIProvider, ProviderFactory

logger = get_logger(__name__)

OLLAMA_TASK_MODELS = {
    "code": "codellama:7b",
    "fast": "llama3.2:1b",
    "complex": "llama3.1:8b",
}


def build_upstreams(settings: Settings) -> list[UpstreamDescriptor]:
    """
    Resolve the configured upstream descriptors.

    Raises:
        ConfigurationError: If no upstream ends up configured
    """
    if settings.UPSTREAMS:
        return list(settings.UPSTREAMS)

    timeout_ms = settings.PROVIDER_TIMEOUT_MS
    upstreams: list[UpstreamDescriptor] = []

    if settings.GROQ_API_KEY:
        upstreams.append(UpstreamDescriptor(
            id="groq",
            name="Groq",
            kind=UpstreamKind.OPENAI,
            endpoint=settings.GROQ_BASE_URL,
            model=settings.GROQ_MODEL,
            api_key=settings.GROQ_API_KEY,
            max_concurrency=15,
            priority=3,
            timeout_ms=timeout_ms,
        ))

    if settings.GOOGLE_API_KEY:
        upstreams.append(UpstreamDescriptor(
            id="gemini",
            name="Google Gemini",
            kind=UpstreamKind.OPENAI,
            endpoint=settings.GEMINI_BASE_URL,
            model=settings.GEMINI_MODEL,
            api_key=settings.GOOGLE_API_KEY,
            max_concurrency=10,
            priority=2,
            timeout_ms=timeout_ms,
        ))

    if settings.OPENAI_API_KEY:
        upstreams.append(UpstreamDescriptor(
            id="openai",
            name="OpenAI",
            kind=UpstreamKind.OPENAI,
            endpoint=settings.OPENAI_BASE_URL,
            model=settings.OPENAI_MODEL,
            api_key=settings.OPENAI_API_KEY,
            max_concurrency=10,
            priority=2,
            timeout_ms=timeout_ms,
        ))

    if settings.OLLAMA_ENABLED:
        upstreams.append(UpstreamDescriptor(
            id="ollama",
            name="Ollama (local)",
            kind=UpstreamKind.OLLAMA,
            endpoint=settings.OLLAMA_BASE_URL,
            model=settings.OLLAMA_MODEL,
            task_models=OLLAMA_TASK_MODELS,
            max_concurrency=5,
            priority=1,
            timeout_ms=timeout_ms,
        ))

    if settings.USE_FAKE_LLM:
        upstreams.append(UpstreamDescriptor(
            id="fake",
            name="Echo",
            kind=UpstreamKind.FAKE,
            model="echo",
            max_concurrency=50,
            priority=0,
            timeout_ms=timeout_ms,
        ))

    if not upstreams:
        raise ConfigurationError(
            "No upstreams configured"
        ).with_suggestion("Set UPSTREAMS, an API key (GROQ_API_KEY, GOOGLE_API_KEY, OPENAI_API_KEY), "
                          "OLLAMA_ENABLED=true or USE_FAKE_LLM=true")

    logger.info("Upstreams resolved", upstreams=[u.id for u in upstreams])
    return upstreams


def register_providers(factory: ProviderFactory | None = None) -> ProviderFactory:
    """Register the adapter for every known upstream kind."""
    factory = factory or ProviderFactory()
    factory.register(UpstreamKind.OPENAI, OpenAIProvider)
    factory.register(UpstreamKind.OLLAMA, OllamaProvider)
    factory.register(UpstreamKind.FAKE, FakeProvider)
    return factory
