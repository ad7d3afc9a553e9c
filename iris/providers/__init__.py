"""
Provider adapters.

- base_provider.py: BaseProvider, ProviderResponse, ProviderFactory
- openai_provider.py: OpenAI-compatible chat completions (OpenAI, Groq, Gemini)
- ollama_provider.py: Local Ollama server
- fake_provider.py: Deterministic echo backend
"""

from .base_provider import BaseProvider, ProviderFactory, ProviderResponse
from .fake_provider import FakeProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "BaseProvider",
    "FakeProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderFactory",
    "ProviderResponse",
]
