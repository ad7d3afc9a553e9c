from .chat import ChatRequest, ChatResponse, ErrorResponse
from .stats import CacheClearResponse, HealthResponse, ProviderStatus

__all__ = [
    "CacheClearResponse",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "HealthResponse",
    "ProviderStatus",
]
