"""
System Constants and Enumerations

Centralized constants and enums shared across the orchestrator: request
lifecycle stages for structured logging, breaker states, failure kinds and
HTTP header names.

Author: Platform Engineering
Date: 2026-02-11
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    Sequential stages follow one query through the orchestrator; alphabetic
    prefixes mark cross-cutting concerns.

    Example:
        logger.info("Cache hit", stage=Stage.CACHE_LOOKUP)
    """

    # Main request lifecycle
    RATE_CHECK = "1.0_RATE_CHECK"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    SELECT = "3.0_SELECT"
    POOL_ACQUIRE = "4.0_POOL_ACQUIRE"
    INVOKE = "5.0_INVOKE"
    RELEASE = "6.0_RELEASE"
    RECORD = "7.0_RECORD"
    RESPOND = "8.0_RESPOND"

    # Cross-cutting concerns
    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    RETRY = "R_RETRY_LOGIC"
    FAILOVER = "F_FAILOVER"
    HEALTH = "H_HEALTH_TRACKING"
    SWEEP = "S_BACKGROUND_SWEEP"
    STARTUP = "0.0_STARTUP"
    SHUTDOWN = "9.0_SHUTDOWN"

    def __str__(self) -> str:
        return self.value


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: Testing recovery, a single trial request
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# Numeric encoding for the breaker state gauge
CIRCUIT_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


# ============================================================================
# Upstream Kinds
# ============================================================================


class UpstreamKind(str, Enum):
    """Adapter families an upstream descriptor can point at."""

    OPENAI = "openai"  # OpenAI-compatible chat completions (OpenAI, Groq, Gemini)
    OLLAMA = "ollama"  # Local Ollama server
    FAKE = "fake"  # Deterministic echo backend for local runs


# ============================================================================
# Query Outcome Classification
# ============================================================================


class FailureKind(str, Enum):
    """Why a query produced no answer."""

    RATE_LIMITED = "rate_limited"
    NO_PROVIDER_AVAILABLE = "no_provider_available"
    UPSTREAM_EXHAUSTED = "upstream_exhausted"
    UPSTREAM_REJECTED = "upstream_rejected"

    @property
    def disposition(self) -> str:
        if self in (FailureKind.RATE_LIMITED, FailureKind.NO_PROVIDER_AVAILABLE):
            return "retry_later"
        if self is FailureKind.UPSTREAM_EXHAUSTED:
            return "exhausted"
        return "failed"


# ============================================================================
# Task Types
# ============================================================================

DEFAULT_TASK_TYPE = "balanced"
AUTO_PROVIDER = "auto"

TASK_TYPES = ("balanced", "code", "creative", "fast", "complex", "analysis")

# System prompts per task type, sent ahead of the user message
TASK_SYSTEM_PROMPTS = {
    "code": "You are an expert programmer. Provide clear, well-commented code solutions.",
    "creative": "You are a creative writer. Be imaginative and engaging.",
    "fast": "Provide concise, direct answers.",
    "complex": "You are an expert analyst. Provide thorough, well-reasoned responses.",
    "analysis": "You are an analytical assistant. Break down problems systematically.",
    "balanced": "You are a helpful assistant. Answer clearly and accurately.",
}

# ============================================================================
# Health Status Bands
# ============================================================================

HEALTH_STATUS_HEALTHY = 80.0  # score > 80 is healthy
HEALTH_STATUS_WARNING = 60.0  # score > 60 is warning, below is critical

# ============================================================================
# Input Limits
# ============================================================================

MAX_INPUT_LENGTH = 10000

# ============================================================================
# Cache Keys
# ============================================================================

CACHE_KEY_PREFIX = "iris:response"

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"
