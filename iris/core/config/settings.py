#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the whole orchestrator.
Every tunable lives here so that components receive plain values at
construction time and never read the environment themselves.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Range validation at startup (fail fast on misconfiguration)
- Section views (settings.cache, settings.pool, ...) for readable call sites

Author: Platform Engineering
Date: 2026-02-12
"""

from typing import Literal, TypeVar

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from iris.core.config.upstreams import UpstreamDescriptor

SectionT = TypeVar("SectionT", bound=BaseSettings)


class ProviderSettings(BaseSettings):
    """
    Upstream backends.

    UPSTREAMS takes a JSON list of descriptors. When it is empty the fleet is
    derived from the API keys below (see provider_registry.build_upstreams).
    """

    UPSTREAMS: list[UpstreamDescriptor] = Field(
        default_factory=list, description="Explicit upstream descriptors (JSON list)"
    )
    USE_FAKE_LLM: bool = Field(default=False, description="Add a deterministic echo upstream")
    PROVIDER_TIMEOUT_MS: int = Field(default=30000, ge=100, le=600000, description="Default invocation timeout")

    # Groq (OpenAI-compatible)
    GROQ_API_KEY: str | None = Field(default=None, description="Groq API key")
    GROQ_BASE_URL: str = Field(default="https://api.groq.com/openai/v1", description="Groq base URL")
    GROQ_MODEL: str = Field(default="llama-3.1-8b-instant", description="Groq default model")

    # Google Gemini (OpenAI-compatible endpoint)
    GOOGLE_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        description="Gemini OpenAI-compatible base URL"
    )
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash", description="Gemini default model")

    # OpenAI
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="OpenAI default model")

    # Ollama (local)
    OLLAMA_ENABLED: bool = Field(default=True, description="Register the local Ollama upstream")
    OLLAMA_BASE_URL: str = Field(default="http://localhost:11434", description="Ollama server URL")
    OLLAMA_MODEL: str = Field(default="llama3.2:3b", description="Ollama default model")

    @field_validator("UPSTREAMS")
    @classmethod
    def validate_unique_ids(cls, v: list[UpstreamDescriptor]) -> list[UpstreamDescriptor]:
        ids = [u.id for u in v]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate upstream ids: {duplicates}")
        return v

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class HealthSettings(BaseSettings):
    """
    Health scoring.

    score = 100 * (w_success * success_ratio + w_latency * latency_score)
    """

    HEALTH_WINDOW_SIZE: int = Field(default=50, ge=1, le=10000, description="Samples kept per upstream")
    HEALTH_NEUTRAL_SCORE: float = Field(default=75.0, ge=0.0, le=100.0, description="Score with no samples")
    HEALTH_SUCCESS_WEIGHT: float = Field(default=0.7, ge=0.0, le=1.0, description="Weight of success ratio")
    HEALTH_LATENCY_WEIGHT: float = Field(default=0.3, ge=0.0, le=1.0, description="Weight of latency score")
    HEALTH_LATENCY_CEILING_MS: float = Field(
        default=5000.0, gt=0.0, description="Latency at which a sample earns the full penalty"
    )
    HEALTH_ANOMALY_SIGMA: float = Field(default=2.0, gt=0.0, description="Std deviations marking a latency outlier")
    HEALTH_ANOMALY_MULTIPLIER: float = Field(default=3.0, ge=1.0, description="Penalty multiplier for outliers")

    @model_validator(mode="after")
    def validate_weights(self):
        if self.HEALTH_SUCCESS_WEIGHT + self.HEALTH_LATENCY_WEIGHT <= 0:
            raise ValueError("HEALTH_SUCCESS_WEIGHT + HEALTH_LATENCY_WEIGHT must be positive")
        return self

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """Circuit breaker thresholds."""

    CB_FAILURE_THRESHOLD: int = Field(default=3, ge=1, le=100, description="Consecutive failures before opening")
    CB_COOLDOWN_MS: int = Field(default=60000, ge=0, description="Time OPEN before a trial is allowed")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """Response cache sizing and expiry."""

    CACHE_ENABLED: bool = Field(default=True, description="Serve repeated queries from cache")
    CACHE_MAX_SIZE: int = Field(default=100, ge=1, le=10000, description="Maximum cached responses")
    CACHE_TTL_SECONDS: int = Field(default=900, ge=60, le=86400, description="Response TTL (15 minutes)")
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, gt=0.0, description="Expired entry purge interval")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class PoolSettings(BaseSettings):
    """Connection pool concurrency and retry policy."""

    POOL_MAX_CONNECTIONS: int = Field(default=10, ge=1, le=100, description="Concurrent upstream calls")
    POOL_MAX_RETRIES: int = Field(default=3, ge=0, le=10, description="Retries for transient failures")
    POOL_RETRY_BASE_DELAY_MS: int = Field(default=1000, ge=0, description="Backoff base delay")
    POOL_RETRY_MAX_DELAY_MS: int = Field(default=30000, ge=0, description="Backoff delay cap")

    @model_validator(mode="after")
    def validate_delays(self):
        if self.POOL_RETRY_MAX_DELAY_MS < self.POOL_RETRY_BASE_DELAY_MS:
            raise ValueError("POOL_RETRY_MAX_DELAY_MS must be >= POOL_RETRY_BASE_DELAY_MS")
        return self

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """Per-client sliding window quota."""

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enforce per-client quotas")
    RATE_LIMIT_WINDOW_MS: int = Field(default=60000, ge=1000, le=3600000, description="Sliding window length")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, ge=1, le=10000, description="Requests per window")
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(default=60.0, gt=0.0, description="Idle client purge interval")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class SelectorSettings(BaseSettings):
    """
    Provider selection coefficients.

    score = health_weight * health + priority_weight * priority + load_weight * (1 - load)
    """

    SELECTOR_HEALTH_WEIGHT: float = Field(default=0.6, ge=0.0, description="Weight of health score")
    SELECTOR_PRIORITY_WEIGHT: float = Field(default=25.0, ge=0.0, description="Weight of static priority")
    SELECTOR_LOAD_WEIGHT: float = Field(default=15.0, ge=0.0, description="Weight of spare capacity")
    ORCHESTRATOR_MAX_FAILOVERS: int = Field(
        default=1, ge=0, le=10, description="Extra upstreams tried after one is exhausted"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """Logging configuration for structured logging."""

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="IRIS Orchestrator", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=3001, ge=1000, le=65535, description="API port")
    API_BASE_PATH: str = Field(default="/api", description="Prefix for all API routes")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(
    ProviderSettings,
    HealthSettings,
    CircuitBreakerSettings,
    CacheSettings,
    PoolSettings,
    RateLimitSettings,
    SelectorSettings,
    LoggingSettings,
    ApplicationSettings,
):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from iris.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_TTL_SECONDS
        Settings(POOL_MAX_CONNECTIONS=2)  # explicit overrides in tests
    """

    def _section(self, section_cls: type[SectionT]) -> SectionT:
        return section_cls.model_construct(
            **{name: getattr(self, name) for name in section_cls.model_fields}
        )

    @property
    def providers(self) -> ProviderSettings:
        return self._section(ProviderSettings)

    @property
    def health(self) -> HealthSettings:
        return self._section(HealthSettings)

    @property
    def circuit_breaker(self) -> CircuitBreakerSettings:
        return self._section(CircuitBreakerSettings)

    @property
    def cache(self) -> CacheSettings:
        return self._section(CacheSettings)

    @property
    def pool(self) -> PoolSettings:
        return self._section(PoolSettings)

    @property
    def rate_limit(self) -> RateLimitSettings:
        return self._section(RateLimitSettings)

    @property
    def selector(self) -> SelectorSettings:
        return self._section(SelectorSettings)

    @property
    def logging(self) -> LoggingSettings:
        return self._section(LoggingSettings)

    @property
    def app(self) -> ApplicationSettings:
        return self._section(ApplicationSettings)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (lazy singleton)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings: Global settings instance, created on first use
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """Reload settings from the environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
