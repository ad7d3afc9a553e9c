"""
Upstream Descriptors

An upstream is one configured inference backend: a cloud API reachable
through an OpenAI-compatible endpoint, or a local model server. Descriptors
are immutable once loaded; changing the fleet goes through
UpstreamRegistry.reconfigure().

Author: Platform Engineering
Date: 2026-02-12
"""

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from iris.core.config.constants import UpstreamKind


class UpstreamDescriptor(BaseModel):
    """
    Static configuration of a single upstream backend.

    Attributes:
        id: Unique identifier used in logs, metrics and provider hints
        kind: Adapter family used to reach the backend
        endpoint: Base URL of the backend API
        model: Default model name
        task_models: Optional model override per task type
        max_concurrency: In-flight calls allowed before the upstream counts as saturated
        priority: Static preference weight fed to the selector
        capabilities: Task types served; empty means every task type
        timeout_ms: Per-invocation timeout
        enabled: Disabled upstreams are never selected

    Example:
        UpstreamDescriptor(
            id="groq",
            kind="openai",
            endpoint="https://api.groq.com/openai/v1",
            model="llama-3.1-8b-instant",
            max_concurrency=15,
            priority=3,
        )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    name: str | None = None
    kind: UpstreamKind = UpstreamKind.OPENAI
    endpoint: str = ""
    model: str = ""
    task_models: dict[str, str] = Field(default_factory=dict)
    api_key: SecretStr | None = None
    max_concurrency: int = Field(default=10, ge=1, le=1000)
    priority: float = Field(default=1.0, ge=0.0)
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    timeout_ms: int = Field(default=30000, ge=100, le=600000)
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("upstream id must not be blank")
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def supports(self, task_type: str | None) -> bool:
        """Whether this upstream serves the given task type."""
        if not self.capabilities or task_type is None:
            return True
        return task_type in self.capabilities

    def model_for(self, task_type: str | None) -> str:
        """Resolve the model name to use for a task type."""
        if task_type and task_type in self.task_models:
            return self.task_models[task_type]
        return self.model

    def public_view(self) -> dict:
        """Descriptor fields that are safe to expose over the API."""
        return {
            "id": self.id,
            "name": self.display_name,
            "kind": self.kind.value,
            "endpoint": self.endpoint,
            "model": self.model,
            "max_concurrency": self.max_concurrency,
            "priority": self.priority,
            "capabilities": sorted(self.capabilities),
            "timeout_ms": self.timeout_ms,
            "enabled": self.enabled,
        }
