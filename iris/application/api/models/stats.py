"""
Health and statistics response models.
"""

from typing import Any

from pydantic import BaseModel, Field


class ProviderStatus(BaseModel):
    """Live view of one upstream."""

    id: str
    name: str
    kind: str
    model: str
    priority: float
    max_concurrency: int
    capabilities: list[str] = Field(default_factory=list)
    enabled: bool
    score: float = Field(..., ge=0.0, le=100.0, description="Health score")
    status: str = Field(..., description="healthy, warning or critical")
    state: str = Field(..., description="Circuit breaker state")
    load: float = Field(..., ge=0.0, le=1.0)
    in_flight: int = Field(..., ge=0)
    available: bool


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy, degraded or unhealthy")
    timestamp: str
    system_health: float
    available_upstreams: list[str]
    total_upstreams: int
    upstreams: dict[str, dict[str, Any]] = Field(default_factory=dict)


class CacheClearResponse(BaseModel):
    cleared: int = Field(..., ge=0, description="Entries removed")
