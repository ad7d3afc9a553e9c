"""
Health Routes
=============

GET /health     overall status plus per-upstream health scores and breaker states
GET /providers  configured upstreams with their live status

Both always answer 200; the status lives in the body so dashboards can read
a degraded fleet without treating the service itself as down.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from iris.application.api.dependencies import OrchestratorDep
from iris.application.api.models.stats import HealthResponse, ProviderStatus

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health(orchestrator: OrchestratorDep):
    summary = orchestrator.get_system_health()
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        upstreams=orchestrator.get_health(),
        **summary,
    )


@router.get("/providers", response_model=list[ProviderStatus])
async def providers(orchestrator: OrchestratorDep):
    health = orchestrator.get_health()
    statuses = []
    for upstream in orchestrator.registry.descriptors():
        view = upstream.public_view()
        live = health[upstream.id]
        statuses.append(ProviderStatus(
            id=view["id"],
            name=view["name"],
            kind=view["kind"],
            model=view["model"],
            priority=view["priority"],
            max_concurrency=view["max_concurrency"],
            capabilities=view["capabilities"],
            enabled=view["enabled"],
            score=live["score"],
            status=live["status"],
            state=live["state"],
            load=live["load"],
            in_flight=live["in_flight"],
            available=orchestrator.selector.is_eligible(upstream.id),
        ))
    return statuses
