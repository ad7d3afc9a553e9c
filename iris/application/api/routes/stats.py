"""
Statistics Routes
=================

Operational endpoints for dashboards and debugging:

    GET    /cache-stats        response cache hits, misses, size
    DELETE /cache              drop every cached response
    GET    /pool-stats         active / queued slots, retries, success rate
    GET    /rate-limit-stats   tracked clients and rejections
    GET    /performance-stats  query totals, cache hit rate, average response time
    GET    /config             effective configuration (no secrets)
    GET    /metrics            Prometheus exposition format
"""

from fastapi import APIRouter, Response

from iris.application.api.dependencies import OrchestratorDep
from iris.application.api.models.stats import CacheClearResponse
from iris.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Statistics"])


@router.get("/cache-stats")
async def cache_stats(orchestrator: OrchestratorDep) -> dict:
    return orchestrator.get_cache_stats()


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(orchestrator: OrchestratorDep):
    cleared = await orchestrator.cache.clear()
    logger.info("Response cache cleared via API", cleared=cleared)
    return CacheClearResponse(cleared=cleared)


@router.get("/pool-stats")
async def pool_stats(orchestrator: OrchestratorDep) -> dict:
    return orchestrator.get_pool_stats()


@router.get("/rate-limit-stats")
async def rate_limit_stats(orchestrator: OrchestratorDep) -> dict:
    return orchestrator.get_rate_limit_stats()


@router.get("/performance-stats")
async def performance_stats(orchestrator: OrchestratorDep) -> dict:
    return orchestrator.get_performance_stats()


@router.get("/config")
async def config(orchestrator: OrchestratorDep) -> dict:
    return orchestrator.describe_config()


@router.get("/metrics")
async def metrics(orchestrator: OrchestratorDep) -> Response:
    orchestrator.metrics.set_pool_occupancy(orchestrator.pool.active, orchestrator.pool.queued)
    return Response(
        content=orchestrator.metrics.get_prometheus_metrics(),
        media_type=orchestrator.metrics.get_content_type(),
    )
