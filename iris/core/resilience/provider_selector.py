"""
Provider Selector

Picks the upstream for a query from live health, static priority and current
load.

    score = health_weight * health + priority_weight * priority + load_weight * (1 - load)

    health    0-100 from the HealthTracker
    priority  static weight from the upstream descriptor
    load      in_flight / max_concurrency, in [0, 1]

Candidates are enabled upstreams that serve the task type, whose breaker
currently admits traffic, and whose load is below 1. Ties go to the lower
load, then to configuration order. Selection only reads state; it never
claims a breaker trial.

Author: Platform Engineering
Date: 2026-02-15
"""

from collections.abc import Collection
from dataclasses import dataclass

from iris.core.config.constants import Stage
from iris.core.logging import get_logger
from iris.core.resilience.circuit_breaker import CircuitBreakerManager
from iris.core.resilience.connection_pool_manager import ConnectionPoolManager
from iris.core.resilience.health_tracker import HealthTracker
from iris.core.resilience.upstream_registry import UpstreamRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    upstream_id: str
    score: float
    health: float
    priority: float
    load: float


class ProviderSelector:
    """
    Health-, priority- and load-aware upstream selection.

    Example:
        selector = ProviderSelector(registry, tracker, breakers, pool)
        upstream_id = selector.select("code")  # None when nothing is available
    """

    def __init__(
        self,
        registry: UpstreamRegistry,
        health: HealthTracker,
        breakers: CircuitBreakerManager,
        pool: ConnectionPoolManager,
        health_weight: float = 0.6,
        priority_weight: float = 25.0,
        load_weight: float = 15.0,
    ):
        self.registry = registry
        self.health = health
        self.breakers = breakers
        self.pool = pool
        self.health_weight = health_weight
        self.priority_weight = priority_weight
        self.load_weight = load_weight

    @classmethod
    def from_settings(cls, registry, health, breakers, pool, settings) -> "ProviderSelector":
        selector = settings.selector
        return cls(
            registry,
            health,
            breakers,
            pool,
            health_weight=selector.SELECTOR_HEALTH_WEIGHT,
            priority_weight=selector.SELECTOR_PRIORITY_WEIGHT,
            load_weight=selector.SELECTOR_LOAD_WEIGHT,
        )

    def load(self, upstream_id: str) -> float:
        upstream = self.registry.get(upstream_id)
        if upstream is None:
            return 1.0
        return min(1.0, self.pool.in_flight(upstream_id) / upstream.max_concurrency)

    def is_eligible(self, upstream_id: str, task_type: str | None = None) -> bool:
        upstream = self.registry.get(upstream_id)
        return (
            upstream is not None
            and upstream.enabled
            and upstream.supports(task_type)
            and self.breakers.is_available(upstream_id)
            and self.load(upstream_id) < 1.0
        )

    def rank(self, task_type: str | None = None, exclude: Collection[str] = ()) -> list[Candidate]:
        """Eligible upstreams, best first."""
        candidates = []
        for upstream in self.registry.descriptors():
            if upstream.id in exclude or not self.is_eligible(upstream.id, task_type):
                continue
            health = self.health.score(upstream.id)
            load = self.load(upstream.id)
            score = (
                self.health_weight * health
                + self.priority_weight * upstream.priority
                + self.load_weight * (1.0 - load)
            )
            candidates.append(Candidate(upstream.id, score, health, upstream.priority, load))

        candidates.sort(key=lambda c: (-c.score, c.load, self.registry.position(c.upstream_id)))
        return candidates

    def select(self, task_type: str | None = None, exclude: Collection[str] = ()) -> str | None:
        """Best upstream for the task type, or None when no backend is available."""
        ranked = self.rank(task_type, exclude)
        if not ranked:
            logger.warning(
                "No upstream available",
                stage=Stage.SELECT,
                task_type=task_type,
                excluded=sorted(exclude),
            )
            return None

        best = ranked[0]
        logger.debug(
            "Upstream selected",
            stage=Stage.SELECT,
            upstream=best.upstream_id,
            score=round(best.score, 2),
            health=round(best.health, 2),
            load=round(best.load, 3),
            candidates=len(ranked),
        )
        return best.upstream_id
