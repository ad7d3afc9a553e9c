"""
Health Tracker

Turns the rolling window of invocation samples kept per upstream into a
health score in [0, 100] consumed by the provider selector.

Scoring:
    score = 100 * (w_success * success_ratio + w_latency * latency_score) / (w_success + w_latency)

    latency_score = 1 - mean(penalty)
        failed sample      -> penalty 1
        successful sample  -> penalty min(1, latency / ceiling)
        latency outlier    -> penalty * anomaly_multiplier (capped at 1)

A latency outlier is a successful sample more than `anomaly_sigma` standard
deviations above the mean latency of the window. Outliers hurt the score
more than their raw latency alone would, so an upstream that is fast on
average but stalls occasionally ranks below a consistently fast one.

An upstream with no samples (or one the registry does not know) gets the
neutral score, so new backends are neither favored nor starved.

Author: Platform Engineering
Date: 2026-02-13
"""

import statistics
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

from iris.core.config.constants import HEALTH_STATUS_HEALTHY, HEALTH_STATUS_WARNING, Stage
from iris.core.logging import get_logger
from iris.core.resilience.upstream_registry import HealthSample, UpstreamRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time view of one upstream's health."""

    upstream_id: str
    score: float
    status: str
    sample_count: int
    success_rate: float
    mean_latency_ms: float
    total_requests: int
    total_failures: int

    def to_dict(self) -> dict:
        return asdict(self)


def health_status(score: float) -> str:
    """Map a score to its status band."""
    if score > HEALTH_STATUS_HEALTHY:
        return "healthy"
    if score > HEALTH_STATUS_WARNING:
        return "warning"
    return "critical"


class HealthTracker:
    """
    Records invocation outcomes and computes per-upstream health scores.

    Example:
        tracker = HealthTracker(registry)
        tracker.record("groq", latency_ms=420.0, success=True)
        tracker.score("groq")  # -> 97.5
    """

    def __init__(
        self,
        registry: UpstreamRegistry,
        success_weight: float = 0.7,
        latency_weight: float = 0.3,
        latency_ceiling_ms: float = 5000.0,
        anomaly_sigma: float = 2.0,
        anomaly_multiplier: float = 3.0,
        neutral_score: float = 75.0,
        clock: Callable[[], float] | None = None,
    ):
        self.registry = registry
        self.success_weight = success_weight
        self.latency_weight = latency_weight
        self.latency_ceiling_ms = latency_ceiling_ms
        self.anomaly_sigma = anomaly_sigma
        self.anomaly_multiplier = anomaly_multiplier
        self.neutral_score = neutral_score
        self._clock = clock or time.monotonic

    @classmethod
    def from_settings(cls, registry: UpstreamRegistry, settings, clock=None) -> "HealthTracker":
        health = settings.health
        return cls(
            registry,
            success_weight=health.HEALTH_SUCCESS_WEIGHT,
            latency_weight=health.HEALTH_LATENCY_WEIGHT,
            latency_ceiling_ms=health.HEALTH_LATENCY_CEILING_MS,
            anomaly_sigma=health.HEALTH_ANOMALY_SIGMA,
            anomaly_multiplier=health.HEALTH_ANOMALY_MULTIPLIER,
            neutral_score=health.HEALTH_NEUTRAL_SCORE,
            clock=clock,
        )

    def record(self, upstream_id: str, latency_ms: float, success: bool) -> None:
        """Append one sample, evicting the oldest when the window is full."""
        record = self.registry.health_record(upstream_id)
        if record is None:
            logger.debug("Ignoring sample for unknown upstream", upstream=upstream_id, stage=Stage.HEALTH)
            return
        record.append(HealthSample(self._clock(), max(0.0, float(latency_ms)), bool(success)))

    def score(self, upstream_id: str) -> float:
        """Health score in [0, 100]; neutral when nothing is known."""
        record = self.registry.health_record(upstream_id)
        if record is None:
            return self.neutral_score
        return self._score_samples(record.snapshot())

    def _score_samples(self, samples: list[HealthSample]) -> float:
        if not samples:
            return self.neutral_score

        success_ratio = sum(1 for s in samples if s.success) / len(samples)
        latency_score = 1.0 - statistics.fmean(self._penalties(samples))

        total_weight = self.success_weight + self.latency_weight
        raw = (self.success_weight * success_ratio + self.latency_weight * latency_score) / total_weight
        return min(100.0, max(0.0, 100.0 * raw))

    def _penalties(self, samples: list[HealthSample]) -> list[float]:
        latencies = [s.latency_ms for s in samples if s.success]
        mean = statistics.fmean(latencies) if latencies else 0.0
        stdev = statistics.pstdev(latencies) if len(latencies) >= 2 else 0.0

        penalties = []
        for sample in samples:
            if not sample.success:
                penalties.append(1.0)
                continue
            penalty = min(1.0, sample.latency_ms / self.latency_ceiling_ms)
            if stdev > 0 and (sample.latency_ms - mean) > self.anomaly_sigma * stdev:
                penalty = min(1.0, penalty * self.anomaly_multiplier)
            penalties.append(penalty)
        return penalties

    def mean_latency(self, upstream_id: str) -> float:
        """Mean latency of successful samples in the window (0.0 if none)."""
        record = self.registry.health_record(upstream_id)
        if record is None:
            return 0.0
        latencies = [s.latency_ms for s in record.snapshot() if s.success]
        return statistics.fmean(latencies) if latencies else 0.0

    def snapshot(self, upstream_id: str) -> HealthSnapshot:
        record = self.registry.health_record(upstream_id)
        samples = record.snapshot() if record is not None else []
        score = self._score_samples(samples)
        successes = [s for s in samples if s.success]
        return HealthSnapshot(
            upstream_id=upstream_id,
            score=round(score, 2),
            status=health_status(score),
            sample_count=len(samples),
            success_rate=round(100.0 * len(successes) / len(samples), 2) if samples else 100.0,
            mean_latency_ms=round(statistics.fmean([s.latency_ms for s in successes]), 2) if successes else 0.0,
            total_requests=record.total_requests if record is not None else 0,
            total_failures=record.total_failures if record is not None else 0,
        )

    def report(self) -> dict:
        """
        Health of every configured upstream plus overall system health.

        Returns:
            {"upstreams": {id: snapshot_dict}, "system_health": float}
        """
        snapshots = {u.id: self.snapshot(u.id) for u in self.registry.descriptors()}
        system_health = (
            statistics.fmean(s.score for s in snapshots.values()) if snapshots else 0.0
        )
        return {
            "upstreams": {uid: snap.to_dict() for uid, snap in snapshots.items()},
            "system_health": round(system_health, 2),
        }

    def reset(self, upstream_id: str | None = None) -> None:
        ids = [upstream_id] if upstream_id else self.registry.ids()
        for uid in ids:
            record = self.registry.health_record(uid)
            if record is not None:
                record.clear()
