"""
Unit Tests for UpstreamRegistry

Tests descriptor bookkeeping, configuration order and state retention
across reconfiguration.
"""

import pytest

from iris.core.config.constants import CircuitState
from iris.core.exceptions import ConfigurationError
from iris.core.resilience.upstream_registry import HealthSample, UpstreamRegistry
from test_fixtures import make_upstream


@pytest.mark.unit
class TestUpstreamRegistry:
    def test_lookup_and_order(self, registry):
        assert registry.ids() == ["a", "b", "c"]
        assert registry.get("b").model == "b-model"
        assert registry.get("missing") is None
        assert registry.position("c") == 2
        assert registry.position("missing") == 3

    def test_container_protocol(self, registry):
        assert "a" in registry
        assert "z" not in registry
        assert len(registry) == 3
        assert [u.id for u in registry] == ["a", "b", "c"]

    def test_every_upstream_gets_state(self, registry):
        for upstream_id in registry.ids():
            assert len(registry.health_record(upstream_id)) == 0
            assert registry.breaker_state(upstream_id).state is CircuitState.CLOSED

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            UpstreamRegistry([make_upstream("a"), make_upstream("A")])
        assert exc_info.value.details["upstream"] == "a"

    def test_window_size_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            UpstreamRegistry([make_upstream("a")], window_size=0)

    def test_registries_are_isolated(self, upstreams):
        first = UpstreamRegistry(upstreams)
        second = UpstreamRegistry(upstreams)
        first.health_record("a").append(HealthSample(0.0, 10.0, False))

        assert len(first.health_record("a")) == 1
        assert len(second.health_record("a")) == 0

    def test_reconfigure_keeps_surviving_state(self, registry):
        registry.health_record("a").append(HealthSample(0.0, 10.0, True))
        registry.breaker_state("b").state = CircuitState.OPEN

        registry.reconfigure([make_upstream("a", priority=5.0), make_upstream("d")])

        assert registry.ids() == ["a", "d"]
        assert registry.get("a").priority == 5.0
        assert len(registry.health_record("a")) == 1
        assert registry.health_record("b") is None
        assert registry.breaker_state("b") is None
        assert registry.breaker_state("d").state is CircuitState.CLOSED

    def test_reconfigure_rejects_duplicates_without_changes(self, registry):
        with pytest.raises(ConfigurationError):
            registry.reconfigure([make_upstream("x"), make_upstream("x")])
        assert registry.ids() == ["a", "b", "c"]


@pytest.mark.unit
class TestHealthRecord:
    def test_window_is_bounded(self):
        registry = UpstreamRegistry([make_upstream("a")], window_size=2)
        record = registry.health_record("a")
        for i in range(5):
            record.append(HealthSample(float(i), 10.0, i % 2 == 0))

        assert [s.timestamp for s in record.snapshot()] == [3.0, 4.0]
        assert record.total_requests == 5
        assert record.total_failures == 2

    def test_clear_keeps_totals(self, registry):
        record = registry.health_record("a")
        record.append(HealthSample(0.0, 10.0, False))
        record.clear()

        assert len(record) == 0
        assert record.total_failures == 1
