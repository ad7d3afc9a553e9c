"""
Unit Tests for ProviderSelector

Health drives the choice; priority and load break near-ties; configuration
order breaks exact ties. Ineligible upstreams (disabled, open breaker,
saturated, wrong capability) are never returned.
"""

import pytest

from iris.core.resilience.circuit_breaker import CircuitBreakerManager
from iris.core.resilience.connection_pool_manager import ConnectionPoolManager
from iris.core.resilience.provider_selector import ProviderSelector
from iris.core.resilience.upstream_registry import UpstreamRegistry
from test_fixtures import make_upstream


class StubHealth:
    """Fixed health scores; unknown ids are neutral."""

    def __init__(self, scores=None):
        self.scores = dict(scores or {})

    def score(self, upstream_id):
        return self.scores.get(upstream_id, 75.0)


@pytest.fixture
def build_selector(clock):
    def _build(upstreams, scores=None):
        registry = UpstreamRegistry(upstreams)
        breakers = CircuitBreakerManager(registry, failure_threshold=3, cooldown_ms=60000, clock=clock)
        pool = ConnectionPoolManager(max_connections=50, clock=clock)
        return ProviderSelector(registry, StubHealth(scores), breakers, pool)

    return _build


@pytest.fixture
def abc_selector(build_selector):
    upstreams = [make_upstream("a"), make_upstream("b"), make_upstream("c")]
    return build_selector(upstreams, {"a": 70.0, "b": 90.0, "c": 40.0})


@pytest.mark.unit
class TestSelection:
    def test_healthiest_upstream_wins(self, abc_selector):
        assert abc_selector.select() == "b"

    def test_rank_orders_by_score(self, abc_selector):
        ranked = abc_selector.rank()
        assert [c.upstream_id for c in ranked] == ["b", "a", "c"]
        # 0.6 * 90 + 25 * 1 + 15 * (1 - 0)
        assert ranked[0].score == pytest.approx(94.0)

    def test_exclusion(self, abc_selector):
        assert abc_selector.select(exclude={"b"}) == "a"
        assert abc_selector.select(exclude={"a", "b", "c"}) is None

    def test_priority_breaks_equal_health(self, build_selector):
        selector = build_selector([make_upstream("a"), make_upstream("b", priority=2.0)])
        assert selector.select() == "b"

    def test_configuration_order_breaks_exact_ties(self, build_selector):
        selector = build_selector([make_upstream("x"), make_upstream("y"), make_upstream("z")])
        assert selector.select() == "x"

    @pytest.mark.asyncio
    async def test_lower_load_wins_equal_health(self, build_selector):
        selector = build_selector([make_upstream("a"), make_upstream("b")])
        slots = [await selector.pool.acquire("a") for _ in range(3)]
        assert selector.load("a") == pytest.approx(0.3)
        assert selector.select() == "b"
        for slot in slots:
            selector.pool.release(slot)

    def test_health_dominates_priority(self, build_selector):
        selector = build_selector(
            [make_upstream("a", priority=1.0), make_upstream("b", priority=2.0)],
            {"a": 100.0, "b": 40.0},
        )
        # a: 60 + 25 + 15 = 100, b: 24 + 50 + 15 = 89
        assert selector.select() == "a"


@pytest.mark.unit
class TestEligibility:
    def test_capability_filter(self, build_selector):
        selector = build_selector(
            [
                make_upstream("general", capabilities={"balanced"}),
                make_upstream("coder", capabilities={"code"}),
                make_upstream("any"),
            ],
            {"general": 99.0, "coder": 50.0, "any": 10.0},
        )
        assert selector.select("code") == "coder"
        assert selector.select("balanced") == "general"
        assert selector.select("vision") == "any"

    def test_disabled_upstream_never_selected(self, build_selector):
        selector = build_selector(
            [make_upstream("a", enabled=False), make_upstream("b")],
            {"a": 100.0, "b": 10.0},
        )
        assert selector.select() == "b"
        assert not selector.is_eligible("a")

    def test_open_breaker_excluded_until_cooldown(self, abc_selector, clock):
        for _ in range(3):
            abc_selector.breakers.on_result("b", False)
        assert abc_selector.select() == "a"

        clock.advance(60)
        assert abc_selector.select() == "b"

    def test_selection_never_claims_the_trial(self, abc_selector, clock):
        for _ in range(3):
            abc_selector.breakers.on_result("b", False)
        clock.advance(60)

        abc_selector.select()
        abc_selector.select()
        assert abc_selector.breakers.get_breaker("b").get_stats()["trial_in_flight"] is False

    @pytest.mark.asyncio
    async def test_saturated_upstream_skipped(self, build_selector):
        selector = build_selector(
            [make_upstream("a", max_concurrency=1), make_upstream("b")],
            {"a": 100.0, "b": 10.0},
        )
        slot = await selector.pool.acquire("a")
        assert selector.load("a") == 1.0
        assert selector.select() == "b"

        selector.pool.release(slot)
        assert selector.select() == "a"

    def test_unknown_upstream_is_not_eligible(self, abc_selector):
        assert abc_selector.load("ghost") == 1.0
        assert not abc_selector.is_eligible("ghost")

    def test_nothing_available(self, build_selector):
        selector = build_selector([make_upstream("a", enabled=False)])
        assert selector.select() is None


@pytest.mark.unit
class TestSelectorConfiguration:
    def test_from_settings_uses_configured_weights(self, registry, clock):
        from test_fixtures import make_settings

        breakers = CircuitBreakerManager(registry, clock=clock)
        pool = ConnectionPoolManager()
        selector = ProviderSelector.from_settings(
            registry, StubHealth(), breakers, pool,
            make_settings(SELECTOR_HEALTH_WEIGHT=1.0, SELECTOR_PRIORITY_WEIGHT=0.0, SELECTOR_LOAD_WEIGHT=0.0),
        )
        assert selector.rank()[0].score == pytest.approx(75.0)
