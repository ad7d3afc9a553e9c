"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest

# Add project root and the tests directory to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from test_fixtures import FakeClock, ScriptedProvider, SleepRecorder, make_settings, make_upstream  # noqa: E402

from iris.core.config.constants import UpstreamKind  # noqa: E402
from iris.core.logging import clear_request_id  # noqa: E402
from iris.core.resilience.upstream_registry import UpstreamRegistry  # noqa: E402
from iris.infrastructure.monitoring.metrics_collector import MetricsCollector  # noqa: E402
from iris.orchestration.orchestrator import Orchestrator  # noqa: E402
from iris.providers.base_provider import ProviderFactory  # noqa: E402

# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Manually advanced clock shared by every component under test."""
    return FakeClock()


@pytest.fixture
def sleeps():
    """Backoff sleep replacement; the requested delays end up in sleeps.delays."""
    return SleepRecorder()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def upstreams():
    """Three equal upstreams in configuration order a, b, c."""
    return [make_upstream("a"), make_upstream("b"), make_upstream("c")]


@pytest.fixture
def registry(upstreams):
    return UpstreamRegistry(upstreams, window_size=50)


@pytest.fixture(autouse=True)
def reset_request_id():
    yield
    clear_request_id()


# ============================================================================
# Orchestrator Fixtures
# ============================================================================


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def build_orchestrator(clock, sleeps):
    """
    Factory for orchestrators wired to a ScriptedProvider and the fake clock.

    Usage:
        orchestrator = build_orchestrator([make_upstream("a")], provider, CACHE_ENABLED=False)
    """

    def _build(upstreams=None, provider=None, use_clock=True, **overrides) -> Orchestrator:
        factory = ProviderFactory()
        factory.register_instance(UpstreamKind.FAKE, provider or ScriptedProvider())
        return Orchestrator(
            make_settings(**overrides),
            factory,
            upstreams if upstreams is not None else [make_upstream("a"), make_upstream("b")],
            clock=clock if use_clock else None,
            sleep=sleeps,
            metrics=MetricsCollector(),
        )

    return _build
