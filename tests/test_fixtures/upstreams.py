"""
Upstream and settings builders for tests.
"""

from iris.core.config.constants import UpstreamKind
from iris.core.config.settings import Settings
from iris.core.config.upstreams import UpstreamDescriptor

TEST_SETTINGS = {
    "OLLAMA_ENABLED": False,
    "USE_FAKE_LLM": True,
    "POOL_MAX_RETRIES": 2,
    "POOL_RETRY_BASE_DELAY_MS": 100,
    "POOL_RETRY_MAX_DELAY_MS": 1000,
    "CB_FAILURE_THRESHOLD": 3,
    "CB_COOLDOWN_MS": 60000,
    "LOG_FORMAT": "console",
    "ENVIRONMENT": "development",
}


def make_settings(**overrides) -> Settings:
    """Settings with test-friendly defaults; keyword arguments override them."""
    return Settings(**{**TEST_SETTINGS, **overrides})


def make_upstream(upstream_id: str, **fields) -> UpstreamDescriptor:
    """A fake-kind upstream; any descriptor field can be overridden."""
    fields.setdefault("kind", UpstreamKind.FAKE)
    fields.setdefault("model", f"{upstream_id}-model")
    fields.setdefault("priority", 1.0)
    return UpstreamDescriptor(id=upstream_id, **fields)
