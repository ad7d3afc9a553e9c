"""
Configuration Module

Centralized, type-safe configuration for the orchestrator.

Components:
-----------
- **settings.py**: Pydantic settings with environment variable loading
- **constants.py**: Enums (Stage, CircuitState, FailureKind) and fixed values
- **upstreams.py**: UpstreamDescriptor model
- **provider_registry.py**: Builds the upstream fleet and registers adapters

Environment Variables:
---------------------
```bash
# Upstreams (explicit JSON list, or derived from the keys below)
UPSTREAMS='[{"id": "groq", "kind": "openai", "endpoint": "https://api.groq.com/openai/v1",
             "model": "llama-3.1-8b-instant", "max_concurrency": 15, "priority": 3}]'
GROQ_API_KEY=gsk-...
GOOGLE_API_KEY=...
OLLAMA_BASE_URL=http://localhost:11434

# Resilience
CB_FAILURE_THRESHOLD=3
CB_COOLDOWN_MS=60000
POOL_MAX_CONNECTIONS=10
RATE_LIMIT_MAX_REQUESTS=100

# Logging
LOG_LEVEL=INFO
LOG_FORMAT=json
```

Testing:
-------
```python
from iris.core.config.settings import Settings

settings = Settings(POOL_MAX_CONNECTIONS=2, CB_COOLDOWN_MS=1000)
```
"""

from iris.core.config.constants import (
    AUTO_PROVIDER,
    DEFAULT_TASK_TYPE,
    CircuitState,
    FailureKind,
    Stage,
    UpstreamKind,
)
from iris.core.config.settings import Settings, get_settings, reload_settings
from iris.core.config.upstreams import UpstreamDescriptor

# NOTE: provider_registry is not imported here to avoid circular imports
# (it depends on iris.providers, which depends on this package).

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "UpstreamDescriptor",
    "Stage",
    "CircuitState",
    "FailureKind",
    "UpstreamKind",
    "AUTO_PROVIDER",
    "DEFAULT_TASK_TYPE",
]
