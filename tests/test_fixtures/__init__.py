"""
Reusable test doubles.

- clock.py: FakeClock, a manually advanced monotonic clock
- providers.py: ScriptedProvider, an adapter whose outcomes are scripted per upstream
- upstreams.py: make_upstream / make_settings builders
"""

from .clock import FakeClock, SleepRecorder
from .providers import ScriptedProvider
from .upstreams import make_settings, make_upstream

__all__ = ["FakeClock", "SleepRecorder", "ScriptedProvider", "make_settings", "make_upstream"]
