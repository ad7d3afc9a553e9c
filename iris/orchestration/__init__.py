"""
Query orchestration.

- orchestrator.py: Orchestrator, the rate-check -> cache -> select -> pool -> invoke pipeline
"""

from .orchestrator import Orchestrator

__all__ = ["Orchestrator"]
