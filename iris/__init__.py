"""
IRIS: health-aware request orchestration in front of interchangeable
inference backends.
"""

__version__ = "1.0.0"
