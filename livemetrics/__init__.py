"""Named, typed in-process metrics with a live terminal dashboard."""

from livemetrics.services.metrics import (
    Dashboard,
    MetricsRegistry,
    TimingSampleAggregator,
)

__all__ = [
    "Dashboard",
    "MetricsRegistry",
    "TimingSampleAggregator",
]
