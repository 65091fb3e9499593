"""Pydantic V2 models for structured metrics exports.

These models describe what MetricsRegistry.export() and
TimingSampleAggregator.stats() hand out to callers that want data rather
than dashboard text (logging, tests, tooling).
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class MetricModel(BaseModel):
    """A single registered metric as seen at export time."""
    model_config = ConfigDict(from_attributes=True)

    metric_id: str
    kind: str
    visible: bool
    metric_type: Optional[str] = None
    value: Optional[str] = None
    error: Optional[str] = None


class RegistrySnapshotModel(BaseModel):
    """Root envelope for a registry export, metrics ordered by identifier."""
    model_config = ConfigDict(from_attributes=True)

    timestamp: float
    metrics: List[MetricModel]
    total_metrics: int
    visible_metrics: int


class TimingStatsModel(BaseModel):
    """Derived statistics of a TimingSampleAggregator."""
    model_config = ConfigDict(from_attributes=True)

    count: int
    total_ms: int
    mean_ms: float
    variance: float
    std_deviation: float
