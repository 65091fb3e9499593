"""Metric registry, timing aggregation and terminal dashboard.

This module provides the core infrastructure for registering named metrics,
resolving them on demand and rendering them live in a terminal. All state is
session-only and kept in memory.
"""

from .registry import MetricsRegistry, MetricRecord, MetricKind
from .timing import TimingSampleAggregator, measure, timed
from .dashboard import Dashboard
from .terminal import TerminalSurface, RichTerminal, ScreenBuffer
from .identifiers import validate_identifier, is_valid_identifier
from .errors import (
    MetricsError,
    InvalidArgumentError,
    AlreadyExistsError,
    MetricNotFoundError,
    UnresolvableError,
    ConflictError,
    InvalidStateError,
)

__all__ = [
    "MetricsRegistry",
    "MetricRecord",
    "MetricKind",
    "TimingSampleAggregator",
    "measure",
    "timed",
    "Dashboard",
    "TerminalSurface",
    "RichTerminal",
    "ScreenBuffer",
    "validate_identifier",
    "is_valid_identifier",
    "MetricsError",
    "InvalidArgumentError",
    "AlreadyExistsError",
    "MetricNotFoundError",
    "UnresolvableError",
    "ConflictError",
    "InvalidStateError",
]
