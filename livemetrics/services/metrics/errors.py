"""Exception hierarchy for the metrics registry and dashboard.

Each error also derives from the closest builtin so callers that only know
about ValueError / LookupError / RuntimeError keep working.
"""

from typing import Optional


class MetricsError(Exception):
    """Base class for all registry and dashboard errors."""

    def __init__(self, message: str, metric_id: Optional[str] = None):
        super().__init__(message)
        self.metric_id = metric_id


class InvalidArgumentError(MetricsError, ValueError):
    """Malformed identifier, or a missing value, provider or transform."""


class AlreadyExistsError(MetricsError, ValueError):
    """add() called with an identifier that is already registered."""


class MetricNotFoundError(MetricsError, LookupError):
    """Identifier is not registered."""


class UnresolvableError(MetricsError, TypeError):
    """Stored value has the wrong type, or its provider raised."""


class ConflictError(MetricsError, RuntimeError):
    """Optimistic update lost the race against another writer."""


class InvalidStateError(MetricsError, RuntimeError):
    """Operation not allowed in the current dashboard state."""
