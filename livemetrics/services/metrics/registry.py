"""MetricsRegistry - Thread-safe in-memory store of named metrics.

This module provides the core data structures for registering metrics either
as fixed values or as zero-argument providers, resolving them on demand and
replacing them through a single-attempt optimistic update protocol.

Each identifier maps to exactly one immutable MetricRecord holding both the
representation and the visibility of the metric. Updates swap the whole
record, and a swap only succeeds if the record is still the one the updater
read. A losing updater gets ConflictError and must retry on its own.
"""

import itertools
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from livemetrics.core.logging_config import get_logger
from .errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidArgumentError,
    MetricNotFoundError,
    UnresolvableError,
)
from .identifiers import is_valid_identifier, validate_identifier
from .timing import TimingSampleAggregator, measure

if TYPE_CHECKING:
    from .models import RegistrySnapshotModel

logger = get_logger(__name__)

RUNTIME_ID_PREFIX = "RuntimePerformanceInformation_"


class MetricKind(str, Enum):
    """How a metric produces its value."""
    VALUE = "value"
    PROVIDER = "provider"


@dataclass(frozen=True, eq=False)
class MetricRecord:
    """Representation and visibility of one metric.

    Records are immutable and compared by identity, which is what the
    optimistic update checks against.
    """
    kind: MetricKind
    payload: Any
    visible: bool = True
    metric_type: Optional[type] = None

    @property
    def is_provider(self) -> bool:
        return self.kind is MetricKind.PROVIDER


class MetricsRegistry:
    """Registry of named metrics shared between producers and the dashboard.

    The internal lock only guards dictionary reads and swaps. Providers and
    update transforms always run outside of it, so a slow provider stalls its
    caller but never other writers.
    """

    def __init__(self):
        # Metric records keyed by identifier
        self._metrics: Dict[str, MetricRecord] = {}
        self._lock = threading.Lock()

        # Dashboard dirty flag, starts dirty so the first frame is a full repaint
        self._dirty = True
        self._dirty_lock = threading.Lock()

        # Suffix source for auto-generated runtime aggregator ids
        self._runtime_counter = itertools.count(1)
        self._counter_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, metric_id: str, value: Any, hidden: bool = False, metric_type: Optional[type] = None) -> None:
        """Register a metric with a fixed value.

        Args:
            metric_id: Unique identifier
            value: Initial value, must not be None
            hidden: Exclude the metric from dashboard output
            metric_type: Optional declared type, enforced on every write

        Raises:
            InvalidArgumentError: Invalid identifier, None value or type mismatch
            AlreadyExistsError: Identifier is already registered
        """
        validate_identifier(metric_id)
        if value is None:
            raise InvalidArgumentError(f"Value for '{metric_id}' must not be None", metric_id)
        self._check_declared_type(metric_id, value, metric_type)

        self._insert(metric_id, MetricRecord(MetricKind.VALUE, value, not hidden, metric_type))

    def add_provider(
        self,
        metric_id: str,
        provider: Callable[[], Any],
        hidden: bool = False,
        metric_type: Optional[type] = None,
    ) -> None:
        """Register a metric whose value is produced by calling provider().

        The provider is invoked on every get() and every dashboard frame.

        Raises:
            InvalidArgumentError: Invalid identifier or provider not callable
            AlreadyExistsError: Identifier is already registered
        """
        validate_identifier(metric_id)
        if provider is None or not callable(provider):
            raise InvalidArgumentError(f"Provider for '{metric_id}' must be callable", metric_id)

        self._insert(metric_id, MetricRecord(MetricKind.PROVIDER, provider, not hidden, metric_type))

    def _insert(self, metric_id: str, record: MetricRecord) -> None:
        with self._lock:
            if metric_id in self._metrics:
                raise AlreadyExistsError(
                    f"Metric '{metric_id}' already exists, use update() to change its definition",
                    metric_id,
                )
            self._metrics[metric_id] = record

        if record.visible:
            self.mark_dirty()
        logger.debug(f"Added {record.kind.value} metric '{metric_id}' (visible={record.visible})")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, metric_id: str, expected_type: Optional[type] = None) -> Any:
        """Return the current value of a metric, invoking its provider if any.

        Args:
            metric_id: Identifier to look up
            expected_type: Optional type the resolved value must be an instance of

        Raises:
            InvalidArgumentError: Invalid identifier
            MetricNotFoundError: Identifier is not registered
            UnresolvableError: Provider raised, or the value has the wrong type
        """
        record = self._read(metric_id)
        value = self.resolve_record(metric_id, record)

        if expected_type is not None and not isinstance(value, expected_type):
            raise UnresolvableError(
                f"Metric '{metric_id}' is {type(value).__name__}, expected {expected_type.__name__}",
                metric_id,
            )
        return value

    def exists(self, metric_id: str) -> bool:
        """Check presence without resolving providers.

        Raises:
            InvalidArgumentError: Invalid identifier
        """
        validate_identifier(metric_id)
        with self._lock:
            return metric_id in self._metrics

    def resolve_record(self, metric_id: str, record: MetricRecord) -> Any:
        """Resolve a record previously read from this registry.

        Raises:
            UnresolvableError: Provider raised or returned an undeclared type
        """
        if not record.is_provider:
            return record.payload

        try:
            value = record.payload()
        except Exception as e:
            raise UnresolvableError(
                f"Provider for '{metric_id}' raised {type(e).__name__}: {e}", metric_id
            ) from e

        if record.metric_type is not None and not isinstance(value, record.metric_type):
            raise UnresolvableError(
                f"Provider for '{metric_id}' returned {type(value).__name__}, "
                f"declared {record.metric_type.__name__}",
                metric_id,
            )
        return value

    def visible_metrics(self) -> List[Tuple[str, MetricRecord]]:
        """Visible records in ascending identifier order."""
        with self._lock:
            items = [(metric_id, record) for metric_id, record in self._metrics.items() if record.visible]
        return sorted(items, key=lambda item: item[0])

    def metric_ids(self) -> List[str]:
        """All registered identifiers, hidden ones included, in ascending order."""
        with self._lock:
            return sorted(self._metrics)

    def _read(self, metric_id: str) -> MetricRecord:
        validate_identifier(metric_id)
        with self._lock:
            record = self._metrics.get(metric_id)
        if record is None:
            raise MetricNotFoundError(f"No metric registered under '{metric_id}'", metric_id)
        return record

    # ------------------------------------------------------------------
    # Optimistic updates
    # ------------------------------------------------------------------

    def update(self, metric_id: str, value: Any, hidden: Optional[bool] = None) -> None:
        """Replace the value of a metric in one compare-and-swap attempt.

        Args:
            metric_id: Identifier of an existing metric
            value: New value, must not be None
            hidden: New visibility, None keeps the current one

        Raises:
            MetricNotFoundError: Identifier is not registered
            InvalidArgumentError: None value or declared type mismatch
            ConflictError: Another writer replaced the metric concurrently
        """
        current = self._read(metric_id)
        if value is None:
            raise InvalidArgumentError(f"Value for '{metric_id}' must not be None", metric_id)
        self._check_declared_type(metric_id, value, current.metric_type)

        visible = current.visible if hidden is None else not hidden
        self._swap(metric_id, current, MetricRecord(MetricKind.VALUE, value, visible, current.metric_type))

    def update_with(
        self,
        metric_id: str,
        transform: Callable[[Any], Any],
        hidden: Optional[bool] = None,
    ) -> None:
        """Replace a metric with transform(current value) in one compare-and-swap attempt.

        A provider metric is resolved first and the result of the transform is
        stored as a fixed value. The transform runs without holding any lock.

        Raises:
            MetricNotFoundError: Identifier is not registered
            InvalidArgumentError: Transform not callable, returned None or a wrong type
            UnresolvableError: The current provider raised
            ConflictError: Another writer replaced the metric concurrently
        """
        if transform is None or not callable(transform):
            raise InvalidArgumentError(f"Transform for '{metric_id}' must be callable", metric_id)

        current = self._read(metric_id)
        new_value = transform(self.resolve_record(metric_id, current))
        if new_value is None:
            raise InvalidArgumentError(f"Transform for '{metric_id}' returned None", metric_id)
        self._check_declared_type(metric_id, new_value, current.metric_type)

        visible = current.visible if hidden is None else not hidden
        self._swap(metric_id, current, MetricRecord(MetricKind.VALUE, new_value, visible, current.metric_type))

    def update_provider(self, metric_id: str, provider: Callable[[], Any]) -> None:
        """Replace the representation of a metric with a provider, keeping visibility.

        Raises:
            MetricNotFoundError: Identifier is not registered
            InvalidArgumentError: Provider not callable
            ConflictError: Another writer replaced the metric concurrently
        """
        current = self._read(metric_id)
        if provider is None or not callable(provider):
            raise InvalidArgumentError(f"Provider for '{metric_id}' must be callable", metric_id)

        self._swap(
            metric_id,
            current,
            MetricRecord(MetricKind.PROVIDER, provider, current.visible, current.metric_type),
        )

    def _swap(self, metric_id: str, expected: MetricRecord, replacement: MetricRecord) -> None:
        with self._lock:
            if self._metrics.get(metric_id) is not expected:
                logger.debug(f"Update of '{metric_id}' lost against a concurrent writer")
                raise ConflictError(
                    f"Metric '{metric_id}' was modified concurrently, retry the update", metric_id
                )
            self._metrics[metric_id] = replacement

        # Visibility changes alter the dashboard layout
        if expected.visible != replacement.visible:
            self.mark_dirty()

    @staticmethod
    def _check_declared_type(metric_id: str, value: Any, metric_type: Optional[type]) -> None:
        if metric_type is not None and not isinstance(value, metric_type):
            raise InvalidArgumentError(
                f"Value for '{metric_id}' is {type(value).__name__}, declared {metric_type.__name__}",
                metric_id,
            )

    # ------------------------------------------------------------------
    # Dashboard dirty flag
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Request a full dashboard repaint on the next frame."""
        with self._dirty_lock:
            self._dirty = True

    def consume_dirty(self) -> bool:
        """Return the dirty flag and clear it in one step."""
        with self._dirty_lock:
            dirty = self._dirty
            self._dirty = False
            return dirty

    # ------------------------------------------------------------------
    # Runtime measurement
    # ------------------------------------------------------------------

    def measure_and_record(self, aggregator_id: str, action: Callable[[], Any]) -> int:
        """Time one run of action and record it in an existing aggregator.

        Args:
            aggregator_id: Identifier of a TimingSampleAggregator metric
            action: Zero-argument callable, invoked once synchronously

        Returns:
            Elapsed time in whole milliseconds

        Raises:
            MetricNotFoundError: Identifier is not registered
            UnresolvableError: The metric is not a TimingSampleAggregator
        """
        aggregator = self.get(aggregator_id, TimingSampleAggregator)
        elapsed_ms = measure(action)
        aggregator.add_result(elapsed_ms)
        logger.debug(f"Runtime of '{aggregator_id}': {elapsed_ms}ms")
        return elapsed_ms

    def measure_and_register(self, action: Callable[[], Any]) -> str:
        """Time one run of action into a new, visible aggregator.

        Returns:
            The generated identifier, usable with measure_and_record()
        """
        aggregator = TimingSampleAggregator()
        aggregator.add_result(measure(action))

        while True:
            with self._counter_lock:
                metric_id = f"{RUNTIME_ID_PREFIX}{next(self._runtime_counter)}"
            try:
                self.add(metric_id, aggregator)
            except AlreadyExistsError:
                # Taken by a caller-chosen id, move on to the next number
                continue
            return metric_id

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self) -> "RegistrySnapshotModel":
        """Serialize every metric, hidden ones included, into a RegistrySnapshotModel.

        Providers are resolved once each; a failing provider is reported in
        the error field instead of aborting the export.
        """
        # Import here to avoid circular imports
        from .models import MetricModel, RegistrySnapshotModel

        with self._lock:
            items = sorted(self._metrics.items(), key=lambda item: item[0])

        metrics = []
        for metric_id, record in items:
            value: Optional[str] = None
            error: Optional[str] = None
            try:
                value = str(self.resolve_record(metric_id, record))
            except UnresolvableError as e:
                error = str(e)

            metrics.append(
                MetricModel(
                    metric_id=metric_id,
                    kind=record.kind.value,
                    visible=record.visible,
                    metric_type=record.metric_type.__name__ if record.metric_type else None,
                    value=value,
                    error=error,
                )
            )

        return RegistrySnapshotModel(
            timestamp=time.time(),
            metrics=metrics,
            total_metrics=len(metrics),
            visible_metrics=len([m for m in metrics if m.visible]),
        )

    def __contains__(self, metric_id: object) -> bool:
        if not isinstance(metric_id, str) or not is_valid_identifier(metric_id):
            return False
        with self._lock:
            return metric_id in self._metrics

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)
