"""Elapsed-time sample aggregation.

A TimingSampleAggregator collects whole-millisecond runtimes and derives
mean, population variance and standard deviation on every read. It is
normally stored as a plain value metric in a MetricsRegistry, which renders
it through __str__.
"""

import math
import threading
import time
from contextlib import contextmanager
from typing import Callable, Generator, List, Tuple

from .errors import InvalidArgumentError
from .models import TimingStatsModel


class TimingSampleAggregator:
    """Thread-safe, append-only collection of elapsed-time samples.

    Samples are never evicted; statistics are recomputed from the full
    sample list each time they are read.
    """

    def __init__(self):
        self._samples: List[int] = []
        self._lock = threading.Lock()

    def add_result(self, elapsed_ms: int) -> "TimingSampleAggregator":
        """Append one measurement.

        Returns self so the call can be used directly as an update transform.

        Args:
            elapsed_ms: Elapsed time in whole milliseconds (>= 0)

        Raises:
            InvalidArgumentError: If elapsed_ms is not a non-negative integer
        """
        if isinstance(elapsed_ms, bool) or not isinstance(elapsed_ms, int):
            raise InvalidArgumentError(f"Elapsed time must be an int, got {type(elapsed_ms).__name__}")
        if elapsed_ms < 0:
            raise InvalidArgumentError(f"Elapsed time must not be negative, got {elapsed_ms}")

        with self._lock:
            self._samples.append(elapsed_ms)
        return self

    @property
    def samples(self) -> Tuple[int, ...]:
        """Copy of all samples in insertion order."""
        with self._lock:
            return tuple(self._samples)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._samples)

    @property
    def total_ms(self) -> int:
        return sum(self.samples)

    @property
    def mean_ms(self) -> float:
        """Average runtime, 0.0 when no samples were recorded."""
        samples = self.samples
        if not samples:
            return 0.0
        return sum(samples) / len(samples)

    @property
    def variance(self) -> float:
        """Population variance (mean of squared deviations, divisor = n)."""
        return self._variance(self.samples)

    @property
    def std_deviation(self) -> float:
        return math.sqrt(self.variance)

    @staticmethod
    def _variance(samples: Tuple[int, ...]) -> float:
        if not samples:
            return 0.0
        mean = sum(samples) / len(samples)
        return sum((s - mean) ** 2 for s in samples) / len(samples)

    def stats(self) -> TimingStatsModel:
        """Compute all statistics from one consistent copy of the samples."""
        samples = self.samples
        total = sum(samples)
        mean = total / len(samples) if samples else 0.0
        variance = self._variance(samples)
        return TimingStatsModel(
            count=len(samples),
            total_ms=total,
            mean_ms=mean,
            variance=variance,
            std_deviation=math.sqrt(variance),
        )

    def __str__(self) -> str:
        stats = self.stats()
        return f"avg: {stats.mean_ms:.2f}ms; total: {stats.total_ms}ms; runs: {stats.count}"

    def __repr__(self) -> str:
        return f"TimingSampleAggregator(count={self.count})"


def measure(action: Callable[[], object]) -> int:
    """Run action once and return its wall-clock runtime in whole milliseconds.

    Args:
        action: Zero-argument callable to time

    Returns:
        Elapsed milliseconds, truncated
    """
    if action is None or not callable(action):
        raise InvalidArgumentError("Action must be a callable")

    t0 = time.monotonic_ns()
    action()
    return (time.monotonic_ns() - t0) // 1_000_000


@contextmanager
def timed(aggregator: TimingSampleAggregator) -> Generator[None, None, None]:
    """Context manager recording the runtime of its block into an aggregator.

    Usage example:
    ```python
    with timed(aggregator):
        run_expensive_step()
    ```

    The sample is recorded even when the block raises.
    """
    t0 = time.monotonic_ns()
    try:
        yield
    finally:
        aggregator.add_result((time.monotonic_ns() - t0) // 1_000_000)
