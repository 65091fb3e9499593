"""System metrics probe for CPU and memory usage.

This module provides background sampling of host CPU and RAM utilisation and
publishes the latest reading to a MetricsRegistry as provider metrics. The
probe is constructed explicitly and handed to whatever registers its
metrics; readers can be injected so tests never touch the real OS counters.
"""

import threading
from typing import Callable, List, Optional, Sequence

from livemetrics.core.config import settings
from livemetrics.core.logging_config import get_logger
from livemetrics.services.metrics.registry import MetricsRegistry

logger = get_logger(__name__)


def _psutil_cpu_percent() -> float:
    # Lazy import psutil to avoid hard dependency at module load
    import psutil
    return psutil.cpu_percent(interval=None)


def _psutil_cpu_per_core() -> List[float]:
    import psutil
    return psutil.cpu_percent(interval=None, percpu=True)


def _psutil_memory_percent() -> float:
    import psutil
    return psutil.virtual_memory().percent


class HardwareProbe:
    """Background sampler of host CPU and RAM usage in percent."""

    def __init__(
        self,
        cpu_reader: Optional[Callable[[], float]] = None,
        memory_reader: Optional[Callable[[], float]] = None,
        core_reader: Optional[Callable[[], Sequence[float]]] = None,
        interval: Optional[float] = None,
    ):
        """
        Initialize the probe without starting it.

        Args:
            cpu_reader: Returns overall CPU usage in percent, psutil by default
            memory_reader: Returns RAM usage in percent, psutil by default
            core_reader: Returns usage of every logical core in percent, psutil by default
            interval: Seconds between samples, defaults to HARDWARE_PROBE_INTERVAL_MS
        """
        self._cpu_reader = cpu_reader or _psutil_cpu_percent
        self._memory_reader = memory_reader or _psutil_memory_percent
        self._core_reader = core_reader or _psutil_cpu_per_core
        self.interval = settings.HARDWARE_PROBE_INTERVAL_MS / 1000.0 if interval is None else interval

        self._lock = threading.Lock()
        self._cpu_percent = 0.0
        self._memory_percent = 0.0
        self._cpu_per_core: List[float] = []

        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def cpu_percent(self) -> float:
        with self._lock:
            return self._cpu_percent

    @property
    def cpu_per_core(self) -> List[float]:
        """Usage of each logical core in percent, empty before the first sample."""
        with self._lock:
            return list(self._cpu_per_core)

    @property
    def memory_percent(self) -> float:
        with self._lock:
            return self._memory_percent

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sample_once(self) -> None:
        """Read all counters and store them as the latest sample."""
        cpu_percent = float(self._cpu_reader())
        cpu_per_core = [float(core) for core in self._core_reader()]
        memory_percent = float(self._memory_reader())

        with self._lock:
            self._cpu_percent = cpu_percent
            self._cpu_per_core = cpu_per_core
            self._memory_percent = memory_percent

        logger.debug(f"System metrics: CPU={cpu_percent:.1f}%, Memory={memory_percent:.1f}%")

    def _probe_loop(self, stop_event: threading.Event) -> None:
        """Background loop that samples until stop_event is set."""
        logger.info(f"Hardware probe started every {self.interval * 1000:.0f} ms")

        while not stop_event.wait(self.interval):
            try:
                self.sample_once()
            except ImportError:
                logger.warning("psutil not available - hardware metrics disabled")
                break
            except Exception as e:
                logger.error(f"Error collecting hardware metrics: {e}")

        logger.info("Hardware probe stopped")

    def start(self) -> None:
        """Take a first sample and start the background sampling thread."""
        if self.running:
            logger.warning("Hardware probe already running")
            return

        try:
            self.sample_once()
        except ImportError:
            logger.warning("psutil not available - hardware metrics disabled")
            return
        except Exception as e:
            logger.error(f"Error collecting hardware metrics: {e}")

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._probe_loop,
            args=(self._stop_event,),
            name="hardware-probe",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the background sampling thread."""
        if self._stop_event:
            self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=max(1.0, 2 * self.interval))

        self._thread = None
        self._stop_event = None
        logger.info("Hardware probe stop requested")

    def register(
        self,
        registry: MetricsRegistry,
        cpu_id: str = "CPU",
        ram_id: str = "RAM",
        cores_id: Optional[str] = None,
    ) -> None:
        """Publish the latest readings as string provider metrics, e.g. "12%".

        When cores_id is given, per-core usage is published too, e.g. "10% 55% 3% 8%".
        """
        registry.add_provider(cpu_id, lambda: f"{round(self.cpu_percent)}%", metric_type=str)
        registry.add_provider(ram_id, lambda: f"{round(self.memory_percent)}%", metric_type=str)
        if cores_id is not None:
            registry.add_provider(
                cores_id,
                lambda: " ".join(f"{round(core)}%" for core in self.cpu_per_core),
                metric_type=str,
            )
