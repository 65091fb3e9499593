"""
Live Metrics Demo

Registers a handful of metrics, a hardware probe and a runtime aggregator,
then renders them on a live terminal dashboard until interrupted.

Environment Variables:
    DASHBOARD_UPS: Dashboard frame rate in updates per second (default: 32)
    HARDWARE_PROBE_INTERVAL_MS: CPU/RAM sampling interval (default: 300)
    LOG_LEVEL: Logging level (default: INFO, DEBUG when DEBUG=true)
    LOG_FILE: Write logs to this rotating file instead of only stderr
    DEBUG: Enable debug logging (default: false)

CLI Usage:
    python main.py

    # Slower dashboard, logs kept out of the way in a file
    DASHBOARD_UPS=4 LOG_FILE=logs/livemetrics.log python main.py
"""

import random
import time

from livemetrics.core.config import settings
from livemetrics.core.logging_config import configure_logging, get_logger
from livemetrics.services.hardware import HardwareProbe
from livemetrics.services.metrics import ConflictError, Dashboard, MetricsRegistry

logger = get_logger("main")


def _simulated_work() -> None:
    time.sleep(random.uniform(0.05, 0.25))


def main() -> None:
    configure_logging()
    logger.info(f"Starting {settings.PROJECT_NAME} {settings.VERSION}")

    registry = MetricsRegistry()

    probe = HardwareProbe()
    probe.register(registry, cores_id="CPUCores")
    probe.start()

    started = time.monotonic()
    registry.add("Status", "warming up")
    registry.add("Iterations", 0, metric_type=int)
    registry.add_provider("Uptime", lambda: f"{time.monotonic() - started:.1f}s")
    registry.add("Secret", "not rendered", hidden=True)

    runtime_id = registry.measure_and_register(_simulated_work)

    dashboard = Dashboard(registry)
    dashboard.set_enabled(True)

    try:
        registry.update("Status", "running")
        while True:
            registry.measure_and_record(runtime_id, _simulated_work)
            try:
                registry.update_with("Iterations", lambda i: i + 1)
            except ConflictError:
                logger.debug("Iteration counter update conflicted, skipping")
    except KeyboardInterrupt:
        pass
    finally:
        dashboard.set_enabled(False)
        probe.stop()

    print(dashboard.snapshot())


if __name__ == "__main__":
    main()
