import threading
import time

import pytest

from livemetrics.services.metrics import Dashboard, MetricsRegistry, ScreenBuffer


@pytest.fixture
def registry():
    return MetricsRegistry()


@pytest.fixture
def screen():
    return ScreenBuffer()


@pytest.fixture
def dashboard(registry, screen):
    board = Dashboard(registry, terminal=screen, updates_per_second=100, prefix="P\n", suffix="S\n")
    yield board
    board.set_enabled(False)


def _wait_for(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout elapses."""
    return _wait_for


@pytest.fixture
def no_leaked_threads():
    """Fail the test if it leaves dashboard or probe threads running."""
    yield
    names = {t.name for t in threading.enumerate()}
    assert "dashboard-renderer" not in names
    assert "hardware-probe" not in names
