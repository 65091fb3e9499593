"""
Tests for the Dashboard renderer.

Frames are rendered into a ScreenBuffer, either by calling render_frame()
directly or by running the background loop at a high frame rate.
"""

import time
from unittest.mock import MagicMock

import pytest

from livemetrics.services.metrics.dashboard import Dashboard
from livemetrics.services.metrics.errors import InvalidArgumentError, InvalidStateError
from livemetrics.services.metrics.terminal import ScreenBuffer


def _populate(registry):
    registry.add("varString", "World!")
    registry.add("varInt", 3)
    registry.add("varDouble", 14, hidden=True)
    registry.add_provider("varStringFunc", lambda: "Hello!")
    registry.add_provider("varIntFunc", lambda: 1 + 3)


def test_snapshot_is_ordered_and_excludes_hidden(registry, dashboard):
    """Test the exact snapshot text: banners, identifier order, no hidden metrics."""
    _populate(registry)

    assert dashboard.snapshot() == (
        "P\n"
        "varInt: 3\n"
        "varIntFunc: 4\n"
        "varString: World!\n"
        "varStringFunc: Hello!\n"
        "S\n"
    )
    assert str(dashboard) == dashboard.snapshot()


def test_snapshot_independent_of_insertion_order():
    first = _registry_with(["b", "a", "c"])
    second = _registry_with(["c", "b", "a"])

    assert Dashboard(first, terminal=ScreenBuffer()).snapshot() == Dashboard(second, terminal=ScreenBuffer()).snapshot()


def _registry_with(names):
    from livemetrics.services.metrics.registry import MetricsRegistry

    registry = MetricsRegistry()
    for name in names:
        registry.add(name, name.upper())
    return registry


def test_default_banners_come_from_settings(registry):
    from livemetrics.core.config import settings

    board = Dashboard(registry, terminal=ScreenBuffer())

    assert board.prefix == settings.DASHBOARD_PREFIX
    assert board.suffix == settings.DASHBOARD_SUFFIX
    assert board.updates_per_second == settings.DASHBOARD_UPS


def test_full_repaint_matches_snapshot(registry, dashboard, screen):
    _populate(registry)

    dashboard.render_frame()

    assert screen.clear_count == 1
    assert screen.lines == dashboard.snapshot().splitlines()


def test_incremental_repaint_overwrites_value_in_place(registry, dashboard, screen):
    """Test that a shorter value is padded to erase stale characters."""
    registry.add("count", 1000)
    dashboard.render_frame()
    assert screen.lines == ["P", "count: 1000", "S"]

    registry.update("count", 7)
    dashboard.render_frame()

    # No clear, just an overwrite of the value field
    assert screen.clear_count == 1
    assert screen.lines == ["P", "count: 7   ", "S"]

    registry.update("count", 12)
    dashboard.render_frame()
    assert screen.lines[1].rstrip() == "count: 12"


def test_incremental_repaint_picks_up_provider_changes(registry, dashboard, screen):
    state = {"value": "a"}
    registry.add_provider("live", lambda: state["value"])
    dashboard.render_frame()

    state["value"] = "bcd"
    dashboard.render_frame()

    assert screen.clear_count == 1
    assert screen.lines[1] == "live: bcd"


def test_adding_visible_metric_forces_full_repaint(registry, dashboard, screen):
    registry.add("beta", 1)
    dashboard.render_frame()

    registry.add("alpha", 2)
    dashboard.render_frame()

    assert screen.clear_count == 2
    assert screen.lines == ["P", "alpha: 2", "beta: 1", "S"]


def test_adding_hidden_metric_keeps_incremental_repaint(registry, dashboard, screen):
    registry.add("beta", 1)
    dashboard.render_frame()

    registry.add("alpha", 2, hidden=True)
    dashboard.render_frame()

    assert screen.clear_count == 1
    assert screen.lines == ["P", "beta: 1", "S"]


def test_line_count_change_falls_back_to_full_repaint(registry, dashboard, screen):
    registry.add("text", "one line")
    dashboard.render_frame()

    registry.update("text", "two\nlines")
    dashboard.render_frame()

    assert screen.clear_count == 2
    assert screen.lines == ["P", "text: two", "lines", "S"]


def test_prefix_without_trailing_newline(registry, screen):
    board = Dashboard(registry, terminal=screen, prefix=">> ", suffix="")
    registry.add("value", 100)
    board.render_frame()
    assert screen.lines == [">> value: 100"]

    registry.update("value", 5)
    board.render_frame()
    assert screen.lines == [">> value: 5  "]


def test_wide_characters_are_measured_in_cells(registry, dashboard, screen):
    """Test that value columns and padding count terminal cells, not characters."""
    registry.add("数据", 1000)
    dashboard.render_frame()
    assert screen.lines == ["P", "数据: 1000", "S"]

    registry.update("数据", 7)
    dashboard.render_frame()

    assert screen.clear_count == 1
    assert screen.lines == ["P", "数据: 7   ", "S"]


def test_wide_value_is_padded_by_width(registry, dashboard, screen):
    registry.add("label", "日本語")
    dashboard.render_frame()

    registry.update("label", "ab")
    dashboard.render_frame()

    assert screen.lines[1] == "label: ab    "


class _FlakyScreen(ScreenBuffer):
    """ScreenBuffer whose next write fails when armed."""

    def __init__(self):
        super().__init__()
        self.fail_next_write = False

    def write(self, text):
        if self.fail_next_write:
            self.fail_next_write = False
            raise RuntimeError("terminal gone")
        super().write(text)


def test_failed_full_repaint_is_retried_on_next_frame(registry):
    screen = _FlakyScreen()
    board = Dashboard(registry, terminal=screen, prefix="P\n", suffix="S\n")
    registry.add("count", 1)
    board.render_frame()

    registry.mark_dirty()
    screen.fail_next_write = True
    with pytest.raises(RuntimeError):
        board.render_frame()

    board.render_frame()
    board.render_frame()

    assert screen.lines == ["P", "count: 1", "S"]
    assert screen.clear_count == 3


def test_failing_provider_renders_placeholder(registry, dashboard):
    def broken():
        raise ValueError("boom")

    registry.add_provider("broken", broken)

    assert "broken: <unresolvable: boom>\n" in dashboard.snapshot()


def test_invalid_frame_rate(registry):
    with pytest.raises(InvalidArgumentError):
        Dashboard(registry, terminal=ScreenBuffer(), updates_per_second=0)


def test_frame_interval(registry):
    board = Dashboard(registry, terminal=ScreenBuffer(), updates_per_second=32)
    assert board.frame_interval == pytest.approx(1 / 32)


def test_banners_immutable_while_running(dashboard, no_leaked_threads):
    """Test that prefix/suffix changes raise InvalidStateError only while running."""
    dashboard.set_enabled(True)
    assert dashboard.enabled is True

    with pytest.raises(InvalidStateError):
        dashboard.set_prefix("new\n")
    with pytest.raises(InvalidStateError):
        dashboard.suffix = "new\n"

    dashboard.set_enabled(False)
    assert dashboard.enabled is False

    dashboard.set_prefix("new prefix\n")
    dashboard.suffix = "new suffix\n"
    assert dashboard.prefix == "new prefix\n"
    assert dashboard.suffix == "new suffix\n"


def test_running_loop_renders_and_clears_on_stop(registry, dashboard, screen, wait_for, no_leaked_threads):
    """Test the background loop lifecycle end to end."""
    registry.add("first", 1)
    dashboard.set_enabled(True)

    assert wait_for(lambda: "first: 1" in screen.text)

    # Structural change while running
    registry.add("second", 2)
    assert wait_for(lambda: "second: 2" in screen.text)

    # Value-only change while running
    registry.update("first", 9)
    assert wait_for(lambda: "first: 9" in screen.text)

    dashboard.set_enabled(False)

    assert screen.lines == []
    assert screen.cursor_visible is True


def test_restart_after_stop(registry, dashboard, screen, wait_for, no_leaked_threads):
    registry.add("value", 1)

    dashboard.set_enabled(True)
    dashboard.set_enabled(False)
    dashboard.set_prefix("again\n")
    dashboard.set_enabled(True)

    assert wait_for(lambda: screen.lines[:1] == ["again"])
    dashboard.set_enabled(False)


def test_start_twice_is_harmless(dashboard, no_leaked_threads):
    dashboard.set_enabled(True)
    dashboard.set_enabled(True)
    dashboard.set_enabled(False)
    dashboard.set_enabled(False)

    assert dashboard.enabled is False


def test_render_errors_are_logged_and_loop_continues(registry, caplog, wait_for, no_leaked_threads):
    """Test that a failing terminal does not kill the render loop."""
    terminal = MagicMock()
    terminal.write.side_effect = RuntimeError("terminal gone")
    board = Dashboard(registry, terminal=terminal, updates_per_second=100)
    registry.add("value", 1)

    board.set_enabled(True)
    # Keep forcing full repaints so write() keeps failing
    assert wait_for(lambda: terminal.write.call_count >= 1)
    registry.mark_dirty()
    assert wait_for(lambda: terminal.write.call_count >= 2)
    assert board.enabled is True
    board.set_enabled(False)

    assert "Error rendering dashboard frame" in caplog.text
    terminal.clear.assert_called()


def test_producers_do_not_wait_on_slow_provider(registry, dashboard, no_leaked_threads):
    """Test that a blocking provider stalls the renderer but not registry writers."""
    registry.add_provider("slow", lambda: time.sleep(0.3) or "done")
    registry.add("counter", 0)
    dashboard.set_enabled(True)
    time.sleep(0.05)

    start = time.monotonic()
    for _ in range(50):
        registry.update_with("counter", lambda v: v + 1)
    elapsed = time.monotonic() - start

    assert registry.get("counter") == 50
    assert elapsed < 0.3
    dashboard.set_enabled(False)
