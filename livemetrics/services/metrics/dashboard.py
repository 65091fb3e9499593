"""Dashboard - Live terminal view of a MetricsRegistry.

A background thread repaints the registry at a fixed frame rate. When the
registry's dirty flag is set (a visible metric was added or a visibility
changed) the frame is a full repaint: clear, prefix banner, one
"<id>: <value>" line per visible metric in identifier order, suffix banner.
Otherwise only the value fields are overwritten in place, padded to the
width they had on the previous frame.

The renderer only reads the registry. Producers never wait on it, but a
blocking provider does stall the frame that resolves it.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from rich.cells import cell_len

from livemetrics.core.config import settings
from livemetrics.core.logging_config import get_logger
from .errors import InvalidArgumentError, InvalidStateError, UnresolvableError
from .registry import MetricRecord, MetricsRegistry
from .terminal import RichTerminal, TerminalSurface

logger = get_logger(__name__)


@dataclass
class _ValueSlot:
    """Screen position of one metric's value field, in terminal cells."""
    row: int
    column: int
    widths: List[int] = field(default_factory=list)  # One entry per value line


def _advance(row: int, column: int, text: str) -> Tuple[int, int]:
    """Cursor position after writing text starting at (row, column)."""
    lines = text.split("\n")
    if len(lines) == 1:
        return row, column + cell_len(text)
    return row + len(lines) - 1, cell_len(lines[-1])


class Dashboard:
    """Differential terminal renderer for a MetricsRegistry.

    States are Stopped and Running. Prefix and suffix banners can only be
    changed while stopped.
    """

    def __init__(
        self,
        registry: MetricsRegistry,
        terminal: Optional[TerminalSurface] = None,
        updates_per_second: Optional[int] = None,
        prefix: Optional[str] = None,
        suffix: Optional[str] = None,
    ):
        """Initialize a stopped dashboard.

        Args:
            registry: Registry to render
            terminal: Output surface, defaults to a RichTerminal on stdout
            updates_per_second: Frame rate, defaults to settings.DASHBOARD_UPS
            prefix: Banner printed above the metrics
            suffix: Banner printed below the metrics
        """
        ups = settings.DASHBOARD_UPS if updates_per_second is None else updates_per_second
        if ups <= 0:
            raise InvalidArgumentError(f"updates_per_second must be positive, got {ups}")

        self.registry = registry
        self.terminal = terminal if terminal is not None else RichTerminal()
        self.updates_per_second = ups
        self._prefix = settings.DASHBOARD_PREFIX if prefix is None else prefix
        self._suffix = settings.DASHBOARD_SUFFIX if suffix is None else suffix

        # Value positions from the last full repaint, in identifier order
        self._layout: Dict[str, _ValueSlot] = {}

        self._state_lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def frame_interval(self) -> float:
        """Seconds between two frames."""
        return 1.0 / self.updates_per_second

    # ------------------------------------------------------------------
    # Banners
    # ------------------------------------------------------------------

    @property
    def prefix(self) -> str:
        return self._prefix

    @prefix.setter
    def prefix(self, text: str) -> None:
        self.set_prefix(text)

    @property
    def suffix(self) -> str:
        return self._suffix

    @suffix.setter
    def suffix(self, text: str) -> None:
        self.set_suffix(text)

    def set_prefix(self, text: str) -> None:
        """Replace the banner above the metrics.

        Raises:
            InvalidStateError: While the dashboard is running
        """
        with self._state_lock:
            if self._running:
                raise InvalidStateError("Prefix cannot be changed while the dashboard is running")
            self._prefix = text

    def set_suffix(self, text: str) -> None:
        """Replace the banner below the metrics.

        Raises:
            InvalidStateError: While the dashboard is running
        """
        with self._state_lock:
            if self._running:
                raise InvalidStateError("Suffix cannot be changed while the dashboard is running")
            self._suffix = text

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._running

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.set_enabled(value)

    def set_enabled(self, enabled: bool) -> None:
        """Start or stop the render loop."""
        if enabled:
            self.start()
        else:
            self.stop()

    def start(self) -> None:
        """Start the render loop on its own thread."""
        with self._state_lock:
            if self._running:
                logger.warning("Dashboard already running")
                return
            previous = self._thread

        # A loop stopped from inside its own thread may still be winding down
        if previous is not None and previous.is_alive() and previous is not threading.current_thread():
            previous.join()

        with self._state_lock:
            if self._running:
                return
            self._running = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._render_loop,
                args=(self._stop_event,),
                name="dashboard-renderer",
                daemon=True,
            )
            # First frame of a session is always a full repaint
            self.registry.mark_dirty()
            self._thread.start()

        logger.info(f"Dashboard started at {self.updates_per_second} updates/s")

    def stop(self) -> None:
        """Stop the render loop; it clears the terminal on its next tick."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._thread

        if thread is not threading.current_thread():
            thread.join(timeout=max(1.0, 4 * self.frame_interval))
            if thread.is_alive():
                logger.warning("Dashboard thread did not stop in time, a provider may be blocking")
        logger.info("Dashboard stop requested")

    def _render_loop(self, stop_event: threading.Event) -> None:
        """Background loop repainting the dashboard until stop_event is set."""
        self.terminal.set_cursor_visible(False)

        while True:
            try:
                self.render_frame()
            except Exception as e:
                logger.error(f"Error rendering dashboard frame: {e}")

            if stop_event.is_set():
                break
            if stop_event.wait(self.frame_interval):
                break

        try:
            self.terminal.clear()
            self.terminal.set_cursor_visible(True)
            self.terminal.flush()
        except Exception as e:
            logger.error(f"Error clearing dashboard terminal: {e}")
        logger.info("Dashboard stopped")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_frame(self) -> None:
        """Paint one frame: full repaint if the registry is dirty, incremental otherwise."""
        if self.registry.consume_dirty():
            self._full_repaint(self._resolve_visible())
        else:
            self._incremental_repaint(self._resolve_visible())
        self.terminal.flush()

    def snapshot(self) -> str:
        """Text of a full repaint, without any cursor control."""
        text, _ = self._compose(self._resolve_visible())
        return text

    def __str__(self) -> str:
        return self.snapshot()

    def _resolve_visible(self) -> List[Tuple[str, str]]:
        return [
            (metric_id, self._render_value(metric_id, record))
            for metric_id, record in self.registry.visible_metrics()
        ]

    def _render_value(self, metric_id: str, record: MetricRecord) -> str:
        try:
            return str(self.registry.resolve_record(metric_id, record))
        except UnresolvableError as e:
            logger.debug(f"Could not resolve '{metric_id}' for display: {e}")
            return f"<unresolvable: {e.__cause__ or e}>"

    def _compose(self, values: List[Tuple[str, str]]) -> Tuple[str, Dict[str, _ValueSlot]]:
        """Build full-repaint text and the position of every value field."""
        parts = [self._prefix]
        row, column = _advance(0, 0, self._prefix)
        layout: Dict[str, _ValueSlot] = {}

        for metric_id, value_text in values:
            label = f"{metric_id}: "
            row, column = _advance(row, column, label)
            layout[metric_id] = _ValueSlot(
                row=row,
                column=column,
                widths=[cell_len(line) for line in value_text.split("\n")],
            )
            parts.append(f"{label}{value_text}\n")
            row, column = _advance(row, column, f"{value_text}\n")

        parts.append(self._suffix)
        return "".join(parts), layout

    def _full_repaint(self, values: List[Tuple[str, str]]) -> None:
        text, layout = self._compose(values)
        self._layout = {}
        try:
            self.terminal.clear()
            self.terminal.write(text)
        except Exception:
            # Screen state is unknown, the next frame must repaint everything
            self.registry.mark_dirty()
            raise
        self._layout = layout

    def _incremental_repaint(self, values: List[Tuple[str, str]]) -> None:
        # Layout no longer matches the screen, e.g. a metric changed its line count
        if [metric_id for metric_id, _ in values] != list(self._layout):
            self._full_repaint(values)
            return
        for metric_id, value_text in values:
            if value_text.count("\n") + 1 != len(self._layout[metric_id].widths):
                self._full_repaint(values)
                return

        for metric_id, value_text in values:
            slot = self._layout[metric_id]
            widths = []
            for index, line in enumerate(value_text.split("\n")):
                column = slot.column if index == 0 else 0
                width = cell_len(line)
                self.terminal.write_at(slot.row + index, column, line + " " * (slot.widths[index] - width))
                widths.append(width)
            slot.widths = widths
