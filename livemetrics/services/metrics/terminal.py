"""Terminal surfaces the dashboard paints on.

The dashboard only needs a handful of primitives: clear the viewport, write
text at the current position, and overwrite text at a (row, column) cell.
RichTerminal maps them onto a rich Console with cursor control sequences;
ScreenBuffer keeps the same picture as a list of lines in memory, for tests
and for environments without cursor addressing.
"""

from typing import List, Optional, Protocol

from rich.cells import get_character_cell_size
from rich.console import Console
from rich.control import Control


class TerminalSurface(Protocol):
    """Line-addressable output surface used by the Dashboard."""

    def clear(self) -> None:
        """Erase the viewport and move the cursor to the top left corner."""
        ...

    def write(self, text: str) -> None:
        """Write text at the current cursor position."""
        ...

    def write_at(self, row: int, column: int, text: str) -> None:
        """Move the cursor to (row, column) and overwrite with text."""
        ...

    def set_cursor_visible(self, visible: bool) -> None:
        ...

    def flush(self) -> None:
        ...


class RichTerminal:
    """TerminalSurface backed by a rich Console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def clear(self) -> None:
        self.console.control(Control.clear(), Control.home())

    def write(self, text: str) -> None:
        # out() skips markup and emoji parsing, metric values are printed verbatim
        self.console.out(text, end="", highlight=False)

    def write_at(self, row: int, column: int, text: str) -> None:
        self.console.control(Control.move_to(column, row))
        self.write(text)

    def set_cursor_visible(self, visible: bool) -> None:
        self.console.show_cursor(visible)

    def flush(self) -> None:
        self.console.file.flush()


class ScreenBuffer:
    """In-memory TerminalSurface.

    Keeps the painted picture as rows of terminal cells, with the same
    overwrite semantics as a real terminal: writing at a cell replaces the
    characters already there and leaves the rest of the line intact. Wide
    characters take two cells, so columns line up with what RichTerminal
    addresses.
    """

    def __init__(self):
        self._rows: List[List[str]] = []
        self.row = 0
        self.column = 0
        self.cursor_visible = True
        self.clear_count = 0

    def clear(self) -> None:
        self._rows = []
        self.row = 0
        self.column = 0
        self.clear_count += 1

    def write(self, text: str) -> None:
        for index, segment in enumerate(text.split("\n")):
            if index > 0:
                self.row += 1
                self.column = 0
            if segment:
                self._put(segment)

    def write_at(self, row: int, column: int, text: str) -> None:
        self.row = row
        self.column = column
        self.write(text)

    def set_cursor_visible(self, visible: bool) -> None:
        self.cursor_visible = visible

    def flush(self) -> None:
        pass

    def _put(self, segment: str) -> None:
        while len(self._rows) <= self.row:
            self._rows.append([])
        cells = self._rows[self.row]

        for character in segment:
            width = get_character_cell_size(character)
            if width == 0:
                if self.column > 0:
                    cells[self.column - 1] += character
                continue

            end = self.column + width
            if len(cells) < end:
                cells.extend(" " * (end - len(cells)))
            # Overwriting half of a wide character blanks the other half
            if cells[self.column] == "" and self.column > 0:
                cells[self.column - 1] = " "
            if end < len(cells) and cells[end] == "":
                cells[end] = " "

            cells[self.column:end] = [character] + [""] * (width - 1)
            self.column = end

    @property
    def lines(self) -> List[str]:
        """Painted rows as strings, trailing blanks included."""
        return ["".join(cells) for cells in self._rows]

    @property
    def text(self) -> str:
        """Painted content, one line per row."""
        return "\n".join(self.lines)
