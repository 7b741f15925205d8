"""Frame grid, cell diffing and flush bookkeeping for the dashboard screen.

Each tick the render loop paints a complete ``Frame`` with a ``FrameBuilder``.
``diff`` compares it with the frame the terminal currently shows and returns
runs of changed cells (``CellPatch``); only those are written. The
``ScreenBuffer`` advances its front frame only after the terminal write
succeeded, so a failed flush leaves every patched cell dirty.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.cells import cell_len

from .models import BLANK, Cell, Region

if TYPE_CHECKING:
    from .terminal import Terminal


@dataclass(frozen=True, slots=True)
class Frame:
    """Immutable ``width x height`` grid of cells."""

    width: int
    height: int
    rows: tuple[tuple[Cell, ...], ...]

    @classmethod
    def blank(cls, width: int, height: int, fill: Cell = BLANK) -> Frame:
        row = (fill,) * width
        return cls(width=width, height=height, rows=(row,) * height)

    def cell(self, x: int, y: int) -> Cell:
        return self.rows[y][x]

    def row_text(self, y: int) -> str:
        """Visible characters of one row; wide-glyph continuations are skipped."""
        return "".join(cell.char for cell in self.rows[y])

    def text(self) -> list[str]:
        return [self.row_text(y) for y in range(self.height)]


@dataclass(frozen=True, slots=True)
class CellPatch:
    """A horizontal run of changed cells starting at ``(x, y)``."""

    x: int
    y: int
    cells: tuple[Cell, ...]

    @property
    def text(self) -> str:
        return "".join(cell.char for cell in self.cells)


class FrameBuilder:
    """Mutable canvas used to paint one frame before it is committed."""

    def __init__(self, width: int, height: int, fill: Cell = BLANK) -> None:
        self.width = max(width, 0)
        self.height = max(height, 0)
        self._rows: list[list[Cell]] = [[fill] * self.width for _ in range(self.height)]

    def put(self, x: int, y: int, cell: Cell) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            return
        row = self._rows[y]
        # Keep wide glyphs consistent when one half is overwritten.
        if row[x].is_continuation and x > 0 and not cell.is_continuation:
            row[x - 1] = Cell(" ", row[x - 1].fg, row[x - 1].bg)
        if x + 1 < self.width and row[x + 1].is_continuation and not cell.is_continuation:
            row[x + 1] = Cell(" ", row[x + 1].fg, row[x + 1].bg)
        row[x] = cell

    def write(
        self,
        x: int,
        y: int,
        text: str,
        *,
        max_width: int | None = None,
        fg: str | None = None,
        bg: str | None = None,
        bold: bool = False,
        reverse: bool = False,
    ) -> int:
        """Write ``text`` starting at ``(x, y)``, clipped; returns columns used."""
        if not (0 <= y < self.height):
            return 0
        limit = self.width if max_width is None else min(self.width, x + max_width)
        col = x
        for char in text:
            if col >= limit:
                break
            size = cell_len(char)
            if size == 0:
                continue
            if size == 2:
                if col + 1 >= limit:
                    self.put(col, y, Cell(" ", fg, bg, bold, reverse))
                    col += 1
                    break
                self.put(col, y, Cell(char, fg, bg, bold, reverse))
                self.put(col + 1, y, Cell("", fg, bg, bold, reverse))
                col += 2
                continue
            self.put(col, y, Cell(char, fg, bg, bold, reverse))
            col += 1
        return col - x

    def fill(self, region: Region, cell: Cell = BLANK) -> None:
        for y in range(region.y, min(region.bottom, self.height)):
            for x in range(region.x, min(region.right, self.width)):
                self.put(x, y, cell)

    def build(self) -> Frame:
        return Frame(
            width=self.width,
            height=self.height,
            rows=tuple(tuple(row) for row in self._rows),
        )


def diff(previous: Frame | None, current: Frame) -> list[CellPatch]:
    """Return the cell runs that differ between ``previous`` and ``current``.

    A missing previous frame or a size change yields a full redraw: one patch
    per row covering the whole width.
    """
    if previous is None or previous.width != current.width or previous.height != current.height:
        return [
            CellPatch(x=0, y=y, cells=row)
            for y, row in enumerate(current.rows)
            if row
        ]

    patches: list[CellPatch] = []
    for y, (old_row, new_row) in enumerate(zip(previous.rows, current.rows)):
        if old_row is new_row or old_row == new_row:
            continue
        x = 0
        width = current.width
        while x < width:
            if old_row[x] == new_row[x]:
                x += 1
                continue
            start = x
            while x < width and old_row[x] != new_row[x]:
                x += 1
            # A run must begin on a glyph head, never on a continuation half.
            if new_row[start].is_continuation and start > 0:
                start -= 1
            patches.append(CellPatch(x=start, y=y, cells=new_row[start:x]))
    return patches


def apply_patches(grid: list[list[Cell]], patches: list[CellPatch]) -> None:
    """Apply patches to a mutable grid in place (mirror of a terminal write)."""
    for patch in patches:
        row = grid[patch.y]
        for offset, cell in enumerate(patch.cells):
            row[patch.x + offset] = cell


def frame_to_grid(frame: Frame) -> list[list[Cell]]:
    return [list(row) for row in frame.rows]


class ScreenBuffer:
    """Tracks what the terminal shows and flushes only the visible delta."""

    def __init__(self) -> None:
        self.front: Frame | None = None
        self.pending: list[CellPatch] = []
        self.frames_flushed = 0
        self.cells_written = 0

    def invalidate(self) -> None:
        """Forget the on-screen frame; the next present is a full redraw."""
        self.front = None

    def prepare(self, frame: Frame) -> list[CellPatch]:
        """Diff ``frame`` against the on-screen frame and hold the result as pending."""
        self.pending = diff(self.front, frame)
        return self.pending

    def flush(self, frame: Frame, terminal: Terminal) -> int:
        """Write pending patches; ``frame`` becomes the front only if the write succeeds.

        Raises TerminalIOError from the terminal, leaving ``front`` and
        ``pending`` describing the unflushed state.
        """
        if not self.pending:
            self.front = frame
            return 0
        terminal.write_cells(self.pending)
        written = sum(len(patch.cells) for patch in self.pending)
        self.pending = []
        self.front = frame
        self.frames_flushed += 1
        self.cells_written += written
        return written

    def present(self, frame: Frame, terminal: Terminal) -> int:
        """Diff and flush in one step; returns the number of cells written."""
        self.prepare(frame)
        return self.flush(frame, terminal)
