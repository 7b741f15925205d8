"""Terminal handles used by the render loop.

The loop never touches ``sys.stdout`` or termios directly; it is handed a
``Terminal`` and enters it through ``terminal_session`` so the original mode
is restored on every exit path.
"""

from __future__ import annotations

import io
import logging
import os
import select
import sys
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, TextIO

from rich.console import Console
from rich.control import Control
from rich.segment import Segment, Segments
from rich.style import Style

if sys.platform != "win32":
    import termios
    import tty

from ..exceptions import TerminalIOError
from .models import BLANK, Cell
from .screen import CellPatch

logger = logging.getLogger(__name__)


class Terminal(ABC):
    """Contract for the physical (or simulated) terminal."""

    @abstractmethod
    def get_size(self) -> tuple[int, int]:
        """Return ``(width, height)`` in cells."""

    @abstractmethod
    def read_input(self) -> str:
        """Return pending raw input without blocking ("" when none)."""

    @abstractmethod
    def write_cells(self, patches: list[CellPatch]) -> None:
        """Write patches at their positions; raise TerminalIOError on failure."""

    @abstractmethod
    def set_mode(self, raw: bool) -> None:
        """Switch between raw (dashboard) and cooked mode."""

    @abstractmethod
    def restore_mode(self) -> None:
        """Restore the mode captured before the first ``set_mode(True)``."""


@contextmanager
def terminal_session(terminal: Terminal) -> Iterator[Terminal]:
    """Hold the terminal in raw mode for the duration of the block."""
    terminal.set_mode(True)
    try:
        yield terminal
    finally:
        try:
            terminal.restore_mode()
        except TerminalIOError as exc:
            logger.error("Failed to restore terminal mode: %s", exc)


@lru_cache(maxsize=512)
def _cell_style(fg: str | None, bg: str | None, bold: bool, reverse: bool) -> Style:
    return Style(color=fg, bgcolor=bg, bold=bold or None, reverse=reverse or None)


def _style_runs(cells: tuple[Cell, ...]) -> Iterator[Segment]:
    """Group consecutive cells that share attributes into styled segments."""
    run: list[str] = []
    current: tuple[str | None, str | None, bool, bool] | None = None
    for cell in cells:
        key = (cell.fg, cell.bg, cell.bold, cell.reverse)
        if key != current:
            if run and current is not None:
                yield Segment("".join(run), _cell_style(*current))
            run = []
            current = key
        run.append(cell.char)
    if run and current is not None:
        yield Segment("".join(run), _cell_style(*current))


class ConsoleTerminal(Terminal):
    """Real terminal: rich Console for output, termios raw mode and select for input."""

    def __init__(
        self,
        *,
        console: Console | None = None,
        input_stream: TextIO | None = None,
        write_timeout: float = 0.5,
        alt_screen: bool = True,
    ) -> None:
        self.console = console or Console(highlight=False)
        self._input = input_stream or sys.stdin
        self.write_timeout = write_timeout
        self.alt_screen = alt_screen
        self._saved_attrs: Any = None
        self._raw = False

    def _input_fd(self) -> int:
        try:
            return self._input.fileno()
        except (OSError, ValueError, io.UnsupportedOperation) as exc:
            raise TerminalIOError(f"terminal input has no file descriptor: {exc}") from exc

    def get_size(self) -> tuple[int, int]:
        size = self.console.size
        return size.width, size.height

    def read_input(self) -> str:
        fd = self._input_fd()
        try:
            ready, _, _ = select.select([fd], [], [], 0)
            if not ready:
                return ""
            data = os.read(fd, 1024)
        except OSError as exc:
            raise TerminalIOError(f"failed reading terminal input: {exc}") from exc
        if not data:
            raise TerminalIOError("terminal input closed")
        return data.decode("utf-8", errors="replace")

    def _wait_writable(self) -> None:
        try:
            fd = self.console.file.fileno()
        except (OSError, ValueError, io.UnsupportedOperation):
            return
        try:
            _, writable, _ = select.select([], [fd], [], self.write_timeout)
        except OSError as exc:
            raise TerminalIOError(f"terminal output unavailable: {exc}") from exc
        if not writable:
            raise TerminalIOError(
                f"terminal not writable within {self.write_timeout:.2f}s"
            )

    def write_cells(self, patches: list[CellPatch]) -> None:
        if not patches:
            return
        segments: list[Segment] = []
        for patch in patches:
            segments.append(Control.move_to(patch.x, patch.y).segment)
            segments.extend(_style_runs(patch.cells))
        self._wait_writable()
        try:
            self.console.print(Segments(segments), end="", crop=False, soft_wrap=True)
            self.console.file.flush()
        except OSError as exc:
            raise TerminalIOError(f"failed writing to terminal: {exc}") from exc

    def set_mode(self, raw: bool) -> None:
        if not raw:
            self.restore_mode()
            return
        if self._raw:
            return
        fd = self._input_fd()
        try:
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setraw(fd, termios.TCSANOW)
        except (termios.error, OSError) as exc:
            self._saved_attrs = None
            raise TerminalIOError(f"failed entering raw mode: {exc}") from exc
        self._raw = True
        try:
            if self.alt_screen:
                self.console.set_alt_screen(True)
            self.console.show_cursor(False)
        except OSError as exc:
            raise TerminalIOError(f"failed preparing screen: {exc}") from exc

    def restore_mode(self) -> None:
        if not self._raw:
            return
        self._raw = False
        failure: Exception | None = None
        try:
            self.console.show_cursor(True)
            if self.alt_screen:
                self.console.set_alt_screen(False)
        except OSError as exc:
            failure = exc
        if self._saved_attrs is not None:
            try:
                termios.tcsetattr(self._input_fd(), termios.TCSADRAIN, self._saved_attrs)
            except (termios.error, OSError) as exc:
                failure = exc
            self._saved_attrs = None
        if failure is not None:
            raise TerminalIOError(f"failed restoring terminal mode: {failure}") from failure


class MemoryTerminal(Terminal):
    """In-memory terminal with scripted input, for headless runs and tests."""

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        *,
        keys: Iterable[str] = (),
        fail_writes: bool = False,
    ) -> None:
        self.width = width
        self.height = height
        self.grid: list[list[Cell]] = self._blank_grid()
        self._input: deque[str] = deque(keys)
        self.fail_writes = fail_writes
        self.raw = False
        self.restored = False
        self.mode_changes: list[str] = []
        self.write_calls = 0
        self.cells_written = 0

    def _blank_grid(self) -> list[list[Cell]]:
        return [[BLANK] * self.width for _ in range(self.height)]

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.grid = self._blank_grid()

    def feed(self, data: str) -> None:
        self._input.append(data)

    def get_size(self) -> tuple[int, int]:
        return self.width, self.height

    def read_input(self) -> str:
        if not self._input:
            return ""
        return self._input.popleft()

    def write_cells(self, patches: list[CellPatch]) -> None:
        if self.fail_writes:
            raise TerminalIOError("simulated terminal write failure")
        self.write_calls += 1
        for patch in patches:
            if not (0 <= patch.y < self.height):
                continue
            row = self.grid[patch.y]
            for offset, cell in enumerate(patch.cells):
                x = patch.x + offset
                if 0 <= x < self.width:
                    row[x] = cell
                    self.cells_written += 1

    def set_mode(self, raw: bool) -> None:
        self.raw = raw
        self.mode_changes.append("raw" if raw else "cooked")

    def restore_mode(self) -> None:
        self.raw = False
        self.restored = True
        self.mode_changes.append("restored")

    def screen_text(self) -> list[str]:
        return ["".join(cell.char for cell in row) for row in self.grid]
