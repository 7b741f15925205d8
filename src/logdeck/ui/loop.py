"""Single-threaded render loop tying queue, ring buffer, layout, screen and input together.

Per tick::

    IDLE -> DRAINING -> LAYING_OUT -> DIFFING -> FLUSHING -> IDLE

``SHUTTING_DOWN`` is entered from any state on quit or on a fatal terminal
error. All view state, the ring buffer and the front frame are owned by the
thread calling ``run``/``tick``; the event queue and the issue log are the
only shared objects.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..exceptions import ExportError, FilterError, TerminalIOError
from ..export import export_records
from ..issues import IssueLog
from ..models import LogRecord, Severity
from ..redaction import sanitize_text
from .event_queue import BoundedEventQueue
from .filters import SearchFilter, parse_filter
from .input import ERASE_CHAR, ERASE_LINE, InputDispatcher
from .layout import LayoutConfig, LayoutResult, compute_regions
from .models import LOG_REGION, Command, CommandKind, ViewState
from .render import DashboardStats, paint_frame
from .ring_buffer import RecordRing
from .screen import Frame, ScreenBuffer
from .terminal import Terminal, terminal_session


class LoopState(Enum):
    IDLE = "idle"
    DRAINING = "draining"
    LAYING_OUT = "laying_out"
    DIFFING = "diffing"
    FLUSHING = "flushing"
    SHUTTING_DOWN = "shutting_down"


class StatusLogHandler(logging.Handler):
    """Route WARNING+ diagnostics into the status bar instead of the screen.

    ``emit`` may run on producer threads, so messages are parked in a deque
    and picked up by the render thread at the next tick.
    """

    def __init__(self, level: int = logging.WARNING) -> None:
        super().__init__(level)
        self.messages: deque[tuple[Severity, str]] = deque(maxlen=16)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = sanitize_text(record.getMessage())
            self.messages.append((Severity.parse(record.levelno), message))
        except Exception:
            self.handleError(record)


class RenderLoop:
    """Cooperative scheduler that turns queued records and key presses into frames."""

    def __init__(
        self,
        *,
        terminal: Terminal,
        queue: BoundedEventQueue,
        ring: RecordRing,
        view: ViewState | None = None,
        dispatcher: InputDispatcher | None = None,
        layout_config: LayoutConfig | None = None,
        redraw_interval: float = 0.033,
        drain_batch_size: int = 500,
        max_commands_per_tick: int = 32,
        source_name: str = "-",
        issues: IssueLog | None = None,
        export_dir: Path = Path("."),
        exit_when_drained: bool = False,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.terminal = terminal
        self.queue = queue
        self.ring = ring
        self.view = view or ViewState()
        self.dispatcher = dispatcher or InputDispatcher(terminal)
        self.layout_config = layout_config or LayoutConfig()
        self.redraw_interval = redraw_interval
        self.drain_batch_size = drain_batch_size
        self.max_commands_per_tick = max_commands_per_tick
        self.source_name = source_name
        self.issues = issues
        self.export_dir = export_dir
        self.exit_when_drained = exit_when_drained
        self.logger = logger or logging.getLogger("logdeck.loop")
        self._clock = clock
        self._sleep = sleep
        self._now = now

        self.state = LoopState.IDLE
        self.screen = ScreenBuffer()
        self.layout: LayoutResult | None = None
        self._size: tuple[int, int] | None = None
        self._dirty = True
        self._last_flush: float | None = None
        self._status_handler: StatusLogHandler | None = None
        self._issues_seen = 0
        self.ticks = 0
        self.frames = 0
        self.filtered_out = 0

    # -- lifecycle -----------------------------------------------------------------

    def attach_logger(self, logger: logging.Logger) -> None:
        """Surface the diagnostic logger's warnings in the status bar while running."""
        self._status_handler = StatusLogHandler()
        logger.addHandler(self._status_handler)

    def detach_logger(self, logger: logging.Logger) -> None:
        if self._status_handler is None:
            return
        logger.removeHandler(self._status_handler)
        self._status_handler = None

    def request_quit(self) -> None:
        self.view.quit = True

    def run(self) -> int:
        """Hold the terminal and tick until quit; returns the process exit code.

        TerminalIOError propagates after the terminal mode was restored.
        """
        self.logger.info(
            "Render loop starting",
            extra={
                "ring_capacity": self.ring.capacity,
                "queue_capacity": self.queue.capacity,
                "queue_policy": self.queue.policy,
                "redraw_interval_ms": round(self.redraw_interval * 1000),
            },
        )
        self.attach_logger(self.logger)
        try:
            with terminal_session(self.terminal):
                while not self.view.quit:
                    self.tick()
                    if self.view.quit:
                        break
                    self._wait()
        except TerminalIOError as exc:
            self.state = LoopState.SHUTTING_DOWN
            self.logger.error("Fatal terminal I/O error; shutting down: %s", exc)
            raise
        finally:
            self.state = LoopState.SHUTTING_DOWN
            self.detach_logger(self.logger)
        self.logger.info(
            "Render loop stopped",
            extra={
                "ticks": self.ticks,
                "frames": self.frames,
                "cells_written": self.screen.cells_written,
                "records": self.ring.total_appended,
                "dropped": self.queue.dropped,
            },
        )
        return 0

    # -- tick ----------------------------------------------------------------------

    def tick(self) -> bool:
        """Run one scheduling step; returns True if a frame was flushed."""
        self.ticks += 1
        if self.view.quit:
            self.state = LoopState.SHUTTING_DOWN
            return False

        self._apply_input()
        if self.view.quit:
            self.state = LoopState.SHUTTING_DOWN
            return False

        self.state = LoopState.DRAINING
        self._drain_events()
        self._collect_status_messages()
        self._check_issues()

        if self.exit_when_drained and self.queue.exhausted:
            self._render_if_dirty(force=True)
            self.view.quit = True
            self.state = LoopState.SHUTTING_DOWN
            return False

        flushed = self._render_if_dirty()
        self.state = LoopState.IDLE
        return flushed

    def _apply_input(self) -> None:
        for _ in range(self.max_commands_per_tick):
            command = self.dispatcher.poll()
            if command is None:
                return
            self.apply_command(command)
            if self.view.quit:
                return

    def _drain_events(self) -> None:
        batch = self.queue.drain(self.drain_batch_size)
        if not batch:
            return
        view = self.view
        appended = 0
        for record in batch:
            if view.filter_enabled and not view.capture_filter.matches(record):
                self.filtered_out += 1
                continue
            self.ring.append(record)
            appended += 1
            if not view.follow and view.search.matches(record):
                # Keep the scrolled-back window anchored while new lines arrive.
                view.scroll[LOG_REGION] = view.scroll_of(LOG_REGION) + 1
        if appended:
            self._dirty = True

    def _collect_status_messages(self) -> None:
        handler = self._status_handler
        if handler is None:
            return
        latest: tuple[Severity, str] | None = None
        while handler.messages:
            latest = handler.messages.popleft()
        if latest is None:
            return
        severity, message = latest
        self.view.set_status(message, severity)
        self._dirty = True

    def _check_issues(self) -> None:
        if self.issues is None:
            return
        total = self.issues.total
        if total != self._issues_seen:
            self._issues_seen = total
            self._dirty = True

    def _wait(self) -> None:
        now = self._clock()
        if self._dirty:
            remaining = self._time_until_redraw(now)
            if remaining > 0:
                self._sleep(remaining)
            return
        if len(self.queue):
            return
        if self.queue.closed:
            # Nothing will arrive any more; only keys and resizes can change the view.
            self._sleep(self.redraw_interval)
            return
        self.queue.wait_for_items(self.redraw_interval)

    def _time_until_redraw(self, now: float) -> float:
        if self._last_flush is None:
            return 0.0
        return max(0.0, self._last_flush + self.redraw_interval - now)

    # -- rendering -----------------------------------------------------------------

    def _render_if_dirty(self, *, force: bool = False) -> bool:
        if not self._dirty:
            return False
        now = self._clock()
        if not force and self._time_until_redraw(now) > 0:
            return False
        self.render()
        self._last_flush = now
        self._dirty = False
        return True

    def _ensure_layout(self) -> LayoutResult:
        if self._size is None:
            self._size = self.terminal.get_size()
        if self.layout is None or (self.layout.width, self.layout.height) != self._size:
            width, height = self._size
            self.layout = compute_regions(width, height, self.layout_config)
            self.screen.invalidate()
            if self.layout.degraded:
                self.logger.warning("Layout degraded: %s", self.layout.error)
            else:
                self.logger.debug("Layout computed for %dx%d", width, height)
        return self.layout

    def visible_records(self) -> list[LogRecord]:
        records = self.ring.snapshot()
        search = self.view.search
        if not search.active:
            return records
        return [record for record in records if search.matches(record)]

    def stats(self, visible_count: int) -> DashboardStats:
        return DashboardStats(
            source_name=self.source_name,
            total=len(self.ring),
            shown=visible_count,
            warn_count=self.ring.count_matching(severity=Severity.WARN),
            error_count=self.ring.count_matching(severity=Severity.ERROR)
            + self.ring.count_matching(severity=Severity.CRITICAL),
            dropped=self.queue.dropped,
            capacity=self.ring.capacity,
            source_done=self.queue.closed,
            issue_count=self._issues_seen,
        )

    def build_frame(self) -> Frame:
        """Lay out and paint the current model state into a new frame."""
        self.state = LoopState.LAYING_OUT
        layout = self._ensure_layout()
        records = self.visible_records()
        log_region = layout.get(LOG_REGION)
        if log_region is not None:
            self._clamp_scroll(len(records), log_region.height)
        now = self._now() if self._now is not None else None
        issues = None
        if self.issues is not None and self.view.show_issues:
            issues = self.issues.snapshot()
        return paint_frame(
            layout,
            self.view,
            records,
            self.stats(len(records)),
            issues=issues,
            now=now,
        )

    def render(self) -> int:
        """Build, diff and flush one frame; returns the number of cells written."""
        frame = self.build_frame()
        self.state = LoopState.DIFFING
        self.screen.prepare(frame)
        self.state = LoopState.FLUSHING
        written = self.screen.flush(frame, self.terminal)
        self.frames += 1
        return written

    def _clamp_scroll(self, total: int, height: int) -> None:
        offset = self.view.scroll_of(LOG_REGION)
        max_offset = max(0, total - height)
        if offset > max_offset:
            offset = max_offset
        self.view.scroll[LOG_REGION] = offset
        if offset == 0:
            self.view.follow = True

    def page_size(self) -> int:
        region = self.layout.get(LOG_REGION) if self.layout is not None else None
        if region is None:
            return 1
        return max(1, region.height - 1)

    # -- commands ------------------------------------------------------------------

    def apply_command(self, command: Command) -> None:
        """Apply one input command to the view state (render thread only)."""
        view = self.view
        kind = command.kind
        self._dirty = True
        if kind is CommandKind.QUIT:
            view.quit = True
        elif kind is CommandKind.RESIZE:
            self._size = (command.width, command.height)
            self.layout = None
            self.screen.invalidate()
        elif kind is CommandKind.SCROLL_UP:
            self._scroll_by(1)
        elif kind is CommandKind.SCROLL_DOWN:
            self._scroll_by(-1)
        elif kind is CommandKind.PAGE_UP:
            self._scroll_by(self.page_size())
        elif kind is CommandKind.PAGE_DOWN:
            self._scroll_by(-self.page_size())
        elif kind is CommandKind.SCROLL_HOME:
            view.scroll[LOG_REGION] = len(self.ring)
            view.follow = False
        elif kind is CommandKind.SCROLL_END:
            view.scroll[LOG_REGION] = 0
            view.follow = True
        elif kind is CommandKind.TOGGLE_FILTER:
            view.filter_enabled = not view.filter_enabled
            state = "on" if view.filter_enabled else "off"
            view.set_status(f"capture filter {state} (min {view.capture_filter.min_level.label})")
        elif kind is CommandKind.CYCLE_LEVEL:
            view.capture_filter = view.capture_filter.next_level()
            view.filter_enabled = True
            view.set_status(f"capturing {view.capture_filter.min_level.label} and above")
        elif kind is CommandKind.BEGIN_SEARCH:
            view.search_mode = True
            view.input_buffer = view.search.expression
            self.dispatcher.search_mode = True
        elif kind is CommandKind.EDIT_SEARCH:
            if command.text == ERASE_CHAR:
                view.input_buffer = view.input_buffer[:-1]
            elif command.text == ERASE_LINE:
                view.input_buffer = ""
            else:
                view.input_buffer += command.text
        elif kind is CommandKind.SET_SEARCH:
            self._leave_search_mode()
            self.apply_search(view.input_buffer)
        elif kind is CommandKind.CANCEL_SEARCH:
            self._leave_search_mode()
        elif kind is CommandKind.CLEAR:
            view.search = SearchFilter()
            view.set_status("search cleared")
        elif kind is CommandKind.EXPORT:
            self.export_visible()
        elif kind is CommandKind.TOGGLE_ISSUES:
            view.show_issues = not view.show_issues
        elif kind is CommandKind.REDRAW:
            self.screen.invalidate()

    def apply_search(self, expression: str) -> bool:
        """Install a display search; a malformed expression keeps the previous one."""
        try:
            search = parse_filter(expression)
        except FilterError as exc:
            self.view.set_status(f"bad filter: {exc}", Severity.WARN)
            self.logger.debug("Rejected filter expression %r: %s", expression, exc)
            return False
        self.view.search = search
        self.view.scroll[LOG_REGION] = 0
        self.view.follow = True
        if search.active:
            self.view.set_status(f"search: {search.expression}")
        else:
            self.view.set_status("search cleared")
        return True

    def export_visible(self) -> Path | None:
        """Write the records that pass the current search to a JSONL file."""
        now = self._now() if self._now is not None else None
        try:
            path, count = export_records(self.visible_records(), self.export_dir, now=now)
        except ExportError as exc:
            self.view.set_status(f"export failed: {exc}", Severity.WARN)
            self.logger.error("Export failed: %s", exc)
            return None
        self.view.set_status(f"exported {count} records to {path}")
        self.logger.info("Exported records", extra={"path": str(path), "records": count})
        return path

    def _leave_search_mode(self) -> None:
        self.view.search_mode = False
        self.dispatcher.search_mode = False

    def _scroll_by(self, delta: int) -> None:
        offset = max(0, self.view.scroll_of(LOG_REGION) + delta)
        self.view.scroll[LOG_REGION] = offset
        self.view.follow = offset == 0

