"""Paint dashboard regions (header, log pane, status bar, input line) into a frame."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from rich.cells import cell_len

from ..issues import SourceIssue
from ..models import LogRecord, Severity
from .input import HELP_TEXT
from .layout import (
    HEADER_REGION,
    INPUT_REGION,
    PLACEHOLDER_REGION,
    STATUS_REGION,
    LayoutResult,
)
from .models import LOG_REGION, Cell, Region, ViewState
from .screen import Frame, FrameBuilder

# (foreground, bold) per severity
SEVERITY_STYLES: dict[Severity, tuple[str | None, bool]] = {
    Severity.DEBUG: ("bright_black", False),
    Severity.INFO: ("white", False),
    Severity.WARN: ("yellow", False),
    Severity.ERROR: ("red", False),
    Severity.CRITICAL: ("red", True),
}

HEADER_CELL = Cell(" ", fg="white", bg="blue", bold=True)
STATUS_CELL = Cell(" ", reverse=True)


@dataclass(frozen=True, slots=True)
class DashboardStats:
    """Counters shown in the header and status bar for one frame."""

    title: str = "logdeck"
    source_name: str = "-"
    total: int = 0
    shown: int = 0
    warn_count: int = 0
    error_count: int = 0
    dropped: int = 0
    capacity: int = 0
    source_done: bool = False
    issue_count: int = 0


def paint_frame(
    layout: LayoutResult,
    view: ViewState,
    records: list[LogRecord],
    stats: DashboardStats,
    *,
    issues: list[SourceIssue] | None = None,
    now: datetime | None = None,
) -> Frame:
    """Build the complete frame for the current model state.

    ``records`` are the ring-buffer contents that passed the display search.
    With ``view.show_issues`` the log pane lists ``issues`` instead.
    """
    builder = FrameBuilder(layout.width, layout.height)
    if layout.degraded:
        placeholder = layout.get(PLACEHOLDER_REGION)
        if placeholder is not None:
            paint_placeholder(builder, placeholder, layout)
        return builder.build()

    for region in layout.regions:
        if region.name == HEADER_REGION:
            paint_header(builder, region, stats, now=now)
        elif region.name == LOG_REGION and view.show_issues:
            paint_issues(builder, region, issues or [])
        elif region.name == LOG_REGION:
            paint_log(builder, region, records, scroll_offset=view.scroll_of(LOG_REGION))
        elif region.name == STATUS_REGION:
            paint_status(builder, region, view, stats)
        elif region.name == INPUT_REGION:
            paint_input(builder, region, view)
    return builder.build()


def paint_placeholder(builder: FrameBuilder, region: Region, layout: LayoutResult) -> None:
    builder.fill(region)
    message = "terminal too small"
    if region.height >= 2 and region.width >= 4:
        builder.write(region.x, region.y, message, max_width=region.width, fg="yellow")
        builder.write(
            region.x,
            region.y + 1,
            f"{layout.width}x{layout.height}",
            max_width=region.width,
            fg="yellow",
        )
    else:
        builder.write(region.x, region.y, "!", max_width=region.width, fg="yellow")


def paint_header(
    builder: FrameBuilder,
    region: Region,
    stats: DashboardStats,
    *,
    now: datetime | None = None,
) -> None:
    builder.fill(region, HEADER_CELL)
    clock = (now or datetime.now(UTC)).strftime("%H:%M:%SZ")
    source_state = "eof" if stats.source_done else "live"
    left = f" {stats.title}  |  source={stats.source_name} ({source_state})"
    used = builder.write(
        region.x,
        region.y,
        left,
        max_width=region.width,
        fg="white",
        bg="blue",
        bold=True,
    )
    right = f"ring={stats.total}/{stats.capacity}  {clock} "
    start = region.right - cell_len(right)
    if start > region.x + used:
        builder.write(start, region.y, right, fg="white", bg="blue")


def log_window(total: int, height: int, scroll_offset: int) -> tuple[int, int]:
    """Return ``[start, end)`` indices of the records visible in the log pane.

    ``scroll_offset`` counts lines scrolled back from the tail.
    """
    if height <= 0 or total <= 0:
        return 0, 0
    offset = max(0, min(scroll_offset, max(0, total - height)))
    end = total - offset
    start = max(0, end - height)
    return start, end


def paint_log(
    builder: FrameBuilder,
    region: Region,
    records: list[LogRecord],
    *,
    scroll_offset: int = 0,
) -> None:
    builder.fill(region)
    if not records:
        builder.write(
            region.x, region.y, "No records yet", max_width=region.width, fg="bright_black"
        )
        return
    start, end = log_window(len(records), region.height, scroll_offset)
    for row, record in enumerate(records[start:end]):
        y = region.y + row
        paint_record(builder, region.x, y, region.width, record)


def paint_record(builder: FrameBuilder, x: int, y: int, width: int, record: LogRecord) -> None:
    fg, bold = SEVERITY_STYLES.get(record.level, ("white", False))
    col = x
    limit = x + width
    stamp = record.timestamp.strftime("%H:%M:%S") + " "
    col += builder.write(col, y, stamp, max_width=limit - col, fg="bright_black")
    if col >= limit:
        return
    level = f"{record.level.label:<8} "
    col += builder.write(col, y, level, max_width=limit - col, fg=fg, bold=bold)
    if col >= limit:
        return
    source = record.source[:12]
    col += builder.write(col, y, f"{source:<12} ", max_width=limit - col, fg="cyan")
    if col >= limit:
        return
    builder.write(col, y, record.message, max_width=limit - col, fg=fg, bold=bold)


def paint_issues(builder: FrameBuilder, region: Region, issues: list[SourceIssue]) -> None:
    """List the most recent source issues, newest at the bottom."""
    builder.fill(region)
    if not issues:
        builder.write(
            region.x, region.y, "No source issues recorded", max_width=region.width, fg="green"
        )
        return
    start, end = log_window(len(issues), region.height, 0)
    for row, issue in enumerate(issues[start:end]):
        fg = "red" if issue.kind == "failed" else "yellow"
        builder.write(region.x, region.y + row, issue.format_line(), max_width=region.width, fg=fg)


def status_text(view: ViewState, stats: DashboardStats) -> str:
    """Left-hand status summary, e.g. ``Records: 12/40 (filtered) | WARN 2 ERROR 1``."""
    if view.search.active:
        records = f"Records: {stats.shown}/{stats.total} (filtered)"
    else:
        records = f"Records: {stats.total}"
    level = view.capture_filter.min_level.label
    capture = f"min>={level}" if view.filter_enabled else "min=off"
    if view.show_issues:
        position = "ISSUES"
    elif view.follow:
        position = "FOLLOW"
    else:
        position = f"+{view.scroll_of(LOG_REGION)}"
    parts = [
        records,
        f"WARN {stats.warn_count} ERROR {stats.error_count}",
        capture,
        position,
    ]
    if stats.dropped:
        parts.append(f"dropped {stats.dropped}")
    if stats.issue_count:
        parts.append(f"issues {stats.issue_count}")
    return " " + " | ".join(parts)


def paint_status(
    builder: FrameBuilder,
    region: Region,
    view: ViewState,
    stats: DashboardStats,
) -> None:
    builder.fill(region, STATUS_CELL)
    left = status_text(view, stats)
    used = builder.write(region.x, region.y, left, max_width=region.width, reverse=True)
    if view.status_message:
        fg, bold = SEVERITY_STYLES.get(view.status_severity, ("white", False))
        message = f" {view.status_message} "
        start = max(region.x + used + 1, region.right - cell_len(message))
        builder.write(
            start,
            region.y,
            message,
            max_width=region.right - start,
            fg=fg,
            bold=bold,
            reverse=True,
        )


def paint_input(builder: FrameBuilder, region: Region, view: ViewState) -> None:
    builder.fill(region)
    if view.search_mode:
        prompt = "/" + view.input_buffer
        used = builder.write(region.x, region.y, prompt, max_width=region.width, bold=True)
        builder.write(region.x + used, region.y, " ", max_width=region.width - used, reverse=True)
        return
    if view.search.active:
        builder.write(
            region.x,
            region.y,
            f"search: {view.search.expression}  (c to clear)",
            max_width=region.width,
            fg="cyan",
        )
        return
    builder.write(region.x, region.y, HELP_TEXT, max_width=region.width, fg="bright_black")
