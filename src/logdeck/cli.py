"""logdeck CLI: live terminal dashboard (or plain line output) over a log stream."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.style import Style
from rich.text import Text

from .config import Settings, load_settings
from .exceptions import ConfigError, TerminalIOError
from .issues import IssueLog
from .log_setup import setup_logger
from .models import LogRecord
from .redaction import sanitize_text
from .sources import DemoSource, EventSource, FileTailSource, StreamSource
from .ui.event_queue import BoundedEventQueue
from .ui.filters import FilterPredicate
from .ui.loop import RenderLoop
from .ui.models import ViewState
from .ui.render import SEVERITY_STYLES
from .ui.ring_buffer import RecordRing
from .ui.terminal import ConsoleTerminal

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_TERMINAL_ERROR = 3
EXIT_INTERRUPTED = 130

_SOURCE_JOIN_TIMEOUT_SECONDS = 1.0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse logdeck CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="logdeck",
        description="Interactive terminal dashboard for a live stream of log records.",
    )
    parser.add_argument(
        "--source",
        type=str,
        default="demo",
        help="'demo' for synthetic records, '-' for stdin, or a log file path to tail.",
    )
    parser.add_argument("--format", choices=["auto", "jsonl", "plain"], default="auto")
    parser.add_argument("--capacity", type=int, default=None, help="Ring buffer capacity.")
    parser.add_argument("--queue-capacity", type=int, default=None)
    parser.add_argument("--queue-policy", choices=["block", "drop_oldest"], default=None)
    parser.add_argument("--redraw-interval-ms", type=int, default=None)
    parser.add_argument("--drain-batch-size", type=int, default=None)
    parser.add_argument("--min-level", type=str, default=None)
    parser.add_argument(
        "--ui-mode",
        choices=["live", "plain"],
        default="live",
        help="Terminal output mode; plain prints records line by line without raw mode.",
    )
    parser.add_argument(
        "--follow",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Keep tailing a file after reaching its end.",
    )
    parser.add_argument(
        "--exit-on-eof",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Leave the live dashboard once the source is exhausted and drained.",
    )
    parser.add_argument("--demo-count", type=int, default=None)
    parser.add_argument(
        "--export-dir",
        type=Path,
        default=None,
        help="Directory for files written by the export key (e).",
    )
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG diagnostics.")
    return parser.parse_args(argv)


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "ring_capacity": args.capacity,
        "queue_capacity": args.queue_capacity,
        "queue_policy": args.queue_policy,
        "redraw_interval_ms": args.redraw_interval_ms,
        "drain_batch_size": args.drain_batch_size,
        "min_level": args.min_level,
        "export_dir": args.export_dir,
        "log_file": args.log_file,
        "log_level": "DEBUG" if args.verbose else None,
    }


def build_source(
    args: argparse.Namespace,
    settings: Settings,
    queue: BoundedEventQueue,
    *,
    issues: IssueLog | None = None,
    stdin: TextIO | None = None,
) -> EventSource:
    """Create the event source named by ``--source``."""
    if args.source == "demo":
        return DemoSource(
            queue,
            rate_per_second=settings.demo_rate_per_second,
            count=args.demo_count,
            enqueue_timeout=settings.enqueue_timeout_seconds,
            issues=issues,
        )
    if args.source == "-":
        return StreamSource(
            queue,
            stdin or sys.stdin,
            fmt=args.format,
            enqueue_timeout=settings.enqueue_timeout_seconds,
            issues=issues,
        )
    path = Path(args.source)
    if not args.follow and not path.is_file():
        raise ConfigError(f"--source file does not exist: {path}")
    return FileTailSource(
        queue,
        path,
        fmt=args.format,
        follow=args.follow,
        poll_interval=settings.tail_poll_interval_seconds,
        enqueue_timeout=settings.enqueue_timeout_seconds,
        issues=issues,
    )


def render_plain_line(record: LogRecord) -> Text:
    fg, bold = SEVERITY_STYLES.get(record.level, ("white", False))
    return Text(record.format_line(), style=Style(color=fg, bold=bold or None))


def run_plain(
    *,
    source: EventSource,
    queue: BoundedEventQueue,
    settings: Settings,
    console: Console,
) -> int:
    """Print records as they arrive until the source is exhausted."""
    capture = FilterPredicate(min_level=settings.min_severity)
    source.start()
    try:
        while True:
            batch = queue.drain(settings.drain_batch_size)
            for record in batch:
                if capture.matches(record):
                    console.print(render_plain_line(record), soft_wrap=True)
            if queue.exhausted:
                break
            if not batch:
                queue.wait_for_items(settings.redraw_interval_seconds)
    finally:
        source.stop()
        queue.close()
        source.join(_SOURCE_JOIN_TIMEOUT_SECONDS)
    return EXIT_OK


def _open_key_input(args: argparse.Namespace) -> TextIO | None:
    """Keys come from the controlling tty when stdin carries the records."""
    if args.source != "-":
        return None
    try:
        return open("/dev/tty", encoding="utf-8")
    except OSError as exc:
        raise TerminalIOError(f"cannot open /dev/tty for key input: {exc}") from exc


def run_live(
    *,
    args: argparse.Namespace,
    source: EventSource,
    queue: BoundedEventQueue,
    settings: Settings,
    logger: Any,
    issues: IssueLog | None = None,
) -> int:
    """Run the interactive dashboard on the controlling terminal."""
    key_input = _open_key_input(args)
    try:
        terminal = ConsoleTerminal(
            console=Console(highlight=False),
            input_stream=key_input,
            write_timeout=settings.write_timeout_seconds,
        )
        loop = RenderLoop(
            terminal=terminal,
            queue=queue,
            ring=RecordRing(capacity=settings.ring_capacity),
            view=ViewState(capture_filter=FilterPredicate(min_level=settings.min_severity)),
            redraw_interval=settings.redraw_interval_seconds,
            drain_batch_size=settings.drain_batch_size,
            max_commands_per_tick=settings.max_commands_per_tick,
            source_name=source.name,
            issues=issues,
            export_dir=settings.export_dir,
            exit_when_drained=args.exit_on_eof,
            logger=logger,
        )
        source.start()
        return loop.run()
    finally:
        source.stop()
        queue.close()
        source.join(_SOURCE_JOIN_TIMEOUT_SECONDS)
        if key_input is not None:
            key_input.close()


def main() -> int:
    """Run the logdeck dashboard."""
    args = parse_args()
    console = Console(highlight=False)

    try:
        settings = load_settings(**_settings_overrides(args))
    except ConfigError as exc:
        logger = setup_logger()
        logger.error("Configuration failure: %s", sanitize_text(str(exc)))
        return EXIT_CONFIG_ERROR

    ui_mode = args.ui_mode
    if ui_mode == "live" and not console.is_terminal:
        ui_mode = "plain"

    if ui_mode == "live":
        logger = setup_logger(level=settings.log_level, log_file=settings.log_file)
    else:
        logger = setup_logger(level=settings.log_level)
    if ui_mode != args.ui_mode:
        logger.warning("stdout is not a terminal; falling back to --ui-mode plain")
    logger.info("logdeck starting", extra={"ui_mode": ui_mode, **settings.safe_summary()})

    queue = BoundedEventQueue(capacity=settings.queue_capacity, policy=settings.queue_policy)
    issues = IssueLog()
    try:
        source = build_source(args, settings, queue, issues=issues)
    except ConfigError as exc:
        logger.error("Configuration failure: %s", sanitize_text(str(exc)))
        return EXIT_CONFIG_ERROR

    try:
        if ui_mode == "plain":
            return run_plain(source=source, queue=queue, settings=settings, console=console)
        return run_live(
            args=args,
            source=source,
            queue=queue,
            settings=settings,
            logger=logger,
            issues=issues,
        )
    except TerminalIOError as exc:
        logger.error("Terminal failure: %s", sanitize_text(str(exc)))
        return EXIT_TERMINAL_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
