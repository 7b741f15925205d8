"""Tests for the render loop state machine against an in-memory terminal."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from logdeck.exceptions import TerminalIOError
from logdeck.issues import IssueLog
from logdeck.models import LogRecord, Severity
from logdeck.ui.event_queue import BoundedEventQueue
from logdeck.ui.filters import FilterPredicate
from logdeck.ui.loop import LoopState, RenderLoop
from logdeck.ui.models import LOG_REGION, Command, CommandKind, ViewState
from logdeck.ui.ring_buffer import RecordRing
from logdeck.ui.terminal import MemoryTerminal


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _record(seq: int, level: Severity = Severity.INFO, source: str = "test") -> LogRecord:
    return LogRecord(level=level, message=f"record {seq}", source=source, seq=seq)


def _make_loop(
    terminal: MemoryTerminal,
    *,
    capacity: int = 100,
    queue_capacity: int = 500,
    **kwargs: Any,
) -> RenderLoop:
    kwargs.setdefault("clock", FakeClock())
    kwargs.setdefault("sleep", lambda _seconds: None)
    kwargs.setdefault("redraw_interval", 0.001)
    return RenderLoop(
        terminal=terminal,
        queue=BoundedEventQueue(capacity=queue_capacity),
        ring=RecordRing(capacity=capacity),
        source_name="test",
        **kwargs,
    )


def test_quit_key_returns_zero_and_restores_terminal() -> None:
    terminal = MemoryTerminal(80, 24, keys=["q"])
    loop = _make_loop(terminal)

    assert loop.run() == 0
    assert terminal.restored
    assert not terminal.raw
    assert terminal.mode_changes == ["raw", "restored"]
    assert loop.state is LoopState.SHUTTING_DOWN


def test_quit_after_first_frame_still_restores_terminal() -> None:
    terminal = MemoryTerminal(80, 24, keys=["", "q"])
    loop = _make_loop(terminal)

    assert loop.run() == 0
    assert loop.frames == 1
    assert terminal.restored
    assert "logdeck" in terminal.screen_text()[0]


def test_terminal_write_failure_propagates_after_restore() -> None:
    terminal = MemoryTerminal(80, 24, fail_writes=True)
    loop = _make_loop(terminal)

    with pytest.raises(TerminalIOError):
        loop.run()
    assert terminal.restored
    assert not terminal.raw
    assert loop.state is LoopState.SHUTTING_DOWN


def test_overflowing_ring_shows_most_recent_records() -> None:
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal, capacity=100)
    for seq in range(1, 151):
        assert loop.queue.enqueue(_record(seq))

    assert loop.tick() is True
    assert [record.seq for record in loop.ring.snapshot()] == list(range(51, 151))

    screen = terminal.screen_text()
    assert "record 150" in screen[21]
    assert "record 130" in screen[1]
    assert "Records: 100" in screen[22]


def test_drain_is_bounded_per_tick() -> None:
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal, drain_batch_size=10)
    for seq in range(25):
        loop.queue.enqueue(_record(seq))

    loop.tick()
    assert len(loop.ring) == 10
    assert len(loop.queue) == 15
    loop.tick()
    loop.tick()
    assert len(loop.ring) == 25


def test_capture_filter_discards_records_below_minimum() -> None:
    terminal = MemoryTerminal(80, 24)
    view = ViewState(capture_filter=FilterPredicate(min_level=Severity.WARN))
    loop = _make_loop(terminal, view=view)
    loop.queue.enqueue(_record(1, Severity.INFO))
    loop.queue.enqueue(_record(2, Severity.ERROR))

    loop.tick()
    assert [record.seq for record in loop.ring.snapshot()] == [2]
    assert loop.filtered_out == 1


def test_toggle_filter_disables_capture_filter() -> None:
    terminal = MemoryTerminal(80, 24, keys=["f"])
    view = ViewState(capture_filter=FilterPredicate(min_level=Severity.ERROR))
    loop = _make_loop(terminal, view=view)
    loop.queue.enqueue(_record(1, Severity.DEBUG))

    loop.tick()
    assert not loop.view.filter_enabled
    assert len(loop.ring) == 1
    assert "min=off" in terminal.screen_text()[22]


def test_redraws_are_coalesced_to_the_interval() -> None:
    terminal = MemoryTerminal(80, 24)
    clock = FakeClock()
    loop = _make_loop(terminal, clock=clock, redraw_interval=0.033)

    assert loop.tick() is True
    loop.queue.enqueue(_record(1))
    clock.now = 0.010
    assert loop.tick() is False
    assert len(loop.ring) == 1
    clock.now = 0.050
    assert loop.tick() is True
    assert loop.frames == 2


def test_idle_tick_writes_nothing() -> None:
    terminal = MemoryTerminal(80, 24)
    clock = FakeClock()
    loop = _make_loop(terminal, clock=clock)
    loop.tick()
    writes = terminal.write_calls

    clock.now = 5.0
    assert loop.tick() is False
    assert terminal.write_calls == writes


def test_resize_recomputes_layout_and_redraws() -> None:
    terminal = MemoryTerminal(80, 24)
    clock = FakeClock()
    loop = _make_loop(terminal, clock=clock)
    loop.queue.enqueue(_record(1))
    loop.tick()

    terminal.resize(40, 10)
    clock.now = 1.0
    assert loop.tick() is True
    assert loop.layout is not None
    assert (loop.layout.width, loop.layout.height) == (40, 10)
    screen = terminal.screen_text()
    assert len(screen) == 10
    assert "record 1" in screen[1]
    assert screen[8].startswith(" Records: 1")


def test_tiny_terminal_renders_placeholder() -> None:
    terminal = MemoryTerminal(5, 2)
    loop = _make_loop(terminal)
    loop.tick()
    assert loop.layout is not None
    assert loop.layout.degraded
    assert terminal.screen_text()[0] == "termi"


def test_search_keys_apply_display_filter() -> None:
    terminal = MemoryTerminal(80, 24, keys=["/", "db", "\r"])
    loop = _make_loop(terminal)
    loop.queue.enqueue(_record(1, source="db"))
    loop.queue.enqueue(_record(2, source="api"))

    loop.tick()
    assert loop.view.search.expression == "db"
    assert not loop.view.search_mode
    assert not loop.dispatcher.search_mode
    assert [record.seq for record in loop.visible_records()] == [1]
    assert len(loop.ring) == 2
    assert "(filtered)" in terminal.screen_text()[22]


def test_malformed_search_keeps_previous_filter() -> None:
    loop = _make_loop(MemoryTerminal(80, 24))
    assert loop.apply_search("level>=WARN") is True
    assert loop.apply_search("level>>WARN") is False
    assert loop.view.search.expression == "level>=WARN"
    assert loop.view.status_message is not None
    assert loop.view.status_message.startswith("bad filter")
    assert loop.view.status_severity is Severity.WARN


def test_clear_command_removes_search() -> None:
    loop = _make_loop(MemoryTerminal(80, 24))
    loop.apply_search("timeout")
    loop.apply_command(Command(CommandKind.CLEAR))
    assert not loop.view.search.active


def test_scrolled_back_view_stays_anchored_while_records_arrive() -> None:
    terminal = MemoryTerminal(80, 24)
    clock = FakeClock()
    loop = _make_loop(terminal, clock=clock)
    for seq in range(50):
        loop.queue.enqueue(_record(seq))
    loop.tick()

    for _ in range(3):
        loop.apply_command(Command(CommandKind.SCROLL_UP))
    assert loop.view.scroll_of(LOG_REGION) == 3
    assert not loop.view.follow

    loop.queue.enqueue(_record(50))
    loop.queue.enqueue(_record(51))
    clock.now = 1.0
    loop.tick()
    assert loop.view.scroll_of(LOG_REGION) == 5

    loop.apply_command(Command(CommandKind.SCROLL_END))
    assert loop.view.follow
    assert loop.view.scroll_of(LOG_REGION) == 0


def test_scroll_home_is_clamped_to_oldest_record() -> None:
    terminal = MemoryTerminal(80, 24)
    clock = FakeClock()
    loop = _make_loop(terminal, clock=clock)
    for seq in range(52):
        loop.queue.enqueue(_record(seq))
    loop.tick()

    loop.apply_command(Command(CommandKind.SCROLL_HOME))
    clock.now = 1.0
    loop.tick()
    assert loop.view.scroll_of(LOG_REGION) == 31
    assert "record 0" in terminal.screen_text()[1]


def test_exit_when_drained_stops_after_source_closes() -> None:
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal, exit_when_drained=True)
    for seq in range(3):
        loop.queue.enqueue(_record(seq))
    loop.queue.close()

    assert loop.run() == 0
    assert len(loop.ring) == 3
    assert loop.frames == 1
    assert terminal.restored
    assert "(eof)" in terminal.screen_text()[0]


def test_diagnostic_warnings_surface_in_status_bar() -> None:
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal)
    loop.attach_logger(loop.logger)
    try:
        loop.logger.warning("source lagging")
        loop.tick()
    finally:
        loop.detach_logger(loop.logger)
    assert loop.view.status_message == "source lagging"
    assert "source lagging" in terminal.screen_text()[22]


def test_status_bar_keeps_latest_of_several_warnings() -> None:
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal)
    loop.attach_logger(loop.logger)
    try:
        loop.logger.warning("first warning")
        loop.logger.error("second problem")
        loop.tick()
        assert loop._status_handler is not None
        assert not loop._status_handler.messages
    finally:
        loop.detach_logger(loop.logger)
    assert loop.view.status_message == "second problem"
    assert loop.view.status_severity is Severity.ERROR


def test_idle_loop_sleeps_once_source_has_finished() -> None:
    sleeps: list[float] = []
    terminal = MemoryTerminal(80, 24, keys=["", "", "", "q"])
    loop = _make_loop(terminal, redraw_interval=0.2, sleep=sleeps.append)
    loop.queue.close()

    assert loop.run() == 0
    assert loop.ticks == 4
    assert sleeps == [0.2, 0.2, 0.2]


def test_export_key_writes_visible_records(tmp_path: Path) -> None:
    terminal = MemoryTerminal(80, 24)
    stamp = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
    loop = _make_loop(terminal, export_dir=tmp_path / "exports", now=lambda: stamp)
    loop.queue.enqueue(_record(1, source="api"))
    loop.queue.enqueue(_record(2, Severity.ERROR, source="db"))
    loop.queue.enqueue(_record(3, source="api"))
    loop.tick()
    assert loop.apply_search("source:api")

    terminal.feed("e")
    loop.tick()

    path = tmp_path / "exports" / "logdeck-export-20260301T120000Z.jsonl"
    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [row["seq"] for row in rows] == [1, 3]
    assert rows[0]["source"] == "api"
    assert rows[0]["level"] == "INFO"
    assert loop.view.status_message == f"exported 2 records to {path}"


def test_export_failure_is_shown_in_status_bar(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal, export_dir=blocker)
    loop.tick()

    assert loop.export_visible() is None
    assert loop.view.status_message is not None
    assert loop.view.status_message.startswith("export failed:")
    assert loop.view.status_severity is Severity.WARN


def test_source_issues_are_counted_and_listed() -> None:
    issues = IssueLog()
    clock = FakeClock()
    terminal = MemoryTerminal(80, 24)
    loop = _make_loop(terminal, issues=issues, clock=clock)
    loop.tick()

    issues.report("app.log", "parse", "line 4 is not a JSON object: {oops")
    clock.now += 1.0
    assert loop.tick() is True
    assert "issues 1" in terminal.screen_text()[22]

    terminal.feed("r")
    clock.now += 1.0
    loop.tick()
    assert loop.view.show_issues
    assert "parse" in terminal.screen_text()[1]
    assert "app.log: line 4 is not a JSON object" in terminal.screen_text()[1]
    assert "ISSUES" in terminal.screen_text()[22]

    terminal.feed("r")
    clock.now += 1.0
    loop.tick()
    assert not loop.view.show_issues
    assert "No records yet" in terminal.screen_text()[1]
