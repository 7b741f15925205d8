"""Tests for frame building, cell diffing and flush bookkeeping."""

from __future__ import annotations

import pytest

from logdeck.exceptions import TerminalIOError
from logdeck.ui.models import Cell
from logdeck.ui.screen import (
    Frame,
    FrameBuilder,
    ScreenBuffer,
    apply_patches,
    diff,
    frame_to_grid,
)
from logdeck.ui.terminal import MemoryTerminal


def _frame(width: int, height: int, lines: dict[int, str]) -> Frame:
    builder = FrameBuilder(width, height)
    for y, text in lines.items():
        builder.write(0, y, text)
    return builder.build()


def test_diff_of_identical_frames_is_empty() -> None:
    frame = _frame(20, 3, {0: "hello", 2: "world"})
    assert diff(frame, frame) == []
    assert diff(frame, _frame(20, 3, {0: "hello", 2: "world"})) == []


def test_diff_without_previous_frame_is_full_redraw() -> None:
    frame = _frame(10, 4, {1: "abc"})
    patches = diff(None, frame)
    assert [(patch.x, patch.y, len(patch.cells)) for patch in patches] == [
        (0, 0, 10),
        (0, 1, 10),
        (0, 2, 10),
        (0, 3, 10),
    ]


def test_diff_on_size_change_is_full_redraw() -> None:
    small = _frame(10, 2, {0: "abc"})
    large = _frame(12, 3, {0: "abc"})
    assert len(diff(small, large)) == 3


def test_diff_emits_only_changed_runs() -> None:
    before = _frame(20, 2, {0: "hello world"})
    after = _frame(20, 2, {0: "hallo world!"})
    patches = diff(before, after)
    assert [(patch.x, patch.y, patch.text) for patch in patches] == [
        (1, 0, "a"),
        (11, 0, "!"),
    ]


def test_diff_detects_style_only_changes() -> None:
    builder = FrameBuilder(10, 1)
    builder.write(0, 0, "warn")
    plain = builder.build()
    builder.write(0, 0, "warn", fg="yellow")
    styled = builder.build()

    patches = diff(plain, styled)
    assert len(patches) == 1
    assert patches[0].text == "warn"
    assert patches[0].cells[0].fg == "yellow"


def test_diff_then_apply_round_trips() -> None:
    before = _frame(16, 4, {0: "header", 1: "line one", 2: "line two"})
    after = _frame(16, 4, {0: "header", 1: "line 1", 3: "new line"})

    grid = frame_to_grid(before)
    apply_patches(grid, diff(before, after))
    assert grid == frame_to_grid(after)


def test_wide_characters_occupy_two_cells() -> None:
    builder = FrameBuilder(10, 1)
    used = builder.write(0, 0, "日本x")
    frame = builder.build()

    assert used == 5
    assert frame.cell(0, 0).char == "日"
    assert frame.cell(1, 0).is_continuation
    assert frame.cell(2, 0).char == "本"
    assert frame.cell(4, 0).char == "x"
    assert frame.row_text(0).startswith("日本x")


def test_wide_character_that_does_not_fit_is_padded() -> None:
    builder = FrameBuilder(3, 1)
    used = builder.write(0, 0, "ab日")
    assert used == 3
    assert builder.build().row_text(0) == "ab "


def test_overwriting_half_of_wide_glyph_clears_the_other_half() -> None:
    builder = FrameBuilder(6, 1)
    builder.write(0, 0, "日")
    builder.write(1, 0, "x")
    frame = builder.build()
    assert frame.cell(0, 0) == Cell(" ")
    assert frame.cell(1, 0).char == "x"


def test_diff_run_never_starts_on_continuation_cell() -> None:
    before = FrameBuilder(6, 1)
    before.write(0, 0, "日", fg="red")
    after = FrameBuilder(6, 1)
    after.write(0, 0, "日", fg="red")
    after.put(1, 0, Cell("", fg="blue"))

    patches = diff(before.build(), after.build())
    assert len(patches) == 1
    assert patches[0].x == 0
    assert patches[0].cells[0].char == "日"


def test_write_clips_to_max_width_and_frame_bounds() -> None:
    builder = FrameBuilder(8, 2)
    assert builder.write(2, 0, "abcdefgh", max_width=3) == 3
    assert builder.write(6, 1, "abcdefgh") == 2
    assert builder.write(0, 5, "ignored") == 0
    frame = builder.build()
    assert frame.row_text(0) == "  abc   "
    assert frame.row_text(1) == "      ab"


def test_screen_buffer_flushes_only_delta() -> None:
    terminal = MemoryTerminal(12, 3)
    screen = ScreenBuffer()
    first = _frame(12, 3, {0: "status ok"})
    second = _frame(12, 3, {0: "status no"})

    assert screen.present(first, terminal) == 36
    assert screen.present(first, terminal) == 0
    assert screen.present(second, terminal) == 2
    assert terminal.screen_text()[0] == "status no   "
    assert screen.frames_flushed == 2
    assert terminal.write_calls == 2


def test_failed_flush_keeps_patches_pending() -> None:
    terminal = MemoryTerminal(12, 3, fail_writes=True)
    screen = ScreenBuffer()
    frame = _frame(12, 3, {0: "hello"})

    with pytest.raises(TerminalIOError):
        screen.present(frame, terminal)
    assert screen.front is None
    assert len(screen.pending) == 3

    terminal.fail_writes = False
    assert screen.flush(frame, terminal) == 36
    assert screen.front is frame
    assert screen.pending == []


def test_invalidate_forces_full_redraw() -> None:
    terminal = MemoryTerminal(5, 2)
    screen = ScreenBuffer()
    frame = _frame(5, 2, {0: "ab"})
    screen.present(frame, terminal)
    screen.invalidate()
    assert screen.present(frame, terminal) == 10
