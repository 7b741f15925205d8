"""Terminal dashboard engine: layout, frame diffing, input and the render loop."""

from .event_queue import BoundedEventQueue
from .layout import LayoutConfig, LayoutResult, compute_regions
from .loop import LoopState, RenderLoop
from .models import Cell, Command, CommandKind, Region, ViewState
from .ring_buffer import RecordRing
from .screen import CellPatch, Frame, FrameBuilder, ScreenBuffer, diff
from .terminal import ConsoleTerminal, MemoryTerminal, Terminal, terminal_session

__all__ = [
    "BoundedEventQueue",
    "Cell",
    "CellPatch",
    "Command",
    "CommandKind",
    "ConsoleTerminal",
    "Frame",
    "FrameBuilder",
    "LayoutConfig",
    "LayoutResult",
    "LoopState",
    "MemoryTerminal",
    "RecordRing",
    "Region",
    "RenderLoop",
    "ScreenBuffer",
    "Terminal",
    "ViewState",
    "compute_regions",
    "diff",
    "terminal_session",
]
