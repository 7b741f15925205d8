"""Typed screen/view models for terminal dashboard presentation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..models import Severity
from .filters import FilterPredicate, SearchFilter


@dataclass(frozen=True, slots=True)
class Cell:
    """One terminal cell; an empty ``char`` is the right half of a wide glyph."""

    char: str = " "
    fg: str | None = None
    bg: str | None = None
    bold: bool = False
    reverse: bool = False

    @property
    def is_continuation(self) -> bool:
        return self.char == ""


BLANK = Cell()


@dataclass(frozen=True, slots=True)
class Region:
    """Named rectangular sub-area of a frame."""

    name: str
    x: int
    y: int
    width: int
    height: int
    scroll_offset: int = 0

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def overlaps(self, other: Region) -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )


class CommandKind(Enum):
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    SCROLL_HOME = "scroll_home"
    SCROLL_END = "scroll_end"
    TOGGLE_FILTER = "toggle_filter"
    CYCLE_LEVEL = "cycle_level"
    BEGIN_SEARCH = "begin_search"
    EDIT_SEARCH = "edit_search"
    SET_SEARCH = "set_search"
    CANCEL_SEARCH = "cancel_search"
    CLEAR = "clear"
    EXPORT = "export"
    TOGGLE_ISSUES = "toggle_issues"
    REDRAW = "redraw"
    QUIT = "quit"
    RESIZE = "resize"


@dataclass(frozen=True, slots=True)
class Command:
    """Tagged command produced by the input dispatcher and applied by the render loop.

    ``width``/``height`` are only meaningful for RESIZE and ``text`` only for
    EDIT_SEARCH/SET_SEARCH.
    """

    kind: CommandKind
    width: int = 0
    height: int = 0
    text: str = ""

    @classmethod
    def resize(cls, width: int, height: int) -> Command:
        return cls(CommandKind.RESIZE, width=width, height=height)


LOG_REGION = "log"


@dataclass(slots=True)
class ViewState:
    """Mutable view model; only the render thread touches it."""

    capture_filter: FilterPredicate = field(default_factory=FilterPredicate)
    filter_enabled: bool = True
    search: SearchFilter = field(default_factory=SearchFilter)
    active_region: str = LOG_REGION
    scroll: dict[str, int] = field(default_factory=dict)
    follow: bool = True
    search_mode: bool = False
    show_issues: bool = False
    input_buffer: str = ""
    status_message: str | None = None
    status_severity: Severity = Severity.INFO
    quit: bool = False

    def scroll_of(self, region: str) -> int:
        return self.scroll.get(region, 0)

    def set_status(self, message: str | None, severity: Severity = Severity.INFO) -> None:
        self.status_message = message
        self.status_severity = severity
