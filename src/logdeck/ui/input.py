"""Raw key decoding and key → command translation for the dashboard."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from .models import Command, CommandKind
from .terminal import Terminal

# Named keys produced by ``decode_keys``; printable input keeps its character.
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
PAGE_UP = "page_up"
PAGE_DOWN = "page_down"
HOME = "home"
END = "end"
ENTER = "enter"
ESCAPE = "escape"
BACKSPACE = "backspace"
CTRL_C = "ctrl_c"
CTRL_L = "ctrl_l"
CTRL_U = "ctrl_u"

# EDIT_SEARCH payloads that are edits rather than typed text.
ERASE_CHAR = "\b"
ERASE_LINE = "\x15"

_ESCAPE_SEQUENCES = {
    "\x1b[A": UP,
    "\x1b[B": DOWN,
    "\x1b[C": RIGHT,
    "\x1b[D": LEFT,
    "\x1bOA": UP,
    "\x1bOB": DOWN,
    "\x1bOC": RIGHT,
    "\x1bOD": LEFT,
    "\x1b[5~": PAGE_UP,
    "\x1b[6~": PAGE_DOWN,
    "\x1b[H": HOME,
    "\x1b[F": END,
    "\x1bOH": HOME,
    "\x1bOF": END,
    "\x1b[1~": HOME,
    "\x1b[4~": END,
    "\x1b[7~": HOME,
    "\x1b[8~": END,
}
_CONTROL_KEYS = {
    "\r": ENTER,
    "\n": ENTER,
    "\x7f": BACKSPACE,
    "\x08": BACKSPACE,
    "\x03": CTRL_C,
    "\x0c": CTRL_L,
    "\x15": CTRL_U,
}


@dataclass(frozen=True, slots=True)
class KeyEvent:
    key: str

    @property
    def printable(self) -> bool:
        return len(self.key) == 1 and self.key.isprintable()


def decode_keys(data: str) -> list[KeyEvent]:
    """Split a chunk of raw terminal input into key events.

    Unknown escape sequences are consumed whole and ignored; a lone ESC is
    reported as ``escape``.
    """
    events: list[KeyEvent] = []
    i = 0
    while i < len(data):
        char = data[i]
        if char == "\x1b":
            matched = False
            for seq, name in _ESCAPE_SEQUENCES.items():
                if data.startswith(seq, i):
                    events.append(KeyEvent(name))
                    i += len(seq)
                    matched = True
                    break
            if matched:
                continue
            if i + 1 < len(data) and data[i + 1] in "[O":
                # Skip an unrecognised CSI/SS3 sequence up to its final byte.
                j = i + 2
                while j < len(data) and not ("@" <= data[j] <= "~"):
                    j += 1
                i = j + 1
                continue
            events.append(KeyEvent(ESCAPE))
            i += 1
            continue
        if char in _CONTROL_KEYS:
            events.append(KeyEvent(_CONTROL_KEYS[char]))
        elif char.isprintable():
            events.append(KeyEvent(char))
        i += 1
    return events


_NORMAL_KEYMAP: dict[str, CommandKind] = {
    "q": CommandKind.QUIT,
    "Q": CommandKind.QUIT,
    CTRL_C: CommandKind.QUIT,
    "k": CommandKind.SCROLL_UP,
    UP: CommandKind.SCROLL_UP,
    "j": CommandKind.SCROLL_DOWN,
    DOWN: CommandKind.SCROLL_DOWN,
    PAGE_UP: CommandKind.PAGE_UP,
    "b": CommandKind.PAGE_UP,
    PAGE_DOWN: CommandKind.PAGE_DOWN,
    " ": CommandKind.PAGE_DOWN,
    "g": CommandKind.SCROLL_HOME,
    HOME: CommandKind.SCROLL_HOME,
    "G": CommandKind.SCROLL_END,
    END: CommandKind.SCROLL_END,
    "f": CommandKind.TOGGLE_FILTER,
    "l": CommandKind.CYCLE_LEVEL,
    "/": CommandKind.BEGIN_SEARCH,
    "c": CommandKind.CLEAR,
    "e": CommandKind.EXPORT,
    "r": CommandKind.TOGGLE_ISSUES,
    CTRL_L: CommandKind.REDRAW,
}

HELP_TEXT = (
    "q quit  j/k scroll  g/G top/tail  / search  c clear  f filter  l level"
    "  e export  r issues"
)


class InputDispatcher:
    """Non-blocking translator from terminal input to commands.

    ``poll`` reports a size change first (as RESIZE), then one pending key.
    In search mode printable keys edit the search buffer instead of acting as
    shortcuts; the render loop flips ``search_mode`` when it applies
    BEGIN_SEARCH / SET_SEARCH / CANCEL_SEARCH.
    """

    def __init__(self, terminal: Terminal) -> None:
        self.terminal = terminal
        self.search_mode = False
        self._pending: deque[KeyEvent] = deque()
        self._last_size: tuple[int, int] | None = None

    def poll(self) -> Command | None:
        size = self.terminal.get_size()
        if size != self._last_size:
            self._last_size = size
            return Command.resize(*size)

        if not self._pending:
            data = self.terminal.read_input()
            if data:
                self._pending.extend(decode_keys(data))
        while self._pending:
            command = self.translate(self._pending.popleft())
            if command is not None:
                return command
        return None

    def translate(self, event: KeyEvent) -> Command | None:
        if self.search_mode:
            return self._translate_search(event)
        kind = _NORMAL_KEYMAP.get(event.key)
        if kind is None:
            return None
        return Command(kind)

    def _translate_search(self, event: KeyEvent) -> Command | None:
        if event.key == ENTER:
            return Command(CommandKind.SET_SEARCH)
        if event.key == ESCAPE:
            return Command(CommandKind.CANCEL_SEARCH)
        if event.key == CTRL_C:
            return Command(CommandKind.QUIT)
        if event.key == BACKSPACE:
            return Command(CommandKind.EDIT_SEARCH, text=ERASE_CHAR)
        if event.key == CTRL_U:
            return Command(CommandKind.EDIT_SEARCH, text=ERASE_LINE)
        if event.printable:
            return Command(CommandKind.EDIT_SEARCH, text=event.key)
        return None
