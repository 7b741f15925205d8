"""Application exception classes."""


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class LayoutError(Exception):
    """Raised (or returned) when the viewport is too small for the dashboard layout."""

    def __init__(self, message: str, *, width: int, height: int) -> None:
        super().__init__(message)
        self.width = width
        self.height = height


class QueueOverflow(Exception):
    """Raised when a producer cannot enqueue a record under the configured policy."""


class QueueClosed(QueueOverflow):
    """Raised when a producer enqueues into a queue that was already closed."""


class TerminalIOError(Exception):
    """Raised when the terminal cannot be read, written, or switched between modes."""


class FilterError(Exception):
    """Raised when a filter expression cannot be parsed."""


class SourceError(Exception):
    """Raised when an event source cannot be opened or read."""


class ExportError(Exception):
    """Raised when visible records cannot be written to an export file."""
