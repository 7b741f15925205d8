"""Event sources that feed the dashboard queue from a producer thread."""

from .base import EventSource
from .demo import DemoSource
from .tail import FileTailSource, LineSource, LineTail, StreamSource, parse_line

__all__ = [
    "DemoSource",
    "EventSource",
    "FileTailSource",
    "LineSource",
    "LineTail",
    "StreamSource",
    "parse_line",
]
