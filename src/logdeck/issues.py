"""Thread-safe record of problems hit by event sources.

Sources append from their producer threads; the render loop reads snapshots
for the issues view and the status-bar count.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .redaction import sanitize_display_text


@dataclass(frozen=True, slots=True)
class SourceIssue:
    """One parse, enqueue or read failure reported by a source."""

    source: str
    kind: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def format_line(self) -> str:
        stamp = self.timestamp.strftime("%H:%M:%S")
        return f"{stamp} {self.kind:<10} {self.source}: {self.message}"


class IssueLog:
    """Bounded list of the most recent source issues plus a running total."""

    def __init__(self, *, capacity: int = 200) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._items: deque[SourceIssue] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._total = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def total(self) -> int:
        """Issues reported so far, including ones no longer retained."""
        with self._lock:
            return self._total

    def report(self, source: str, kind: str, message: str) -> SourceIssue:
        issue = SourceIssue(
            source=sanitize_display_text(source),
            kind=kind,
            message=sanitize_display_text(message),
        )
        with self._lock:
            self._items.append(issue)
            self._total += 1
        return issue

    def snapshot(self) -> list[SourceIssue]:
        with self._lock:
            return list(self._items)
