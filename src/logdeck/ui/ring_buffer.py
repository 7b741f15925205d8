"""Fixed-capacity record store with oldest-first eviction for the log pane."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from ..models import LogRecord, Severity


class RecordRing:
    """Keep the most recent ``capacity`` records; the oldest are evicted first."""

    def __init__(self, *, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._records: deque[LogRecord] = deque(maxlen=capacity)
        self.evicted = 0
        self.total_appended = 0
        # Bumped on every mutation so the render loop can detect changes cheaply.
        self.version = 0

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: LogRecord) -> None:
        if len(self._records) == self.capacity:
            self.evicted += 1
        self._records.append(record)
        self.total_appended += 1
        self.version += 1

    def extend(self, records: Iterable[LogRecord]) -> int:
        added = 0
        for record in records:
            self.append(record)
            added += 1
        return added

    def clear(self) -> None:
        self._records.clear()
        self.version += 1

    def snapshot(self, *, newest_first: bool = False) -> list[LogRecord]:
        """Return a copy of tracked records in display order."""
        items = list(self._records)
        if newest_first:
            items.reverse()
        return items

    def count_matching(
        self,
        *,
        severity: Severity | None = None,
        contains: str | None = None,
    ) -> int:
        """Count records for the status bar health summary."""
        total = 0
        search = contains.lower() if contains else None
        for record in self._records:
            if severity is not None and record.level != severity:
                continue
            if search is not None and search not in record.message.lower():
                continue
            total += 1
        return total
