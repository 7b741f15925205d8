"""Synthetic record generator for trying the dashboard without a real producer."""

from __future__ import annotations

import random

from ..issues import IssueLog
from ..models import LogRecord, Severity
from ..ui.event_queue import BoundedEventQueue
from .base import EventSource

DEMO_SOURCES = ("api", "db", "worker", "scheduler", "auth", "cache")

_MESSAGES: dict[Severity, tuple[str, ...]] = {
    Severity.DEBUG: (
        "cache lookup key=user:{n} hit={flag}",
        "pool stats active={n} idle={m}",
        "heartbeat seq={n}",
    ),
    Severity.INFO: (
        "GET /api/items/{n} 200 in {m}ms",
        "job {n} finished in {m}ms",
        "session opened for user {n}",
        "scheduled run {n} queued",
    ),
    Severity.WARN: (
        "slow query took {m}ms (threshold 250ms)",
        "retrying upstream call attempt={n}",
        "queue depth {m} above soft limit",
    ),
    Severity.ERROR: (
        "upstream returned 503 for request {n}",
        "job {n} failed: timeout after {m}ms",
    ),
    Severity.CRITICAL: ("database connection pool exhausted ({m} waiting)",),
}

_LEVEL_WEIGHTS = (
    (Severity.DEBUG, 25),
    (Severity.INFO, 55),
    (Severity.WARN, 12),
    (Severity.ERROR, 7),
    (Severity.CRITICAL, 1),
)


class DemoSource(EventSource):
    """Emit random but plausible records at ``rate_per_second``.

    ``count`` bounds the number of records; None runs until stopped.
    """

    def __init__(
        self,
        queue: BoundedEventQueue,
        *,
        rate_per_second: float = 20.0,
        count: int | None = None,
        seed: int | None = None,
        enqueue_timeout: float | None = None,
        issues: IssueLog | None = None,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be > 0")
        super().__init__(queue, name="demo", enqueue_timeout=enqueue_timeout, issues=issues)
        self.rate_per_second = rate_per_second
        self.count = count
        self._random = random.Random(seed)

    def make_record(self) -> LogRecord:
        levels = [level for level, _ in _LEVEL_WEIGHTS]
        weights = [weight for _, weight in _LEVEL_WEIGHTS]
        level = self._random.choices(levels, weights=weights, k=1)[0]
        template = self._random.choice(_MESSAGES[level])
        message = template.format(
            n=self._random.randint(1, 9999),
            m=self._random.randint(1, 2000),
            flag=self._random.choice(("true", "false")),
        )
        return LogRecord(
            level=level,
            message=message,
            source=self._random.choice(DEMO_SOURCES),
            seq=self.next_seq(),
        )

    def produce(self) -> None:
        interval = 1.0 / self.rate_per_second
        emitted = 0
        while not self.stopping:
            if self.count is not None and emitted >= self.count:
                return
            if not self.emit(self.make_record()):
                return
            emitted += 1
            if self.wait(interval):
                return
