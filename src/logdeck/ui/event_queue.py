"""Bounded, thread-safe handoff between an event source and the render loop.

The queue is the only object shared across threads. Sources call
``enqueue``; the render thread calls ``drain``. What happens when the queue is
full is an explicit policy:

* ``block``: the producer waits for space (backpressure). With a timeout the
  call gives up and reports failure.
* ``drop_oldest``: the oldest queued record is discarded to make room and
  counted in ``dropped`` (lossy, producer never waits).
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import get_args

from ..config import QueuePolicy
from ..exceptions import QueueClosed, QueueOverflow
from ..models import LogRecord


class BoundedEventQueue:
    """Single-producer/single-consumer queue with a configurable full policy."""

    def __init__(self, *, capacity: int, policy: QueuePolicy = "block") -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if policy not in get_args(QueuePolicy):
            raise ValueError(f"Unknown queue policy: {policy!r}")
        self.capacity = capacity
        self.policy: QueuePolicy = policy
        self._items: deque[LogRecord] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self.dropped = 0
        self.rejected = 0
        self.accepted = 0

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def exhausted(self) -> bool:
        """True once the producer closed the queue and everything was drained."""
        with self._cond:
            return self._closed and not self._items

    def enqueue(self, record: LogRecord, *, timeout: float | None = None) -> bool:
        """Offer one record; returns False if it was not accepted.

        Under ``block`` this waits for space (at most ``timeout`` seconds when
        given). Under ``drop_oldest`` it never waits and always accepts.
        A closed queue accepts nothing.
        """
        with self._cond:
            if self._closed:
                self.rejected += 1
                return False
            if len(self._items) >= self.capacity:
                if self.policy == "drop_oldest":
                    self._items.popleft()
                    self.dropped += 1
                else:
                    deadline = None if timeout is None else time.monotonic() + timeout
                    while len(self._items) >= self.capacity and not self._closed:
                        remaining = None if deadline is None else deadline - time.monotonic()
                        if remaining is not None and remaining <= 0:
                            self.rejected += 1
                            return False
                        self._cond.wait(remaining)
                    if self._closed:
                        self.rejected += 1
                        return False
            self._items.append(record)
            self.accepted += 1
            self._cond.notify_all()
            return True

    def enqueue_or_raise(self, record: LogRecord, *, timeout: float | None = None) -> None:
        """Like ``enqueue`` but reports failure as an exception."""
        if self.closed:
            raise QueueClosed("event queue is closed")
        if not self.enqueue(record, timeout=timeout):
            if self.closed:
                raise QueueClosed("event queue closed while waiting for space")
            raise QueueOverflow(
                f"event queue full (capacity={self.capacity}, policy={self.policy})"
            )

    def drain(self, max_items: int) -> list[LogRecord]:
        """Remove and return up to ``max_items`` records without blocking."""
        with self._cond:
            count = min(max_items, len(self._items))
            out = [self._items.popleft() for _ in range(count)]
            if out:
                self._cond.notify_all()
            return out

    def wait_for_items(self, timeout: float) -> bool:
        """Block the consumer until a record is queued, the queue closes, or timeout."""
        with self._cond:
            if self._items or self._closed:
                return True
            self._cond.wait(timeout)
            return bool(self._items) or self._closed

    def close(self) -> None:
        """Stop accepting records and wake any blocked producer."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
