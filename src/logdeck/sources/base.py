"""Producer-thread contract shared by every event source."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from ..exceptions import SourceError
from ..issues import IssueLog
from ..models import LogRecord
from ..ui.event_queue import BoundedEventQueue


class EventSource(ABC):
    """Background producer feeding a ``BoundedEventQueue``.

    Subclasses implement ``produce`` and push records through ``emit``. The
    queue is closed when ``produce`` returns or fails, which is how the
    render loop learns the source is exhausted.
    """

    def __init__(
        self,
        queue: BoundedEventQueue,
        *,
        name: str,
        enqueue_timeout: float | None = None,
        issues: IssueLog | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.queue = queue
        self.name = name
        self.enqueue_timeout = enqueue_timeout
        self.issues = issues
        self.logger = logger or logging.getLogger(f"logdeck.sources.{type(self).__name__}")
        self.produced = 0
        self.rejected = 0
        self.error: Exception | None = None
        self._seq = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"source {self.name!r} already started")
        self._thread = threading.Thread(
            target=self._run,
            name=f"logdeck-source-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Ask the producer to finish.

        A producer blocked on a full queue also needs ``queue.close()``.
        """
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the producer thread; returns True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if a stop was requested meanwhile."""
        return self._stop_event.wait(seconds)

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def emit(self, record: LogRecord) -> bool:
        """Offer one record to the queue; False means the producer should stop."""
        if self.queue.enqueue(record, timeout=self.enqueue_timeout):
            self.produced += 1
            return True
        self.rejected += 1
        if self.queue.closed:
            return False
        self.report(
            "enqueue",
            f"record {record.seq} not enqueued within {self.enqueue_timeout}s",
            level=logging.DEBUG,
        )
        return True

    def report(self, kind: str, message: str, *, level: int = logging.WARNING) -> None:
        """Record a problem where the dashboard can show it, and log it."""
        if self.issues is not None:
            self.issues.report(self.name, kind, message)
        self.logger.log(level, "Source issue (%s): %s", kind, message, extra={"source": self.name})

    def _run(self) -> None:
        self.logger.info("Event source started", extra={"source": self.name})
        try:
            self.produce()
        except (SourceError, OSError) as exc:
            self.error = exc
            self.report("failed", str(exc), level=logging.ERROR)
        finally:
            self.queue.close()
            self.logger.info(
                "Event source finished",
                extra={"source": self.name, "produced": self.produced, "rejected": self.rejected},
            )

    def run_inline(self) -> None:
        """Run ``produce`` on the calling thread (tests and plain mode)."""
        self._run()

    @abstractmethod
    def produce(self) -> None:
        """Emit records until exhausted or ``stopping`` becomes True."""
