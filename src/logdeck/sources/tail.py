"""
File and stream sources that turn log lines into LogRecords.

Two line formats are understood:

* JSONL, one object per line, using ``ts``/``timestamp``, ``level``,
  ``msg``/``message`` and ``source``/``logger`` keys.
* Plain text, ``<timestamp> <LEVEL> [source] message``; the ``[source]``
  part is optional.

Lines that match neither are kept as INFO records carrying the raw text so
nothing a producer writes silently disappears.
"""

from __future__ import annotations

import codecs
import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal, TextIO

from ..exceptions import SourceError
from ..issues import IssueLog
from ..models import LogRecord, Severity
from ..ui.event_queue import BoundedEventQueue
from .base import EventSource

LineFormat = Literal["auto", "jsonl", "plain"]

_TIMESTAMP_KEYS = ("ts", "timestamp", "time", "@timestamp")
_LEVEL_KEYS = ("level", "severity", "levelname")
_MESSAGE_KEYS = ("msg", "message", "event")
_SOURCE_KEYS = ("source", "logger", "name", "stage")

PLAIN_LINE_PATTERN = re.compile(
    r"^(?P<ts>\S+)\s+"
    r"(?P<level>[A-Za-z]+)\s+"
    r"(?:\[(?P<source>[^\]]+)\]\s*)?"
    r"(?P<msg>.*)$"
)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch seconds or an ISO-8601 string; None when unrecognised."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(float(value), UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def _first(obj: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in obj and obj[key] not in (None, ""):
            return obj[key]
    return None


def _record(
    *,
    message: str,
    level: Severity,
    source: str,
    timestamp: datetime | None,
    seq: int | None,
) -> LogRecord:
    fields: dict[str, Any] = {"message": message, "level": level, "source": source, "seq": seq}
    if timestamp is not None:
        fields["timestamp"] = timestamp
    return LogRecord(**fields)


def parse_json_line(line: str, *, default_source: str, seq: int | None = None) -> LogRecord | None:
    """Parse one JSONL line; None if the line is not a JSON object."""
    try:
        obj = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None

    try:
        level = Severity.parse(_first(obj, _LEVEL_KEYS) or Severity.INFO)
    except ValueError:
        level = Severity.INFO
    message = _first(obj, _MESSAGE_KEYS)
    source = _first(obj, _SOURCE_KEYS)
    return _record(
        message=str(message) if message is not None else line,
        level=level,
        source=str(source) if source is not None else default_source,
        timestamp=parse_timestamp(_first(obj, _TIMESTAMP_KEYS)),
        seq=seq,
    )


def parse_plain_line(line: str, *, default_source: str, seq: int | None = None) -> LogRecord:
    """Parse a ``<ts> <LEVEL> [source] message`` line, or keep it raw as INFO."""
    match = PLAIN_LINE_PATTERN.match(line)
    if match:
        timestamp = parse_timestamp(match.group("ts"))
        try:
            level = Severity.parse(match.group("level"))
        except ValueError:
            level = None
        if timestamp is not None and level is not None:
            return _record(
                message=match.group("msg"),
                level=level,
                source=match.group("source") or default_source,
                timestamp=timestamp,
                seq=seq,
            )
    return _record(
        message=line,
        level=Severity.INFO,
        source=default_source,
        timestamp=None,
        seq=seq,
    )


def parse_line(
    line: str,
    *,
    fmt: LineFormat = "auto",
    default_source: str = "-",
    seq: int | None = None,
) -> LogRecord | None:
    """Parse one line in the given format; blank lines yield None."""
    if not line.strip():
        return None
    if fmt == "plain":
        return parse_plain_line(line, default_source=default_source, seq=seq)
    if fmt == "jsonl" or line.lstrip().startswith("{"):
        record = parse_json_line(line, default_source=default_source, seq=seq)
        if record is not None:
            return record
    return parse_plain_line(line, default_source=default_source, seq=seq)


class LineTail:
    """
    Incremental line reader for one file.

    Tracks the byte offset between polls, buffers an incomplete trailing
    line until its newline arrives, and starts over from the beginning when
    the file shrinks (truncation or rotation in place). A UTF-8 sequence
    split across two reads is held back by an incremental decoder until its
    remaining bytes arrive. An unterminated line longer than ``max_bytes``
    characters is handed out as it stands.
    """

    def __init__(self, path: Path, *, max_bytes: int = 1 << 20) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        self.path = path
        self.max_bytes = max_bytes
        self.offset = 0
        self.partial = ""
        self.truncations = 0
        self.overlong_lines = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def read_lines(self) -> list[str]:
        """Return complete lines appended since the last call."""
        # Missing file: the producer may not have created it yet.
        if not self.path.exists():
            return []
        size = self.path.stat().st_size
        if size < self.offset:
            self.offset = 0
            self.partial = ""
            self._decoder.reset()
            self.truncations += 1
        if size == self.offset:
            return []

        with self.path.open("rb") as handle:
            handle.seek(self.offset)
            data = handle.read(self.max_bytes)
        self.offset += len(data)

        text = self.partial + self._decoder.decode(data)
        lines = text.splitlines()
        if text.endswith(("\n", "\r")):
            self.partial = ""
        else:
            self.partial = lines.pop() if lines else ""
        if len(self.partial) >= self.max_bytes:
            lines.append(self.partial)
            self.partial = ""
            self.overlong_lines += 1
        return lines

    def take_partial(self) -> str:
        """Hand out (and forget) the buffered unterminated line."""
        partial = self.partial + self._decoder.decode(b"", final=True)
        self.partial = ""
        return partial

    @property
    def at_eof(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size <= self.offset


class LineSource(EventSource):
    """Shared line → record step for the file and stream sources."""

    fmt: LineFormat = "auto"

    def record_for(self, line: str) -> LogRecord | None:
        """Parse one line; a JSON line that fails to parse is reported and kept raw."""
        if not line.strip():
            return None
        seq = self.next_seq()
        if self.fmt == "jsonl" or (self.fmt == "auto" and line.lstrip().startswith("{")):
            record = parse_json_line(line, default_source=self.name, seq=seq)
            if record is not None:
                return record
            self.report("parse", f"line {seq} is not a JSON object: {line[:80]}")
        return parse_plain_line(line, default_source=self.name, seq=seq)

    def emit_lines(self, lines: list[str]) -> bool:
        for line in lines:
            record = self.record_for(line)
            if record is not None and not self.emit(record):
                return False
        return True


class FileTailSource(LineSource):
    """Poll a log file and emit a record per line."""

    def __init__(
        self,
        queue: BoundedEventQueue,
        path: Path,
        *,
        fmt: LineFormat = "auto",
        follow: bool = True,
        poll_interval: float = 0.25,
        enqueue_timeout: float | None = None,
        issues: IssueLog | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(
            queue,
            name=name or path.name,
            enqueue_timeout=enqueue_timeout,
            issues=issues,
        )
        self.path = path
        self.fmt = fmt
        self.follow = follow
        self.poll_interval = poll_interval
        self.tail = LineTail(path)

    def _read(self) -> list[str]:
        truncations = self.tail.truncations
        overlong = self.tail.overlong_lines
        try:
            lines = self.tail.read_lines()
        except OSError as exc:
            raise SourceError(f"failed reading {self.path}: {exc}") from exc
        if self.tail.truncations != truncations:
            self.report("truncated", f"{self.path} shrank; reading again from the start")
        if self.tail.overlong_lines != overlong:
            self.report("overlong", f"line longer than {self.tail.max_bytes} characters was split")
        return lines

    def produce(self) -> None:
        if not self.follow and not self.path.exists():
            raise SourceError(f"log file not found: {self.path}")

        while not self.stopping:
            lines = self._read()
            if not self.emit_lines(lines):
                return
            if not self.follow and self.tail.at_eof:
                # Not following: a final unterminated line is still a record.
                self.emit_lines([self.tail.take_partial()])
                return
            if lines and not self.tail.at_eof:
                continue
            if self.wait(self.poll_interval):
                return


class StreamSource(LineSource):
    """Read records from a text stream such as stdin until EOF."""

    def __init__(
        self,
        queue: BoundedEventQueue,
        stream: TextIO,
        *,
        fmt: LineFormat = "auto",
        enqueue_timeout: float | None = None,
        issues: IssueLog | None = None,
        name: str = "stdin",
    ) -> None:
        super().__init__(queue, name=name, enqueue_timeout=enqueue_timeout, issues=issues)
        self.stream = stream
        self.fmt = fmt

    def produce(self) -> None:
        for raw in self.stream:
            if self.stopping:
                return
            if not self.emit_lines([raw.rstrip("\r\n")]):
                return
