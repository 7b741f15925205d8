"""Capture filter and display search expressions for the log pane."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..exceptions import FilterError
from ..models import LogRecord, Severity

_LEVEL_TERM_RE = re.compile(r"^level(>=|<=|=|>|<)(\w+)$", re.IGNORECASE)
_LEVEL_PREFIX_RE = re.compile(r"^level[<>=]", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class FilterPredicate:
    """Ingest-time filter: records below ``min_level`` never reach the ring buffer."""

    min_level: Severity = Severity.DEBUG

    def matches(self, record: LogRecord) -> bool:
        return record.level >= self.min_level

    def next_level(self) -> FilterPredicate:
        """Cycle DEBUG → INFO → WARN → ERROR → CRITICAL → DEBUG."""
        levels = list(Severity)
        index = levels.index(self.min_level)
        return FilterPredicate(min_level=levels[(index + 1) % len(levels)])


@dataclass(frozen=True, slots=True)
class SearchFilter:
    """Paint-time filter parsed from a search expression; never discards records."""

    expression: str = ""
    words: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    patterns: tuple[re.Pattern[str], ...] = ()
    level_checks: tuple[tuple[str, Severity], ...] = ()

    @property
    def active(self) -> bool:
        return bool(self.words or self.sources or self.patterns or self.level_checks)

    def matches(self, record: LogRecord) -> bool:
        if not self.active:
            return True
        for op, level in self.level_checks:
            if not _compare(record.level, op, level):
                return False
        if self.sources and record.source.lower() not in self.sources:
            return False
        haystack = record.search_text()
        for word in self.words:
            if word not in haystack:
                return False
        for pattern in self.patterns:
            if not pattern.search(f"{record.source} {record.message}"):
                return False
        return True


def _compare(value: Severity, op: str, level: Severity) -> bool:
    if op == ">=":
        return value >= level
    if op == "<=":
        return value <= level
    if op == ">":
        return value > level
    if op == "<":
        return value < level
    return value == level


def parse_filter(expression: str) -> SearchFilter:
    """Parse a space-separated search expression.

    Terms: ``level>=WARN`` (also ``=``, ``>``, ``<``, ``<=``), ``source:name``,
    ``re:<regex>`` and bare words matched case-insensitively against
    ``"source message"``. All terms must match.
    """
    text = expression.strip()
    if not text:
        return SearchFilter()

    words: list[str] = []
    sources: list[str] = []
    patterns: list[re.Pattern[str]] = []
    level_checks: list[tuple[str, Severity]] = []
    for term in text.split():
        lowered = term.lower()
        if _LEVEL_PREFIX_RE.match(term):
            match = _LEVEL_TERM_RE.match(term)
            if match is None:
                raise FilterError(f"Malformed level term: {term!r}")
            try:
                level = Severity.parse(match.group(2))
            except ValueError as exc:
                raise FilterError(str(exc)) from exc
            level_checks.append((match.group(1), level))
        elif lowered.startswith("source:"):
            name = term[len("source:") :]
            if not name:
                raise FilterError("source: requires a name")
            sources.append(name.lower())
        elif lowered.startswith("re:"):
            raw = term[len("re:") :]
            if not raw:
                raise FilterError("re: requires a pattern")
            try:
                patterns.append(re.compile(raw, re.IGNORECASE))
            except re.error as exc:
                raise FilterError(f"Invalid regex {raw!r}: {exc}") from exc
        else:
            words.append(lowered)

    return SearchFilter(
        expression=text,
        words=tuple(words),
        sources=tuple(sources),
        patterns=tuple(patterns),
        level_checks=tuple(level_checks),
    )
