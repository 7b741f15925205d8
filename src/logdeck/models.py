"""Typed log record model shared by event sources and the dashboard."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .redaction import sanitize_display_text


class Severity(IntEnum):
    """Ordered log severity; comparisons follow numeric order."""

    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40
    CRITICAL = 50

    @property
    def label(self) -> str:
        return self.name

    @classmethod
    def parse(cls, value: Any) -> Severity:
        """Parse a level name, alias, or stdlib logging number into a Severity."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for level in sorted(cls, reverse=True):
                if value >= level:
                    return level
            return cls.DEBUG
        if isinstance(value, str):
            key = value.strip().upper()
            key = _SEVERITY_ALIASES.get(key, key)
            if key in cls.__members__:
                return cls[key]
        raise ValueError(f"Unknown severity level: {value!r}")


_SEVERITY_ALIASES = {
    "TRACE": "DEBUG",
    "DBG": "DEBUG",
    "INFORMATION": "INFO",
    "NOTICE": "INFO",
    "WARNING": "WARN",
    "ERR": "ERROR",
    "FATAL": "CRITICAL",
    "CRIT": "CRITICAL",
}


class LogRecord(BaseModel):
    """One displayable log/event record, immutable once ingested."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    level: Severity = Severity.INFO
    message: str = ""
    source: str = Field(default="-", description="Producer tag shown beside each line")
    seq: int | None = Field(default=None, description="Producer sequence number if known")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        """Store timestamps as aware UTC; naive input is assumed to be UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("level", mode="before")
    @classmethod
    def coerce_level(cls, value: Any) -> Severity:
        return Severity.parse(value)

    @field_validator("message", "source", mode="before")
    @classmethod
    def clean_text(cls, value: Any) -> str:
        """Redact secrets and strip control sequences before display."""
        if value is None:
            return ""
        return sanitize_display_text(str(value))

    @field_validator("source")
    @classmethod
    def default_source(cls, value: str) -> str:
        return value or "-"

    def search_text(self) -> str:
        """Lower-cased haystack used by free-text display filters."""
        return f"{self.source} {self.message}".lower()

    def format_line(self) -> str:
        """Render as a single plain-text line (plain UI mode and tests)."""
        return (
            f"{self.timestamp.strftime('%H:%M:%S')} "
            f"{self.level.label:<8} {self.source:<12} {self.message}"
        )
