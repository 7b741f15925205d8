"""Typed settings loader for the logdeck dashboard."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .models import Severity

QueuePolicy = Literal["block", "drop_oldest"]

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    ring_capacity: int = Field(default=1000, alias="LOGDECK_RING_CAPACITY")
    queue_capacity: int = Field(default=2000, alias="LOGDECK_QUEUE_CAPACITY")
    queue_policy: QueuePolicy = Field(default="block", alias="LOGDECK_QUEUE_POLICY")
    enqueue_timeout_seconds: float | None = Field(
        default=None,
        alias="LOGDECK_ENQUEUE_TIMEOUT_SECONDS",
    )

    redraw_interval_ms: int = Field(default=33, alias="LOGDECK_REDRAW_INTERVAL_MS")
    drain_batch_size: int = Field(default=500, alias="LOGDECK_DRAIN_BATCH_SIZE")
    max_commands_per_tick: int = Field(default=32, alias="LOGDECK_MAX_COMMANDS_PER_TICK")
    write_timeout_seconds: float = Field(default=0.5, alias="LOGDECK_WRITE_TIMEOUT_SECONDS")
    min_level: str = Field(default="DEBUG", alias="LOGDECK_MIN_LEVEL")

    export_dir: Path = Field(default=Path("."), alias="LOGDECK_EXPORT_DIR")
    log_file: Path = Field(default=Path("./logdeck.log"), alias="LOGDECK_LOG_FILE")
    log_level: str = Field(default="INFO", alias="LOGDECK_LOG_LEVEL")

    demo_rate_per_second: float = Field(default=20.0, alias="LOGDECK_DEMO_RATE_PER_SECOND")
    tail_poll_interval_seconds: float = Field(
        default=0.25,
        alias="LOGDECK_TAIL_POLL_INTERVAL_SECONDS",
    )

    @field_validator("enqueue_timeout_seconds", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("min_level", "log_level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Reject values the render loop cannot run with."""
        if self.ring_capacity <= 0:
            raise ValueError("LOGDECK_RING_CAPACITY must be > 0.")
        if self.queue_capacity <= 0:
            raise ValueError("LOGDECK_QUEUE_CAPACITY must be > 0.")
        if self.enqueue_timeout_seconds is not None and self.enqueue_timeout_seconds <= 0:
            raise ValueError("LOGDECK_ENQUEUE_TIMEOUT_SECONDS must be > 0 when set.")
        if not (1 <= self.redraw_interval_ms <= 1000):
            raise ValueError("LOGDECK_REDRAW_INTERVAL_MS must be between 1 and 1000.")
        if self.drain_batch_size <= 0:
            raise ValueError("LOGDECK_DRAIN_BATCH_SIZE must be > 0.")
        if self.max_commands_per_tick <= 0:
            raise ValueError("LOGDECK_MAX_COMMANDS_PER_TICK must be > 0.")
        if self.write_timeout_seconds <= 0:
            raise ValueError("LOGDECK_WRITE_TIMEOUT_SECONDS must be > 0.")
        try:
            Severity.parse(self.min_level)
        except ValueError as exc:
            raise ValueError(f"LOGDECK_MIN_LEVEL is not a known level: {self.min_level}") from exc
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"LOGDECK_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}."
            )
        if self.demo_rate_per_second <= 0:
            raise ValueError("LOGDECK_DEMO_RATE_PER_SECOND must be > 0.")
        if self.tail_poll_interval_seconds <= 0:
            raise ValueError("LOGDECK_TAIL_POLL_INTERVAL_SECONDS must be > 0.")
        return self

    @property
    def redraw_interval_seconds(self) -> float:
        return self.redraw_interval_ms / 1000.0

    @property
    def min_severity(self) -> Severity:
        return Severity.parse(self.min_level)

    def safe_summary(self) -> dict[str, Any]:
        """Return a config summary for the startup diagnostic line."""
        return {
            "ring_capacity": self.ring_capacity,
            "queue_capacity": self.queue_capacity,
            "queue_policy": self.queue_policy,
            "enqueue_timeout_seconds": self.enqueue_timeout_seconds,
            "redraw_interval_ms": self.redraw_interval_ms,
            "drain_batch_size": self.drain_batch_size,
            "max_commands_per_tick": self.max_commands_per_tick,
            "write_timeout_seconds": self.write_timeout_seconds,
            "min_level": self.min_level,
            "export_dir": str(self.export_dir),
            "log_file": str(self.log_file),
            "log_level": self.log_level,
        }


def load_settings(**overrides: Any) -> Settings:
    """Load and validate settings, raising ConfigError on failure.

    Keyword overrides (field names, e.g. from CLI flags) win over the
    environment; ``None`` values are ignored so unset flags fall through.
    """
    init_kwargs = {key: value for key, value in overrides.items() if value is not None}
    try:
        return Settings(**init_kwargs)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc
