"""Write the records currently on screen to a JSONL file."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from .exceptions import ExportError
from .models import LogRecord


def export_path(directory: Path, *, now: datetime | None = None) -> Path:
    timestamp = (now or datetime.now(UTC)).strftime("%Y%m%dT%H%M%SZ")
    return directory / f"logdeck-export-{timestamp}.jsonl"


def export_records(
    records: Iterable[LogRecord],
    directory: Path,
    *,
    now: datetime | None = None,
) -> tuple[Path, int]:
    """Write one JSON object per record; returns the file path and record count.

    An existing file for the same second is overwritten.
    """
    output_path = export_path(directory, now=now)
    count = 0
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as fh:
            for record in records:
                row = {
                    "ts": record.timestamp.isoformat(),
                    "level": record.level.label,
                    "source": record.source,
                    "msg": record.message,
                    "seq": record.seq,
                }
                fh.write(json.dumps(row, ensure_ascii=False))
                fh.write("\n")
                count += 1
    except OSError as exc:
        raise ExportError(f"Failed writing export file {output_path}: {exc}") from exc
    return output_path, count
