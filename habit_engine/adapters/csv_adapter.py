"""CSV adapter for day-partitioned ledger files."""

from __future__ import annotations

import csv
import os
from datetime import datetime
from typing import Callable, Optional

from habit_engine.schema import COMPLETED, SKIPPED, CompletionEvent

FIELDNAMES = ["timestamp", "code", "status", "duration", "intensity", "subset"]

_REQUIRED_FIELDS = {"timestamp", "code", "status"}
_STATUS_ALIASES = {COMPLETED: COMPLETED, SKIPPED: SKIPPED, "done": COMPLETED, "skip": SKIPPED}


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as local time."""

    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    timestamp = datetime.fromisoformat(value)
    if timestamp.tzinfo is None:
        timestamp = timestamp.astimezone()
    return timestamp


def normalize_status(raw: str) -> str:
    status = _STATUS_ALIASES.get(raw.strip().lower())
    if status is None:
        raise ValueError(f"invalid status '{raw}'")
    return status


def parse_row(row: dict, row_number: int) -> CompletionEvent:
    missing = [name for name in sorted(_REQUIRED_FIELDS) if not row.get(name)]
    if missing:
        raise ValueError(f"Row {row_number}: missing required fields {missing}")

    try:
        timestamp = parse_timestamp(row["timestamp"])
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Row {row_number}: malformed timestamp") from exc

    try:
        status = normalize_status(row["status"])
    except ValueError as exc:
        raise ValueError(f"Row {row_number}: {exc}") from exc

    numbers = {}
    for name in ("duration", "intensity"):
        raw = row.get(name)
        try:
            numbers[name] = int(raw) if raw not in (None, "") else 0
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Row {row_number}: invalid {name}") from exc

    subset_raw = row.get("subset")
    subset = subset_raw.strip() if subset_raw else None

    if status == SKIPPED:
        return CompletionEvent.skipped(row["code"].strip(), timestamp, subset)
    return CompletionEvent.completed(row["code"].strip(), timestamp, numbers["duration"], numbers["intensity"], subset)


def format_row(event: CompletionEvent) -> dict:
    return {
        "timestamp": event.timestamp.isoformat(timespec="seconds"),
        "code": event.code,
        "status": event.outcome,
        "duration": str(event.duration),
        "intensity": str(event.intensity),
        "subset": event.subset or "",
    }


def parse(file_path: str, on_error: Optional[Callable[[ValueError], None]] = None) -> list[CompletionEvent]:
    """Parse a ledger CSV file into completion events.

    Malformed rows raise ``ValueError`` unless ``on_error`` is given, in which
    case it receives the error and the row is dropped.
    """

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []

        events: list[CompletionEvent] = []
        for row_number, row in enumerate(reader, start=2):
            try:
                events.append(parse_row(row, row_number))
            except ValueError as exc:
                if on_error is None:
                    raise
                on_error(exc)
        return events


def write(file_path: str, events: list[CompletionEvent]) -> None:
    """Write a complete ledger file, header included."""

    with open(file_path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDNAMES)
        writer.writeheader()
        for event in events:
            writer.writerow(format_row(event))


def append(file_path: str, event: CompletionEvent) -> None:
    """Append one event, writing the header first when the file is new."""

    is_new = not os.path.exists(file_path) or os.path.getsize(file_path) == 0
    with open(file_path, "a", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=FIELDNAMES)
        if is_new:
            writer.writeheader()
        writer.writerow(format_row(event))
