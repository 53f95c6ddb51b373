"""Convert legacy space-separated daily logs to the CSV ledger format."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

from habit_engine.adapters import csv_adapter
from habit_engine.schema import SKIPPED, CompletionEvent


def parse_legacy_line(line: str) -> CompletionEvent:
    """Parse ``TIMESTAMP CODE STATUS DURATION INTENSITY``."""

    parts = line.split()
    if len(parts) != 5:
        raise ValueError(f"expected 5 fields, got {len(parts)}")
    try:
        timestamp = csv_adapter.parse_timestamp(parts[0])
    except Exception as exc:  # noqa: BLE001
        raise ValueError("invalid timestamp") from exc
    status = csv_adapter.normalize_status(parts[2])
    try:
        duration, intensity = int(parts[3]), int(parts[4])
    except Exception as exc:  # noqa: BLE001
        raise ValueError("invalid duration or intensity") from exc

    if status == SKIPPED:
        return CompletionEvent.skipped(parts[1], timestamp)
    return CompletionEvent.completed(parts[1], timestamp, duration, intensity)


def read_legacy_log(file_path: str) -> list[CompletionEvent]:
    events = []
    with open(file_path, encoding="utf-8") as handle:
        for number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                events.append(parse_legacy_line(line))
            except ValueError as exc:
                logger.warning("{}:{}: dropping malformed line ({})", os.path.basename(file_path), number, exc)
    return events


def migrate_file(path: Path) -> str:
    """Migrate one ``.log`` file. Returns ``converted``, ``skipped`` or ``failed``."""

    with open(path, encoding="utf-8") as handle:
        first_line = handle.readline()
    if first_line.startswith("timestamp,"):
        return "skipped"

    events = read_legacy_log(str(path))
    if not events:
        logger.warning("{}: no valid entries found", path.name)
        return "failed"

    backup = path.with_name(path.name + ".bak")
    os.replace(path, backup)
    target = path.with_suffix(".csv")
    try:
        csv_adapter.write(str(target), events)
    except OSError:
        os.replace(backup, path)
        raise
    logger.info("{} -> {}: converted {} entries", path.name, target.name, len(events))
    return "converted"


def migrate_logs(logs_dir: str | Path) -> dict:
    """Migrate every legacy log in ``logs_dir`` and tally the outcomes."""

    results = {"converted": 0, "skipped": 0, "failed": 0, "files": {}}
    root = Path(logs_dir)
    if not root.is_dir():
        return results

    for path in sorted(root.glob("*.log")):
        try:
            outcome = migrate_file(path)
        except OSError as exc:
            logger.error("{}: migration failed: {}", path.name, exc)
            outcome = "failed"
        results[outcome] += 1
        results["files"][path.name] = outcome
    return results
