"""Append-only, day-partitioned completion ledger."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime, timedelta, tzinfo
from pathlib import Path
from typing import Optional

from loguru import logger

from habit_engine.adapters import csv_adapter
from habit_engine.errors import StoreError
from habit_engine.schema import CompletionEvent

WEEK_DAYS = 7


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    return datetime.now(tz) if tz is not None else datetime.now().astimezone()


def as_aware(timestamp: datetime) -> datetime:
    """Naive timestamps are taken to be in the system local zone."""

    return timestamp if timestamp.tzinfo is not None else timestamp.astimezone()


class HistorySnapshot:
    """Read-only view of the ledger at one instant.

    Every query made during a single selection goes through one snapshot, so
    counts, last-completed dates and the daily intensity total agree with
    each other even if the ledger is appended to meanwhile.
    """

    def __init__(self, events: list[CompletionEvent], now: Optional[datetime] = None):
        self.now = as_aware(now or local_now())
        self.today = self.now.date()
        self.events = sorted(
            (replace(e, timestamp=as_aware(e.timestamp)) if e.timestamp.tzinfo is None else e for e in events),
            key=lambda e: e.timestamp,
        )

        week_start = self.today - timedelta(days=WEEK_DAYS - 1)
        self._today_counts: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        self._week_counts: dict[str, int] = defaultdict(int)
        self._last_completed: dict[str, datetime] = {}
        self._today_intensity = 0
        self._today_events: list[CompletionEvent] = []

        for event in self.events:
            day = self.local_date(event.timestamp)
            if day == self.today:
                self._today_events.append(event)
                self._today_counts[event.code][0 if event.is_completed else 1] += 1
                if event.is_completed:
                    self._today_intensity += event.intensity
            if not event.is_completed:
                continue
            if week_start <= day <= self.today:
                self._week_counts[event.code] += 1
            self._last_completed[event.code] = event.timestamp

    def local_date(self, timestamp: datetime) -> date:
        return timestamp.astimezone(self.now.tzinfo).date()

    def count_today(self, code: str) -> tuple[int, int]:
        completed, skipped = self._today_counts.get(code, (0, 0))
        return completed, skipped

    def count_week(self, code: str) -> int:
        """Completions over the rolling window of today and the six days before."""

        return self._week_counts.get(code, 0)

    def ever_completed(self, code: str) -> bool:
        return code in self._last_completed

    def last_completed_at(self, code: str) -> Optional[datetime]:
        return self._last_completed.get(code)

    def today_cumulative_intensity(self) -> int:
        return self._today_intensity

    def today_events(self) -> list[CompletionEvent]:
        return list(self._today_events)


class HistoryStore:
    """Ledger interface. Queries are answered from a fresh snapshot.

    ``tz`` is the zone that decides which calendar day an event belongs to;
    ``None`` means the system local zone.
    """

    tz: Optional[tzinfo] = None

    def day_of(self, timestamp: datetime) -> date:
        return as_aware(timestamp).astimezone(self.tz).date()

    def load_all(self) -> list[CompletionEvent]:
        raise NotImplementedError

    def load_day(self, day: date) -> list[CompletionEvent]:
        raise NotImplementedError

    def append(self, event: CompletionEvent) -> None:
        raise NotImplementedError

    def clear_day(self, day: date) -> int:
        raise NotImplementedError

    def snapshot(self, now: Optional[datetime] = None) -> HistorySnapshot:
        return HistorySnapshot(self.load_all(), now or local_now(self.tz))

    def count_today(self, code: str) -> tuple[int, int]:
        return self.snapshot().count_today(code)

    def count_week(self, code: str) -> int:
        return self.snapshot().count_week(code)

    def ever_completed(self, code: str) -> bool:
        return self.snapshot().ever_completed(code)

    def last_completed_at(self, code: str) -> Optional[datetime]:
        return self.snapshot().last_completed_at(code)

    def today_cumulative_intensity(self) -> int:
        return self.snapshot().today_cumulative_intensity()


class MemoryHistoryStore(HistoryStore):
    """In-process ledger used by tests and simulations."""

    def __init__(self, events: Optional[list[CompletionEvent]] = None, tz: Optional[tzinfo] = None):
        self.events: list[CompletionEvent] = list(events or [])
        self.tz = tz

    def load_all(self) -> list[CompletionEvent]:
        return list(self.events)

    def load_day(self, day: date) -> list[CompletionEvent]:
        return [e for e in self.events if self.day_of(e.timestamp) == day]

    def append(self, event: CompletionEvent) -> None:
        self.events.append(event)

    def clear_day(self, day: date) -> int:
        kept = [e for e in self.events if self.day_of(e.timestamp) != day]
        removed = len(self.events) - len(kept)
        self.events = kept
        return removed


class CsvHistoryStore(HistoryStore):
    """One ``YYYYMMDD.csv`` file per calendar day in the store's zone."""

    def __init__(self, logs_dir: str | Path, tz: Optional[tzinfo] = None):
        self.logs_dir = Path(logs_dir)
        self.tz = tz

    def day_path(self, day: date) -> Path:
        return self.logs_dir / f"{day:%Y%m%d}.csv"

    def _read(self, path: Path) -> list[CompletionEvent]:
        def warn(exc: ValueError) -> None:
            logger.warning("Skipping malformed ledger row in {}: {}", path.name, exc)

        try:
            return csv_adapter.parse(str(path), on_error=warn)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StoreError(f"error reading {path}: {exc}") from exc

    def load_day(self, day: date) -> list[CompletionEvent]:
        return self._read(self.day_path(day))

    def load_all(self) -> list[CompletionEvent]:
        if not self.logs_dir.exists():
            return []
        try:
            files = sorted(self.logs_dir.glob("*.csv"))
        except OSError as exc:
            raise StoreError(f"error listing {self.logs_dir}: {exc}") from exc

        events: list[CompletionEvent] = []
        for path in files:
            events.extend(self._read(path))
        return events

    def append(self, event: CompletionEvent) -> None:
        path = self.day_path(self.day_of(event.timestamp))
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            csv_adapter.append(str(path), event)
        except OSError as exc:
            raise StoreError(f"error writing {path}: {exc}") from exc
        logger.debug("Logged {} {} to {}", event.outcome, event.code, path.name)

    def clear_day(self, day: date) -> int:
        path = self.day_path(day)
        removed = len(self.load_day(day))
        try:
            path.unlink()
        except FileNotFoundError:
            return 0
        except OSError as exc:
            raise StoreError(f"error removing {path}: {exc}") from exc
        return removed
