"""Daily ledger statistics."""

from __future__ import annotations

from collections import Counter
from datetime import date

from habit_engine.schema import CompletionEvent


def compute_daily_stats(events: list[CompletionEvent], day: date) -> dict:
    """Summarize one day's events: totals, completed/skipped lists, subsets used."""

    completed = [e for e in events if e.is_completed]
    skipped = [e for e in events if not e.is_completed]
    subsets = sorted({e.subset for e in events if e.subset})

    return {
        "date": day,
        "total_entries": len(events),
        "total_duration": sum(e.duration for e in completed),
        "total_intensity": sum(e.intensity for e in completed),
        "completed": completed,
        "skipped": skipped,
        "subsets": subsets,
    }


def completed_counts(events: list[CompletionEvent]) -> Counter:
    return Counter(e.code for e in events if e.is_completed)
