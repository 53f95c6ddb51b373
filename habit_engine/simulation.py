"""Deterministic multi-day selection simulation."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

import numpy as np

from habit_engine.errors import ExhaustedTodayError, NoMatchError
from habit_engine.history import MemoryHistoryStore, as_aware, local_now
from habit_engine.schema import CompletionEvent, Constraint, Item, Subset
from habit_engine.selection import select_item

PICK_SPACING_MINUTES = 30
# 08:00 to midnight; every pick of a day stays on that calendar day.
DAY_WINDOW_MINUTES = 16 * 60


def simulate_days(
    catalog: list[Item],
    days: int = 5,
    picks_per_day: int = 10,
    daily_budget_cap: int = 30,
    seed: int = 42,
    constraint: Optional[Constraint] = None,
    subsets: Optional[dict[str, Subset]] = None,
    start: Optional[datetime] = None,
) -> dict:
    """Run ``picks_per_day`` selections a day, completing each pick at its defaults.

    A day ends early once nothing is eligible.
    """

    rng = np.random.default_rng(seed)
    constraint = constraint or Constraint()
    day_start = as_aware(start or local_now()).replace(hour=8, minute=0, second=0, microsecond=0)
    store = MemoryHistoryStore(tz=day_start.tzinfo)
    spacing = min(PICK_SPACING_MINUTES, DAY_WINDOW_MINUTES // max(picks_per_day, 1))

    totals: Counter = Counter()
    per_day = []
    for day in range(days):
        picks = []
        recovery_picks = 0
        for pick in range(picks_per_day):
            now = day_start + timedelta(days=day, minutes=spacing * pick)
            try:
                selection = select_item(catalog, store, constraint, daily_budget_cap, subsets, rng=rng, now=now)
            except (ExhaustedTodayError, NoMatchError):
                break
            item = selection.item
            store.append(CompletionEvent.completed(item.code, now, item.default_duration, item.intensity))
            picks.append(item.code)
            recovery_picks += int(selection.recovery_mode)
            totals[item.code] += 1
        per_day.append(
            {
                "picks": picks,
                "unique": len(set(picks)),
                "variety": len(set(picks)) / len(picks) if picks else 0.0,
                "recovery_picks": recovery_picks,
            }
        )

    counts = np.array(list(totals.values()), dtype=float)
    return {
        "days": per_day,
        "totals": dict(totals.most_common()),
        "never_picked": sorted(item.code for item in catalog if item.code not in totals),
        "mean_variety": float(np.mean([d["variety"] for d in per_day])) if per_day else 0.0,
        "max_share": float(counts.max() / counts.sum()) if counts.size else 0.0,
    }
