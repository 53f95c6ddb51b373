"""Filter, weight and draw pipeline that picks the next item."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from math import inf
from typing import Any, Optional

import numpy as np
from loguru import logger

from habit_engine.errors import ExhaustedTodayError, NoMatchError, UnknownSubsetError
from habit_engine.history import HistorySnapshot, HistoryStore, as_aware, local_now
from habit_engine.schema import Constraint, Item, Selection, Subset

MIN_PER_DAY_BOOST = 10.0
NEVER_DONE_BOOST = 3.0
RECENCY_BOOST = 2.0
RECENCY_DAYS = 7
RECOVERY_MAX_INTENSITY = 2

_rng = np.random.default_rng()


def filter_by_constraint(items: list[Item], constraint: Constraint) -> list[Item]:
    """Keep items matching category, tags, intensity band and duration."""

    category = constraint.category.strip().upper()
    low = constraint.min_duration or 0
    high = constraint.max_duration or inf

    matched = []
    for item in items:
        if category and item.category.upper() != category:
            continue
        if not item.has_all_tags(constraint.tags):
            continue
        if constraint.min_intensity > 0 and item.intensity < constraint.min_intensity:
            continue
        if constraint.max_intensity > 0 and item.intensity > constraint.max_intensity:
            continue
        if constraint.exact_duration > 0:
            if not item.duration_min <= constraint.exact_duration <= item.duration_max:
                continue
        elif not item.matches_duration(low, high):
            continue
        matched.append(item)
    return matched


def filter_by_subset(items: list[Item], subset_name: str, subsets: dict[str, Subset]) -> list[Item]:
    if not subset_name:
        return list(items)
    subset = subsets.get(subset_name)
    if subset is None:
        raise UnknownSubsetError(subset_name, list(subsets))
    allowed = set(subset.codes)
    return [item for item in items if item.code in allowed]


def filter_incomplete_minimums(items: list[Item], history) -> list[Item]:
    """Items that still owe completions today toward their daily minimum."""

    incomplete = []
    for item in items:
        if item.min_per_day == 0:
            continue
        completed, _ = history.count_today(item.code)
        if completed < item.min_per_day:
            incomplete.append(item)
    return incomplete


def filter_by_frequency(items: list[Item], history) -> list[Item]:
    """Drop items at their daily cap, or at their rolling seven-day cap."""

    allowed = []
    for item in items:
        completed, _ = history.count_today(item.code)
        if item.max_per_day > 0 and completed >= item.max_per_day:
            continue
        if item.max_per_week > 0 and history.count_week(item.code) >= item.max_per_week:
            continue
        allowed.append(item)
    return allowed


def compute_weight(item: Item, history, now: Optional[datetime] = None) -> float:
    weight = item.weight

    if item.min_per_day > 0:
        completed, _ = history.count_today(item.code)
        if completed < item.min_per_day:
            weight *= MIN_PER_DAY_BOOST

    if not history.ever_completed(item.code):
        weight *= NEVER_DONE_BOOST

    last = history.last_completed_at(item.code)
    if last is not None:
        now = as_aware(now or getattr(history, "now", None) or local_now())
        if now - last >= timedelta(days=RECENCY_DAYS):
            weight *= RECENCY_BOOST

    return weight


def draw_weighted(weighted: list[tuple[Item, float]], rng: Any = None) -> Item:
    """Roulette-wheel draw over ``(item, weight)`` pairs.

    ``rng`` is anything with a ``random()`` method returning a float in
    [0, 1); defaults to the module generator.
    """

    if not weighted:
        raise ValueError("draw_weighted requires at least one candidate")
    if len(weighted) == 1:
        return weighted[0][0]

    cumulative = np.cumsum([weight for _, weight in weighted])
    source = rng if rng is not None else _rng
    r = float(source.random()) * float(cumulative[-1])
    index = int(np.searchsorted(cumulative, r, side="right"))
    if index >= len(weighted):
        index = len(weighted) - 1
    return weighted[index][0]


def select_item(
    catalog: list[Item],
    history: HistoryStore | HistorySnapshot,
    constraint: Optional[Constraint] = None,
    daily_budget_cap: int = 30,
    subsets: Optional[dict[str, Subset]] = None,
    rng: Any = None,
    now: Optional[datetime] = None,
) -> Selection:
    """Choose the next item for ``constraint``.

    Raises ``NoMatchError`` when filtering empties the pool,
    ``UnknownSubsetError`` for an unconfigured subset and
    ``ExhaustedTodayError`` when every remaining candidate is capped.
    """

    constraint = constraint or Constraint()
    snapshot = history if isinstance(history, HistorySnapshot) else history.snapshot(now)

    spent = snapshot.today_cumulative_intensity()
    recovery_mode = spent >= daily_budget_cap
    if recovery_mode:
        logger.info("Recovery mode: {} intensity spent today (cap {}), limiting to <= {}",
                    spent, daily_budget_cap, RECOVERY_MAX_INTENSITY)
        constraint = replace(constraint, max_intensity=RECOVERY_MAX_INTENSITY)

    candidates = filter_by_constraint(catalog, constraint)
    logger.debug("{} of {} items match constraint", len(candidates), len(catalog))
    if not candidates:
        raise NoMatchError("no items match the given filters")

    if constraint.subset:
        candidates = filter_by_subset(candidates, constraint.subset, subsets or {})
        logger.debug("{} items left in subset '{}'", len(candidates), constraint.subset)
        if not candidates:
            raise NoMatchError(f"no items in subset '{constraint.subset}' match the given filters")

    if not constraint.skip_minimums:
        owed = filter_incomplete_minimums(candidates, snapshot)
        if owed:
            logger.debug("{} items still owe their daily minimum", len(owed))
            candidates = owed

    candidates = filter_by_frequency(candidates, snapshot)
    if not candidates:
        raise ExhaustedTodayError("all matching items have reached their limit for today")

    weighted = [(item, compute_weight(item, snapshot)) for item in candidates]
    chosen = draw_weighted(weighted, rng)
    weight = next(w for item, w in weighted if item is chosen)
    logger.debug("Drew {} (weight {:.2f}) from {} candidates", chosen.code, weight, len(weighted))

    return Selection(
        item=chosen,
        weight=weight,
        candidates=len(weighted),
        recovery_mode=recovery_mode,
        constraint=constraint,
    )
