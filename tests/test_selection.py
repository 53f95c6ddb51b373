from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from habit_engine.errors import ExhaustedTodayError, NoMatchError, StoreError, UnknownSubsetError
from habit_engine.history import HistorySnapshot, MemoryHistoryStore
from habit_engine.schema import CompletionEvent, Constraint, Item, Subset
from habit_engine.selection import (
    MIN_PER_DAY_BOOST,
    NEVER_DONE_BOOST,
    RECENCY_BOOST,
    compute_weight,
    draw_weighted,
    filter_by_constraint,
    filter_by_frequency,
    filter_by_subset,
    filter_incomplete_minimums,
    select_item,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


def make_item(code, duration=(3, 5), intensity=1, weight=1.0, tags=(), min_per_day=0, max_per_day=0, max_per_week=0):
    category, slug = code.split("-", 1) if "-" in code else ("X", code)
    return Item(
        code=code,
        category=category,
        slug=slug,
        title=code,
        duration_min=duration[0],
        duration_max=duration[1],
        intensity=intensity,
        weight=weight,
        tags=tuple(tags),
        min_per_day=min_per_day,
        max_per_day=max_per_day,
        max_per_week=max_per_week,
    )


def done(code, when=NOW, intensity=1):
    return CompletionEvent.completed(code, when, 5, intensity)


def snapshot(*events):
    return HistorySnapshot(list(events), now=NOW)


def scenario_catalog():
    return [
        make_item("A", intensity=1, min_per_day=1, max_per_day=2),
        make_item("B", intensity=5, max_per_day=1),
    ]


def test_constraint_filter_tags_are_case_insensitive():
    items = [make_item("K-swing", tags=("KBX", "swingx")), make_item("B-box", tags=("breathx",))]
    result = filter_by_constraint(items, Constraint(tags=["kbx", "SwingX"]))
    assert [item.code for item in result] == ["K-swing"]
    assert filter_by_constraint(items, Constraint(tags=[])) == items


def test_constraint_filter_category_and_intensity_band():
    items = [
        make_item("RB-a", intensity=1),
        make_item("RB-b", intensity=4),
        make_item("KB-c", intensity=8),
    ]
    assert [i.code for i in filter_by_constraint(items, Constraint(category="rb"))] == ["RB-a", "RB-b"]
    assert [i.code for i in filter_by_constraint(items, Constraint(min_intensity=4))] == ["RB-b", "KB-c"]
    assert [i.code for i in filter_by_constraint(items, Constraint(max_intensity=4))] == ["RB-a", "RB-b"]
    assert [i.code for i in filter_by_constraint(items, Constraint(min_intensity=2, max_intensity=5))] == ["RB-b"]


def test_constraint_filter_exact_duration_inside_range():
    items = [make_item("X-short", duration=(1, 2)), make_item("X-mid", duration=(3, 5)), make_item("X-long", (5, 10))]
    assert [i.code for i in filter_by_constraint(items, Constraint(exact_duration=5))] == ["X-mid", "X-long"]
    assert filter_by_constraint(items, Constraint(exact_duration=11)) == []


def test_constraint_filter_duration_overlap_with_open_bounds():
    items = [make_item("X-short", duration=(1, 2)), make_item("X-mid", duration=(3, 5)), make_item("X-long", (8, 12))]
    assert [i.code for i in filter_by_constraint(items, Constraint(min_duration=4))] == ["X-mid", "X-long"]
    assert [i.code for i in filter_by_constraint(items, Constraint(max_duration=3))] == ["X-short", "X-mid"]
    assert [i.code for i in filter_by_constraint(items, Constraint(min_duration=6, max_duration=7))] == []


def test_constraint_filter_is_idempotent_and_pure():
    items = scenario_catalog()
    constraint = Constraint(max_intensity=3, tags=[])
    first = filter_by_constraint(items, constraint)
    second = filter_by_constraint(items, constraint)
    assert first == second
    assert constraint == Constraint(max_intensity=3)
    assert [i.code for i in items] == ["A", "B"]


def test_subset_filter():
    items = [make_item("TB-box"), make_item("TB-deep"), make_item("TS-push")]
    subsets = {"breath": Subset("breath", ["TB-deep", "TB-box"]), "none": Subset("none", [])}

    assert filter_by_subset(items, "", subsets) == items
    assert [i.code for i in filter_by_subset(items, "breath", subsets)] == ["TB-box", "TB-deep"]
    assert filter_by_subset(items, "none", subsets) == []
    with pytest.raises(UnknownSubsetError):
        filter_by_subset(items, "missing", subsets)


def test_incomplete_minimums_only_returns_owed_items():
    items = [
        make_item("A", min_per_day=2),
        make_item("B", min_per_day=1),
        make_item("C"),
    ]
    history = snapshot(done("A"), done("B"))
    assert [i.code for i in filter_incomplete_minimums(items, history)] == ["A"]


def test_frequency_filter_daily_cap():
    items = [make_item("A", max_per_day=2), make_item("B", max_per_day=1), make_item("C")]
    history = snapshot(done("A"), done("B"), done("C"), done("C"), done("C"))
    assert [i.code for i in filter_by_frequency(items, history)] == ["A", "C"]

    history = snapshot(done("A"), done("A"))
    assert "A" not in [i.code for i in filter_by_frequency(items, history)]


def test_frequency_filter_ignores_skips_and_previous_days():
    items = [make_item("A", max_per_day=1)]
    history = snapshot(CompletionEvent.skipped("A", NOW), done("A", NOW - timedelta(days=1)))
    assert filter_by_frequency(items, history) == items


def test_frequency_filter_rolling_week_cap():
    items = [make_item("W", max_per_week=2)]
    assert filter_by_frequency(items, snapshot(done("W", NOW - timedelta(days=4)))) == items
    assert filter_by_frequency(items, snapshot(done("W", NOW - timedelta(days=4)), done("W", NOW))) == []
    assert filter_by_frequency(items, snapshot(done("W", NOW - timedelta(days=8)), done("W", NOW))) == items


def test_weight_boosts_are_multiplicative():
    owed = make_item("A", weight=2.0, min_per_day=1)
    assert compute_weight(owed, snapshot()) == pytest.approx(2.0 * MIN_PER_DAY_BOOST * NEVER_DONE_BOOST)

    stale = make_item("S")
    history = snapshot(done("S", NOW - timedelta(days=7)))
    assert compute_weight(stale, history) == pytest.approx(RECENCY_BOOST)

    owed_and_stale = make_item("O", min_per_day=1)
    history = snapshot(done("O", NOW - timedelta(days=30)))
    assert compute_weight(owed_and_stale, history) == pytest.approx(MIN_PER_DAY_BOOST * RECENCY_BOOST)


def test_weight_without_boosts_is_base_weight():
    item = make_item("R", weight=1.5, min_per_day=1)
    history = snapshot(done("R", NOW - timedelta(hours=1)))
    assert compute_weight(item, history) == pytest.approx(1.5)


def test_never_done_outweighs_done_before():
    never = make_item("N")
    before = make_item("D")
    history = snapshot(done("D", NOW - timedelta(days=2)))
    assert compute_weight(never, history) > compute_weight(before, history)


def test_draw_weighted_roulette():
    a, b = make_item("A"), make_item("B")
    weighted = [(a, 1.0), (b, 3.0)]
    assert draw_weighted(weighted, FixedRandom(0.2)) is a
    assert draw_weighted(weighted, FixedRandom(0.25)) is b
    assert draw_weighted(weighted, FixedRandom(0.999)) is b


def test_draw_weighted_single_and_fallback():
    a, b = make_item("A"), make_item("B")
    assert draw_weighted([(a, 5.0)], FixedRandom(0.7)) is a
    assert draw_weighted([(a, 1.0), (b, 1.0)], FixedRandom(1.0)) is b


def test_draw_weighted_rejects_empty():
    with pytest.raises(ValueError):
        draw_weighted([])


def test_draw_weighted_with_seeded_generator_is_reproducible():
    items = [(make_item(f"I{n}"), float(n + 1)) for n in range(5)]
    first = [draw_weighted(items, np.random.default_rng(3)).code for _ in range(3)]
    second = [draw_weighted(items, np.random.default_rng(3)).code for _ in range(3)]
    assert first == second


def test_scenario_priority_tier_eclipses_general_pool():
    catalog = scenario_catalog()
    rng = np.random.default_rng(0)
    for _ in range(50):
        selection = select_item(catalog, MemoryHistoryStore(), Constraint(), 30, rng=rng, now=NOW)
        assert selection.item.code == "A"
        assert selection.candidates == 1
        assert not selection.recovery_mode


def test_scenario_minimum_met_opens_general_pool():
    catalog = scenario_catalog()
    store = MemoryHistoryStore([done("A")])

    low = select_item(catalog, store, Constraint(), 30, rng=FixedRandom(0.1), now=NOW)
    high = select_item(catalog, store, Constraint(), 30, rng=FixedRandom(0.9), now=NOW)

    assert low.candidates == 2
    assert low.item.code == "A"
    assert high.item.code == "B"
    assert high.weight == pytest.approx(NEVER_DONE_BOOST)


def test_scenario_budget_exhausted_forces_recovery():
    catalog = [make_item("L", intensity=2), make_item("M", intensity=5), make_item("H", intensity=9)]
    store = MemoryHistoryStore([done("X-old", intensity=10), done("X-old", intensity=10), done("X-old", intensity=10)])
    rng = np.random.default_rng(1)
    for _ in range(20):
        selection = select_item(catalog, store, Constraint(max_intensity=9), 30, rng=rng, now=NOW)
        assert selection.item.intensity <= 2
        assert selection.recovery_mode
        assert selection.constraint.max_intensity == 2


def test_recovery_ignores_yesterdays_intensity():
    catalog = [make_item("H", intensity=9)]
    store = MemoryHistoryStore([done("X-old", NOW - timedelta(days=1), intensity=40)])
    selection = select_item(catalog, store, Constraint(), 30, now=NOW)
    assert selection.item.code == "H"
    assert not selection.recovery_mode


def test_recovery_without_light_items_is_no_match():
    catalog = [make_item("H", intensity=9)]
    store = MemoryHistoryStore([done("H", intensity=30)])
    with pytest.raises(NoMatchError):
        select_item(catalog, store, Constraint(), 30, now=NOW)


def test_skip_minimums_opens_general_pool():
    catalog = scenario_catalog()
    selection = select_item(
        catalog, MemoryHistoryStore(), Constraint(skip_minimums=True), 30, rng=FixedRandom(0.99), now=NOW
    )
    assert selection.item.code == "B"
    assert selection.candidates == 2


def test_select_errors_for_empty_pools():
    catalog = scenario_catalog()
    subsets = {"empty": Subset("empty", []), "only-b": Subset("only-b", ["B"])}

    with pytest.raises(NoMatchError):
        select_item(catalog, MemoryHistoryStore(), Constraint(tags=["nothing"]), 30, now=NOW)
    with pytest.raises(NoMatchError):
        select_item(catalog, MemoryHistoryStore(), Constraint(subset="empty"), 30, subsets, now=NOW)
    with pytest.raises(UnknownSubsetError):
        select_item(catalog, MemoryHistoryStore(), Constraint(subset="missing"), 30, subsets, now=NOW)
    with pytest.raises(ExhaustedTodayError):
        select_item(catalog, MemoryHistoryStore([done("B")]), Constraint(subset="only-b"), 30, subsets, now=NOW)


def test_all_items_capped_is_exhausted():
    catalog = scenario_catalog()
    store = MemoryHistoryStore([done("A"), done("A"), done("B")])
    with pytest.raises(ExhaustedTodayError):
        select_item(catalog, store, Constraint(), 30, now=NOW)


def test_minimum_equal_to_maximum_vanishes_once_met():
    catalog = [make_item("D", min_per_day=1, max_per_day=1), make_item("O")]
    store = MemoryHistoryStore([done("D")])
    selection = select_item(catalog, store, Constraint(), 30, now=NOW)
    assert selection.item.code == "O"

    with pytest.raises(ExhaustedTodayError):
        select_item(catalog[:1], store, Constraint(), 30, now=NOW)


def test_priority_tier_respects_subset():
    catalog = [make_item("A", min_per_day=1), make_item("B", min_per_day=1), make_item("C")]
    subsets = {"bc": Subset("bc", ["B", "C"])}
    rng = np.random.default_rng(5)
    for _ in range(20):
        selection = select_item(catalog, MemoryHistoryStore(), Constraint(subset="bc"), 30, subsets, rng=rng, now=NOW)
        assert selection.item.code == "B"


def test_select_does_not_mutate_inputs():
    catalog = scenario_catalog()
    store = MemoryHistoryStore([done("X-old", intensity=30)])
    constraint = Constraint(max_intensity=8)
    select_item(catalog, store, constraint, 30, now=NOW)
    assert constraint.max_intensity == 8
    assert len(store.events) == 1
    assert [i.code for i in catalog] == ["A", "B"]


def test_store_errors_propagate():
    class BrokenStore(MemoryHistoryStore):
        def load_all(self):
            raise StoreError("disk on fire")

    with pytest.raises(StoreError):
        select_item(scenario_catalog(), BrokenStore(), Constraint(), 30, now=NOW)


def test_select_accepts_naive_history_timestamps():
    catalog = [make_item("X-a"), make_item("X-b")]
    naive_now = datetime(2025, 3, 10, 12, 0)
    store = MemoryHistoryStore([done("X-a", naive_now - timedelta(days=1)), done("X-b", NOW - timedelta(days=8))])

    low = select_item(catalog, store, Constraint(), 30, rng=FixedRandom(0.0), now=naive_now)
    high = select_item(catalog, store, Constraint(), 30, rng=FixedRandom(0.99), now=naive_now)
    assert low.item.code == "X-a"
    assert low.weight == pytest.approx(1.0)
    assert high.item.code == "X-b"
    assert high.weight == pytest.approx(RECENCY_BOOST)

    store = MemoryHistoryStore([done("X-a", datetime.now() - timedelta(days=1))])
    selection = select_item(catalog, store, Constraint(), 30, rng=FixedRandom(0.0))
    assert selection.item.code == "X-a"


def test_weight_with_naive_now():
    assert compute_weight(make_item("A"), snapshot(done("A")), now=datetime(2025, 3, 20, 12)) == RECENCY_BOOST
