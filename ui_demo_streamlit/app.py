"""Streamlit demo UI for habit-engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from habit_engine.adapters.catalog_yaml import load_catalog
from habit_engine.adapters.subsets_yaml import load_subsets
from habit_engine.config import load_settings
from habit_engine.errors import HabitEngineError
from habit_engine.history import CsvHistoryStore, HistorySnapshot, local_now
from habit_engine.metrics import completed_counts, compute_daily_stats
from habit_engine.report import everyday_status
from habit_engine.schema import CompletionEvent, Constraint
from habit_engine.selection import compute_weight, filter_by_constraint, select_item


def _build_summary(snapshot: HistorySnapshot, cap: int) -> dict[str, Any]:
    stats = compute_daily_stats(snapshot.today_events(), snapshot.today)
    return {
        "completed": len(stats["completed"]),
        "skipped": len(stats["skipped"]),
        "duration": stats["total_duration"],
        "intensity": stats["total_intensity"],
        "budget_left": max(0, cap - stats["total_intensity"]),
    }


def run_engine(catalog: list, store: CsvHistoryStore, constraint: Constraint, cap: int, subsets: dict) -> dict[str, Any]:
    """Draw one item and collect everything the page displays."""

    snapshot = store.snapshot()
    selection = select_item(catalog, snapshot, constraint, cap, subsets)
    weights = sorted(
        (
            {"code": item.code, "intensity": item.intensity, "weight": round(compute_weight(item, snapshot), 2)}
            for item in filter_by_constraint(catalog, selection.constraint)
        ),
        key=lambda row: row["weight"],
        reverse=True,
    )
    subset = subsets.get(constraint.subset) if constraint.subset else None
    daily = everyday_status(catalog, completed_counts(snapshot.today_events()), subset)

    return {
        "selection": selection,
        "summary": _build_summary(snapshot, cap),
        "weights": weights,
        "daily": [
            {"code": row["item"].code, "done": row["done"], "minimum": row["item"].min_per_day, "met": row["met"]}
            for row in daily["rows"]
        ],
    }


def main() -> None:
    import streamlit as st

    settings = load_settings()
    st.set_page_config(page_title="Habit Engine Demo", layout="wide")
    st.title("Habit Engine — Streamlit Demo")

    with st.sidebar:
        st.header("Controls")
        catalog_dir = st.text_input("Catalog directory", value="examples/catalog")
        logs_dir = st.text_input("Logs directory", value=str(settings.resolved_logs_dir))
        category = st.text_input("Category", value="")
        tags = st.text_input("Tags (comma-separated)", value="")
        min_duration, max_duration = st.slider("Duration window (min)", 0, 30, (0, 30))
        min_intensity, max_intensity = st.slider("Intensity band", 0, 10, (0, 10))
        cap = st.number_input("Daily intensity budget", min_value=1, max_value=200,
                              value=settings.max_daily_intensity, step=1)
        skip_minimums = st.checkbox("Skip dailies", value=False)

    try:
        catalog = load_catalog(catalog_dir)
        subsets = load_subsets(Path(catalog_dir) / "subsets.yaml")
    except ValueError as exc:
        st.error(f"Catalog error: {exc}")
        return

    subset_name = st.sidebar.selectbox("Subset", options=[""] + sorted(subsets), index=0)
    store = CsvHistoryStore(logs_dir)
    constraint = Constraint(
        tags=[tag.strip() for tag in tags.split(",") if tag.strip()],
        category=category,
        min_duration=int(min_duration),
        max_duration=0 if max_duration == 30 else int(max_duration),
        min_intensity=int(min_intensity),
        max_intensity=0 if max_intensity == 10 else int(max_intensity),
        subset=subset_name,
        skip_minimums=skip_minimums,
    )

    if st.sidebar.button("Draw next item", type="primary") or "result" not in st.session_state:
        try:
            st.session_state["result"] = run_engine(catalog, store, constraint, int(cap), subsets)
        except HabitEngineError as exc:
            st.session_state.pop("result", None)
            st.warning(str(exc))
            return

    result = st.session_state["result"]
    selection = result["selection"]
    item = selection.item

    st.subheader("A) Next item")
    if selection.recovery_mode:
        st.info("Recovery mode: daily intensity budget reached, light items only.")
    st.markdown(f"### {item.title}")
    st.write(item.description)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Duration", f"{item.duration_min}-{item.duration_max} min")
    c2.metric("Intensity", f"{item.intensity}/10")
    c3.metric("Weight", f"{selection.weight:.2f}")
    c4.metric("Candidates", selection.candidates)

    done_col, skip_col = st.columns(2)
    if done_col.button("Done"):
        store.append(CompletionEvent.completed(item.code, local_now(), item.default_duration, item.intensity,
                                               subset_name))
        st.session_state.pop("result", None)
        st.success(f"Logged {item.code} as completed.")
    if skip_col.button("Skip"):
        store.append(CompletionEvent.skipped(item.code, local_now(), subset_name))
        st.session_state.pop("result", None)
        st.success(f"Skipped {item.code}.")

    st.subheader("B) Today")
    summary = result["summary"]
    s1, s2, s3, s4 = st.columns(4)
    s1.metric("Completed", summary["completed"])
    s2.metric("Skipped", summary["skipped"])
    s3.metric("Minutes", summary["duration"])
    s4.metric("Budget left", summary["budget_left"])

    st.subheader("C) Daily minimums")
    st.table(result["daily"] or [{"code": "-", "done": 0, "minimum": 0, "met": True}])

    st.subheader("D) Candidate weights")
    st.table(result["weights"])


if __name__ == "__main__":
    main()
