"""Demo script for habit-engine."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from habit_engine.adapters.catalog_yaml import load_catalog
from habit_engine.adapters.subsets_yaml import load_subsets
from habit_engine.history import MemoryHistoryStore, local_now
from habit_engine.schema import CompletionEvent, Constraint
from habit_engine.selection import select_item


def main() -> None:
    catalog = load_catalog("examples/catalog")
    subsets = load_subsets("examples/catalog/subsets.yaml")
    store = MemoryHistoryStore()

    for _ in range(6):
        selection = select_item(catalog, store, Constraint(), daily_budget_cap=30, subsets=subsets)
        item = selection.item
        print(f"{item.code:<24} weight={selection.weight:>5.1f} of {selection.candidates} candidates"
              f"{'  [recovery]' if selection.recovery_mode else ''}")
        store.append(CompletionEvent.completed(item.code, local_now(), item.default_duration, item.intensity))

    travel = select_item(catalog, store, Constraint(subset="travel"), daily_budget_cap=30, subsets=subsets)
    print("From the travel subset:", travel.item.code)


if __name__ == "__main__":
    main()
