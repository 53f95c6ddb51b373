"""Simulate several days of selections over a catalog directory."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from habit_engine.adapters.catalog_yaml import load_catalog
from habit_engine.adapters.subsets_yaml import load_subsets
from habit_engine.schema import Constraint
from habit_engine.simulation import simulate_days


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a habit-engine selection simulation")
    parser.add_argument("--catalog", required=True, help="Path to the catalog directory")
    parser.add_argument("--days", type=int, default=5)
    parser.add_argument("--picks", type=int, default=10, help="Selections per day")
    parser.add_argument("--cap", type=int, default=30, help="Daily intensity budget")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--subset", default="")
    parser.add_argument("--skip-minimums", action="store_true")
    args = parser.parse_args()

    catalog_dir = Path(args.catalog)
    catalog = load_catalog(catalog_dir)
    subsets = load_subsets(catalog_dir / "subsets.yaml")
    constraint = Constraint(subset=args.subset, skip_minimums=args.skip_minimums)

    report = simulate_days(
        catalog,
        days=args.days,
        picks_per_day=args.picks,
        daily_budget_cap=args.cap,
        seed=args.seed,
        constraint=constraint,
        subsets=subsets,
    )
    report["n_items"] = len(catalog)
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
