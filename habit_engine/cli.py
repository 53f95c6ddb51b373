"""Command-line interface for habit-engine."""

from __future__ import annotations

import argparse
import sys
from typing import Optional

import numpy as np
from loguru import logger

from habit_engine.adapters.catalog_yaml import load_catalog
from habit_engine.adapters.subsets_yaml import load_subsets
from habit_engine.config import Settings, load_settings
from habit_engine.errors import HabitEngineError
from habit_engine.history import CsvHistoryStore, local_now
from habit_engine.logging_setup import setup_logging
from habit_engine.metrics import completed_counts, compute_daily_stats
from habit_engine.migration import migrate_logs
from habit_engine.report import (
    RULE,
    everyday_status,
    render_day_report,
    render_everyday,
    render_item,
    render_subsets,
)
from habit_engine.schema import CompletionEvent, Constraint, Item
from habit_engine.selection import select_item

VERSION = "0.1.0"


def _split_tags(raw: str) -> list[str]:
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def _active_subset(args: argparse.Namespace, settings: Settings) -> str:
    return getattr(args, "subset", None) or settings.active_subset


def _rng(settings: Settings):
    return np.random.default_rng(settings.seed) if settings.seed is not None else None


def _find_item(catalog: list[Item], code: str) -> Item:
    for item in catalog:
        if item.code == code:
            return item
    raise ValueError(f"item code '{code}' not found")


def _save_current(settings: Settings, code: str) -> None:
    path = settings.resolved_current_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(code, encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not save current item: {}", exc)


def _load_current(settings: Settings) -> Optional[str]:
    path = settings.resolved_current_path
    if not path.exists():
        return None
    code = path.read_text(encoding="utf-8").strip()
    return code or None


def _clear_current(settings: Settings) -> None:
    settings.resolved_current_path.unlink(missing_ok=True)


def _prompt_int(question: str, default: int) -> int:
    try:
        raw = input(f"{question} (default: {default}): ").strip()
    except EOFError:
        return default
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"Invalid number, using default: {default}", file=sys.stderr)
        return default


def _today_summary(store: CsvHistoryStore) -> str:
    stats = compute_daily_stats(store.load_day(local_now().date()), local_now().date())
    return (
        f"Today: {len(stats['completed'])} completed, "
        f"{stats['total_duration']} minutes, intensity {stats['total_intensity']}"
    )


def _log_done(item: Item, store: CsvHistoryStore, subset: str,
              duration: Optional[int] = None, intensity: Optional[int] = None) -> None:
    if duration is None:
        duration = _prompt_int("How many minutes did you spend?", item.default_duration)
    if intensity is None:
        intensity = _prompt_int("How hard was it? Intensity 1-10", item.intensity)
    store.append(CompletionEvent.completed(item.code, local_now(), duration, intensity, subset))
    print(f"Marked '{item.title}' as completed ({duration} minutes, intensity {intensity})")
    print(_today_summary(store))


def _log_skip(item: Item, store: CsvHistoryStore, subset: str) -> None:
    store.append(CompletionEvent.skipped(item.code, local_now(), subset))
    print(f"Skipped '{item.title}'")


def cmd_get(args: argparse.Namespace, settings: Settings) -> int:
    catalog = load_catalog(settings.resolved_catalog_dir)
    constraint = Constraint(
        tags=_split_tags(args.tags),
        category=args.category.strip().upper(),
        min_duration=args.min_duration,
        max_duration=args.max_duration,
        exact_duration=args.duration,
        min_intensity=args.min_intensity,
        max_intensity=args.max_intensity,
        subset=_active_subset(args, settings),
        skip_minimums=args.skip_minimums,
    )
    selection = select_item(
        catalog,
        CsvHistoryStore(settings.resolved_logs_dir),
        constraint,
        settings.max_daily_intensity,
        load_subsets(settings.subsets_path),
        rng=_rng(settings),
    )
    _save_current(settings, selection.item.code)
    print(render_item(selection.item, selection.recovery_mode))
    print("When done, run:\n  habit-engine done\nOr skip with:\n  habit-engine skip")
    return 0


def _resolve_code(args: argparse.Namespace, settings: Settings) -> tuple[str, bool]:
    if args.code:
        return args.code, False
    current = _load_current(settings)
    if current is None:
        raise ValueError("no current item. Use 'habit-engine get' first or pass a code.")
    return current, True


def cmd_done(args: argparse.Namespace, settings: Settings) -> int:
    code, from_current = _resolve_code(args, settings)
    item = _find_item(load_catalog(settings.resolved_catalog_dir), code)
    store = CsvHistoryStore(settings.resolved_logs_dir)
    _log_done(item, store, settings.active_subset, args.duration, args.intensity)
    if from_current:
        _clear_current(settings)
    return 0


def cmd_skip(args: argparse.Namespace, settings: Settings) -> int:
    code, from_current = _resolve_code(args, settings)
    item = _find_item(load_catalog(settings.resolved_catalog_dir), code)
    _log_skip(item, CsvHistoryStore(settings.resolved_logs_dir), settings.active_subset)
    if from_current:
        _clear_current(settings)
    return 0


def cmd_report(args: argparse.Namespace, settings: Settings) -> int:
    today = local_now().date()
    stats = compute_daily_stats(CsvHistoryStore(settings.resolved_logs_dir).load_day(today), today)
    items = None
    if args.verbose:
        items = {item.code: item for item in load_catalog(settings.resolved_catalog_dir)}
    print(render_day_report(stats, settings.max_daily_intensity, items, args.verbose, args.markdown), end="")
    return 0


def cmd_clear(args: argparse.Namespace, settings: Settings) -> int:
    store = CsvHistoryStore(settings.resolved_logs_dir)
    today = local_now().date()
    stats = compute_daily_stats(store.load_day(today), today)
    if not stats["total_entries"]:
        print("No entries for today to clear.")
        return 0

    print(f"This will delete today's log with {stats['total_entries']} entries:")
    print(f"  - {len(stats['completed'])} completed ({stats['total_duration']} minutes, "
          f"intensity {stats['total_intensity']})")
    print(f"  - {len(stats['skipped'])} skipped")
    if not args.yes:
        try:
            answer = input("Are you sure you want to clear today's history? (yes/no): ").strip().lower()
        except EOFError:
            answer = ""
        if answer not in ("yes", "y"):
            print("Cancelled.")
            return 0

    removed = store.clear_day(today)
    print(f"Cleared {removed} entries from today's history")
    return 0


def cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    print(RULE)
    print("  CONFIGURATION")
    print(RULE)
    print(f"Catalog directory:   {settings.resolved_catalog_dir}")
    print(f"Logs directory:      {settings.resolved_logs_dir}")
    print(f"Current file:        {settings.resolved_current_path}")
    print(f"Max daily intensity: {settings.max_daily_intensity}")
    if settings.active_subset:
        print(f"Active subset:       {settings.active_subset}")
    try:
        catalog = load_catalog(settings.resolved_catalog_dir)
    except ValueError as exc:
        print(f"Catalog problem: {exc}")
        print("Set HABIT_ENGINE_CATALOG_DIR to point at your catalog.")
    else:
        print(f"Found {len(catalog)} items")
    return 0


def cmd_everyday(args: argparse.Namespace, settings: Settings) -> int:
    catalog = load_catalog(settings.resolved_catalog_dir)
    subset_name = settings.active_subset
    subset = load_subsets(settings.subsets_path).get(subset_name) if subset_name else None
    if subset_name and subset is None:
        logger.warning("Active subset '{}' is not configured; showing all items", subset_name)
        subset_name = ""

    today = local_now().date()
    counts = completed_counts(CsvHistoryStore(settings.resolved_logs_dir).load_day(today))
    print(render_everyday(everyday_status(catalog, counts, subset), subset_name), end="")
    return 0


def cmd_subsets(args: argparse.Namespace, settings: Settings) -> int:
    subsets = load_subsets(settings.subsets_path)
    if not subsets:
        print("No subsets configured.")
        print(f"Create a subsets file at:\n  {settings.subsets_path}")
        return 0
    print(render_subsets(subsets))
    print("Usage:")
    print("  habit-engine get --subset NAME")
    print("  export HABIT_ENGINE_ACTIVE_SUBSET=NAME")
    return 0


def cmd_migrate(args: argparse.Namespace, settings: Settings) -> int:
    results = migrate_logs(settings.resolved_logs_dir)
    for name, outcome in results["files"].items():
        print(f"{name}: {outcome}")
    print(f"Converted: {results['converted']}")
    print(f"Skipped:   {results['skipped']} (already CSV)")
    print(f"Failed:    {results['failed']}")
    if results["converted"]:
        print(f"Backups (.bak) were kept in {settings.resolved_logs_dir}")
    return 1 if results["failed"] else 0


def cmd_version(args: argparse.Namespace, settings: Settings) -> int:
    print(f"habit-engine version {VERSION}")
    return 0


def _prompt_choice(has_minimum: bool) -> str:
    valid = {"d", "s", "q"} | ({"x"} if has_minimum else set())
    print("What would you like to do?")
    print("  [d] Done (log completion)")
    print("  [s] Skip (try another item)")
    if has_minimum:
        print("  [x] Skip dailies (ignore items with a daily minimum)")
    print("  [q] Quit (save for later)")
    while True:
        try:
            choice = input("Choice: ").strip().lower()
        except EOFError:
            return "q"
        if choice in valid:
            return choice
        print("Invalid choice, please try again.")


def cmd_interactive(args: argparse.Namespace, settings: Settings) -> int:
    catalog = load_catalog(settings.resolved_catalog_dir)
    subsets = load_subsets(settings.subsets_path)
    store = CsvHistoryStore(settings.resolved_logs_dir)
    subset = _active_subset(args, settings)
    constraint = Constraint(subset=subset)
    rng = _rng(settings)
    if subset:
        print(f"Using subset: {subset}\n")

    while True:
        item = None
        recovery_mode = False
        saved = _load_current(settings)
        if saved:
            item = next((candidate for candidate in catalog if candidate.code == saved), None)
            if item is not None:
                print("Resuming saved item...")
        if item is None:
            selection = select_item(catalog, store, constraint, settings.max_daily_intensity, subsets, rng=rng)
            item, recovery_mode = selection.item, selection.recovery_mode

        _save_current(settings, item.code)
        print(render_item(item, recovery_mode))

        choice = _prompt_choice(item.min_per_day > 0)
        if choice == "d":
            _log_done(item, store, subset)
            _clear_current(settings)
            return 0
        if choice == "s":
            _log_skip(item, store, subset)
            _clear_current(settings)
            constraint.skip_minimums = False
        elif choice == "x":
            print("Skipping dailies for now...")
            _clear_current(settings)
            constraint.skip_minimums = True
        else:
            print("Saved for later. Run 'habit-engine' to resume.")
            return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="habit-engine", description="Pick the next habit to practice")
    parser.add_argument("--subset", default="", help="Use a named subset")
    sub = parser.add_subparsers(dest="command")

    get = sub.add_parser("get", help="Draw the next item")
    get.add_argument("-c", "--category", default="", help="Filter by category code")
    get.add_argument("-t", "--tags", default="", help="Required tags (comma-separated)")
    get.add_argument("-d", "--duration", type=int, default=0, help="Exact duration in minutes")
    get.add_argument("-m", "--min-duration", type=int, default=0, help="Minimum duration")
    get.add_argument("-M", "--max-duration", type=int, default=0, help="Maximum duration")
    get.add_argument("-r", "--min-intensity", type=int, default=0, help="Minimum intensity")
    get.add_argument("-R", "--max-intensity", type=int, default=0, help="Maximum intensity")
    get.add_argument("--skip-minimums", action="store_true", help="Ignore daily-minimum priority")
    get.add_argument("--subset", default=argparse.SUPPRESS, help="Restrict to a named subset")
    get.set_defaults(handler=cmd_get)

    done = sub.add_parser("done", help="Log the current (or given) item as completed")
    done.add_argument("code", nargs="?")
    done.add_argument("--duration", type=int, default=None, help="Actual minutes spent")
    done.add_argument("--intensity", type=int, default=None, help="Actual intensity")
    done.set_defaults(handler=cmd_done)

    skip = sub.add_parser("skip", help="Log the current (or given) item as skipped")
    skip.add_argument("code", nargs="?")
    skip.set_defaults(handler=cmd_skip)

    report = sub.add_parser("report", help="Show today's report")
    report.add_argument("period", nargs="?", default="day", choices=["day", "today"])
    report.add_argument("--markdown", "--md", action="store_true", help="Markdown output")
    report.add_argument("-v", "--verbose", action="store_true", help="Show titles and tags")
    report.set_defaults(handler=cmd_report)

    clear = sub.add_parser("clear", help="Delete today's history")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    clear.set_defaults(handler=cmd_clear)

    sub.add_parser("config", help="Show configuration").set_defaults(handler=cmd_config)
    sub.add_parser("everyday", help="Show daily-minimum items and their status").set_defaults(handler=cmd_everyday)
    sub.add_parser("subsets", help="List configured subsets").set_defaults(handler=cmd_subsets)
    sub.add_parser("migrate-logs", help="Convert legacy .log files to CSV").set_defaults(handler=cmd_migrate)
    sub.add_parser("version", help="Show version").set_defaults(handler=cmd_version)

    interactive = sub.add_parser("interactive", help="Draw, then complete, skip or quit")
    interactive.add_argument("--subset", default=argparse.SUPPRESS, help="Restrict to a named subset")
    interactive.set_defaults(handler=cmd_interactive)
    return parser


def main(argv: Optional[list[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings or load_settings()
    setup_logging(settings.log_level, settings.log_path)

    handler = getattr(args, "handler", cmd_interactive)
    try:
        return handler(args, settings)
    except (HabitEngineError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
