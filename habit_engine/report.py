"""Text and markdown rendering for items, day reports and subsets."""

from __future__ import annotations

from typing import Optional

from habit_engine.schema import CompletionEvent, Item, Subset

RULE = "=" * 39


def format_tags(item: Item) -> str:
    tags = [f"#{tag}" for tag in item.tags]
    if item.min_per_day > 0:
        tags.append("#daily")
    return ", ".join(tags)


def render_item(item: Item, recovery_mode: bool = False) -> str:
    lines = ["", RULE, f"  {item.title}", RULE, ""]
    if item.description:
        lines += [item.description, ""]
    lines.append(f"Duration:  {item.duration_min}-{item.duration_max} minutes")
    lines.append(f"Intensity: {item.intensity}/10")
    lines.append(f"Code:      {item.code}")
    if item.tags:
        lines.append(f"Tags:      {', '.join(item.tags)}")
    if recovery_mode:
        lines += ["", "Recovery mode: daily intensity budget reached, showing light items only."]
    return "\n".join(lines) + "\n"


def _event_line(event: CompletionEvent, items: Optional[dict[str, Item]], verbose: bool) -> str:
    when = event.timestamp.strftime("%H:%M")
    subset = f", {event.subset}" if event.subset else ""
    item = items.get(event.code) if (verbose and items) else None

    if not event.is_completed:
        label = f"{item.title} [{event.code}]" if item else event.code
        return f"{when} - {label}" + (f" ({event.subset})" if event.subset else "")

    detail = f"({event.duration}m, intensity {event.intensity}{subset})"
    if item is None:
        return f"{when} - {event.code} {detail}"
    tags = format_tags(item)
    return f"{when} - {item.title} [{event.code}] {detail}" + (f" | {tags}" if tags else "")


def render_day_report(
    stats: dict,
    budget: int,
    items: Optional[dict[str, Item]] = None,
    verbose: bool = False,
    markdown: bool = False,
) -> str:
    """Render ``compute_daily_stats`` output as plain text or markdown."""

    when = stats["date"]
    day = f"{when:%A, %B} {when.day}, {when:%Y}"
    recovery = stats["total_intensity"] >= budget
    completed = [_event_line(e, items, verbose) for e in stats["completed"]]
    skipped = [_event_line(e, items, verbose) for e in stats["skipped"]]

    if markdown:
        lines = [f"# Daily report: {day}", ""]
        if stats["subsets"]:
            lines += [f"**Subsets:** {', '.join(stats['subsets'])}", ""]
        lines += [
            "## Summary",
            "",
            f"- **Completed:** {len(stats['completed'])}",
            f"- **Duration:** {stats['total_duration']} minutes",
            f"- **Intensity:** {stats['total_intensity']} / {budget}",
            "",
        ]
        if completed:
            lines += ["## Completed", ""] + [f"- {line}" for line in completed] + [""]
        if skipped:
            lines += ["## Skipped", ""] + [f"- {line}" for line in skipped] + [""]
        if recovery:
            lines.append("*Recovery mode active (intensity budget reached)*")
        return "\n".join(lines).rstrip() + "\n"

    lines = [RULE, "  TODAY'S REPORT", f"  {day}", RULE, ""]
    if stats["subsets"]:
        lines += ["Active subset(s):"] + [f"  - {name}" for name in stats["subsets"]] + [""]
    lines += [
        "Summary:",
        f"   Completed:       {len(stats['completed'])}",
        f"   Total duration:  {stats['total_duration']} minutes",
        f"   Total intensity: {stats['total_intensity']} / {budget}",
        "",
    ]
    if completed:
        lines += ["Completed:"] + [f"   {line}" for line in completed] + [""]
    if skipped:
        lines += ["Skipped:"] + [f"   {line}" for line in skipped] + [""]
    if not completed and not skipped:
        lines += ["Nothing logged yet today.", ""]
    if recovery:
        lines.append("Recovery mode active: intensity budget reached.")
    return "\n".join(lines).rstrip() + "\n"


def everyday_status(items: list[Item], counts: dict[str, int], subset: Optional[Subset] = None) -> dict:
    """Completion status of items with a daily minimum, restricted to ``subset``."""

    daily = [item for item in items if item.min_per_day > 0]
    allowed = set(subset.codes) if subset else None
    rows = []
    excluded = 0
    for item in daily:
        if allowed is not None and item.code not in allowed:
            excluded += 1
            continue
        done = counts.get(item.code, 0)
        rows.append({"item": item, "done": done, "met": done >= item.min_per_day})
    return {"rows": rows, "excluded": excluded, "completed": sum(1 for row in rows if row["met"])}


def render_everyday(status: dict, subset_name: str = "") -> str:
    if not status["rows"] and not status["excluded"]:
        return "No items with a daily minimum.\n"

    lines = [RULE, "  EVERY DAY ITEMS"]
    if subset_name:
        lines.append(f"  (Subset: {subset_name})")
    lines += [RULE, ""]
    for row in status["rows"]:
        item = row["item"]
        mark = "[x]" if row["met"] else "[ ]"
        lines.append(f"{mark} {item.title}")
        lines.append(
            f"    Code: {item.code} | Intensity: {item.intensity} | Duration: {item.duration_min}-{item.duration_max} min"
        )
        lines.append(f"    Completed {row['done']} of {item.min_per_day} today")
        lines.append("")
    if status["excluded"]:
        lines += [f"{status['excluded']} daily items excluded by active subset", ""]
    suffix = " (in subset)" if subset_name else ""
    lines.append(f"Summary: {status['completed']}/{len(status['rows'])} daily items completed{suffix}")
    return "\n".join(lines) + "\n"


def render_subsets(subsets: dict[str, Subset]) -> str:
    lines = [RULE, "  AVAILABLE SUBSETS", RULE, ""]
    for name in sorted(subsets):
        subset = subsets[name]
        lines.append(name)
        if subset.description:
            lines.append(f"   {subset.description}")
        lines.append(f"   {len(subset.codes)} items")
        lines.append("")
    return "\n".join(lines)
