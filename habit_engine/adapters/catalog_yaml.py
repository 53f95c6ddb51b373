"""YAML adapter for category catalog files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from habit_engine.schema import Item

SUBSETS_FILENAME = "subsets.yaml"


def _as_int(value: Any, name: str, where: str, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{where}: invalid {name}")
    try:
        number = int(value)
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{where}: invalid {name}") from exc
    if number < 0:
        raise ValueError(f"{where}: {name} must be >= 0")
    return number


def _as_tags(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{where}: tags must be a list")
    return [str(tag).strip() for tag in value if str(tag).strip()]


def _parse_item(raw: dict, index: int, category: dict, source: str) -> Item:
    where = f"{source}: item {index}"
    if not isinstance(raw, dict):
        raise ValueError(f"{where}: expected a mapping")

    slug = str(raw.get("code") or "").strip()
    if not slug:
        raise ValueError(f"{where}: missing required field 'code'")
    where = f"{source}: item {index} ({slug})"

    duration_min = _as_int(raw.get("duration_min"), "duration_min", where)
    duration_max = _as_int(raw.get("duration_max"), "duration_max", where, default=duration_min)
    if duration_min <= 0 or duration_max <= 0:
        raise ValueError(f"{where}: duration must be positive")
    if duration_min > duration_max:
        raise ValueError(f"{where}: duration_min {duration_min} exceeds duration_max {duration_max}")

    intensity = _as_int(raw.get("intensity"), "intensity", where, default=category["default_intensity"])
    if not 1 <= intensity <= 10:
        raise ValueError(f"{where}: intensity {intensity} outside 1-10")

    weight_raw = raw.get("weight")
    try:
        weight = float(weight_raw) if weight_raw is not None else category["weight"]
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{where}: invalid weight") from exc
    if weight <= 0:
        raise ValueError(f"{where}: weight must be positive")

    if raw.get("min_per_day") is None and raw.get("every_day"):
        min_per_day = 1
    else:
        min_per_day = _as_int(raw.get("min_per_day"), "min_per_day", where)

    tags = list(category["tags"])
    tags.extend(tag for tag in _as_tags(raw.get("tags"), where) if tag not in tags)

    return Item(
        code=f"{category['code']}-{slug}",
        category=category["code"],
        slug=slug,
        title=str(raw.get("title") or slug).strip(),
        description=str(raw.get("description") or "").strip(),
        duration_min=duration_min,
        duration_max=duration_max,
        intensity=intensity,
        weight=weight,
        tags=tuple(tags),
        max_per_day=_as_int(raw.get("max_per_day"), "max_per_day", where),
        max_per_week=_as_int(raw.get("max_per_week"), "max_per_week", where),
        min_per_day=min_per_day,
    )


def parse(file_path: str) -> list[Item]:
    """Parse one category file into resolved items."""

    source = Path(file_path).name
    with open(file_path, encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"{source}: malformed YAML") from exc

    if not isinstance(payload, dict):
        raise ValueError(f"{source}: category file must be a mapping")

    code = str(payload.get("code") or "").strip()
    if not code:
        raise ValueError(f"{source}: missing category code")

    try:
        weight = float(payload.get("weight", 1.0))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"{source}: invalid category weight") from exc
    if weight <= 0:
        raise ValueError(f"{source}: category weight must be positive")

    category = {
        "code": code,
        "weight": weight,
        "default_intensity": _as_int(payload.get("default_intensity"), "default_intensity", source, default=1),
        "tags": _as_tags(payload.get("tags"), source),
    }

    items = payload.get("items") or []
    if not isinstance(items, list):
        raise ValueError(f"{source}: items must be a list")
    return [_parse_item(raw, i, category, source) for i, raw in enumerate(items, start=1)]


def load_catalog(directory: str | Path) -> list[Item]:
    """Load and validate every category file in ``directory``."""

    root = Path(directory)
    if not root.is_dir():
        raise ValueError(f"catalog directory not found: {root}")

    files = sorted(path for path in root.glob("*.yaml") if path.name != SUBSETS_FILENAME)
    if not files:
        raise ValueError(f"no category files found in {root}")

    catalog: list[Item] = []
    seen: dict[str, str] = {}
    for path in files:
        for item in parse(str(path)):
            if item.code in seen:
                raise ValueError(f"{path.name}: duplicate item code '{item.code}' (also in {seen[item.code]})")
            seen[item.code] = path.name
            catalog.append(item)
    return catalog
