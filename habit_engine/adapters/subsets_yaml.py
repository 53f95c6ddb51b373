"""YAML adapter for named subsets."""

from __future__ import annotations

from pathlib import Path

import yaml

from habit_engine.schema import Subset


def load_subsets(file_path: str | Path) -> dict[str, Subset]:
    """Load subsets keyed by name. A missing file yields an empty mapping."""

    path = Path(file_path)
    if not path.exists():
        return {}

    with open(path, encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"{path.name}: malformed YAML") from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"{path.name}: expected a mapping")

    entries = payload.get("subsets") or {}
    if not isinstance(entries, dict):
        raise ValueError(f"{path.name}: 'subsets' must be a mapping")

    subsets: dict[str, Subset] = {}
    for name, body in entries.items():
        body = body or {}
        if not isinstance(body, dict):
            raise ValueError(f"{path.name}: subset '{name}' must be a mapping")
        codes = body.get("codes") or []
        if not isinstance(codes, list):
            raise ValueError(f"{path.name}: subset '{name}' codes must be a list")
        subsets[str(name)] = Subset(
            name=str(name),
            codes=[str(code).strip() for code in codes],
            description=str(body.get("description") or "").strip(),
        )
    return subsets
