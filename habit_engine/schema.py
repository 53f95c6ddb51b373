"""Core data schema for catalog items and ledger events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

COMPLETED = "completed"
SKIPPED = "skipped"
OUTCOMES = (COMPLETED, SKIPPED)


@dataclass(frozen=True)
class Item:
    """A fully resolved catalog item. Built once by the loader."""

    code: str
    category: str
    slug: str
    title: str
    duration_min: int
    duration_max: int
    intensity: int
    weight: float = 1.0
    tags: tuple[str, ...] = ()
    max_per_day: int = 0
    max_per_week: int = 0
    min_per_day: int = 0
    description: str = ""

    def has_all_tags(self, required: list[str] | tuple[str, ...]) -> bool:
        if not required:
            return True
        own = {tag.lower() for tag in self.tags}
        return all(tag.lower() in own for tag in required)

    def matches_duration(self, low: float, high: float) -> bool:
        """True when [low, high] overlaps the item's duration range."""

        return self.duration_max >= low and self.duration_min <= high

    @property
    def default_duration(self) -> int:
        return (self.duration_min + self.duration_max + 1) // 2


@dataclass
class CompletionEvent:
    """One ledger record per user decision."""

    timestamp: datetime
    code: str
    outcome: str
    duration: int
    intensity: int
    subset: Optional[str] = None

    @classmethod
    def completed(
        cls, code: str, timestamp: datetime, duration: int, intensity: int, subset: Optional[str] = None
    ) -> "CompletionEvent":
        return cls(timestamp, code, COMPLETED, duration, intensity, subset or None)

    @classmethod
    def skipped(cls, code: str, timestamp: datetime, subset: Optional[str] = None) -> "CompletionEvent":
        return cls(timestamp, code, SKIPPED, 0, 0, subset or None)

    @property
    def is_completed(self) -> bool:
        return self.outcome == COMPLETED


@dataclass
class Subset:
    """Named allow-list of item codes."""

    name: str
    codes: list[str] = field(default_factory=list)
    description: str = ""


@dataclass
class Constraint:
    """Query for one selection call. Zero or empty means unset."""

    tags: list[str] = field(default_factory=list)
    category: str = ""
    min_duration: int = 0
    max_duration: int = 0
    exact_duration: int = 0
    min_intensity: int = 0
    max_intensity: int = 0
    subset: str = ""
    skip_minimums: bool = False


@dataclass
class Selection:
    """Result handed back to the presentation layer."""

    item: Item
    weight: float
    candidates: int
    recovery_mode: bool
    constraint: Constraint
