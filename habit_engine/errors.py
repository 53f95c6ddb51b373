"""Error taxonomy for the selection pipeline and ledger."""

from __future__ import annotations


class HabitEngineError(Exception):
    """Base class for errors surfaced to the caller."""


class NoMatchError(HabitEngineError):
    """Constraint or subset filtering left no candidates."""


class UnknownSubsetError(HabitEngineError):
    """The named subset is not configured."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = sorted(available or [])
        detail = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"unknown subset '{name}'{detail}")


class ExhaustedTodayError(HabitEngineError):
    """Every remaining candidate has reached its daily or weekly cap."""


class StoreError(HabitEngineError):
    """History store I/O failure."""
