from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from markerlint.invariants import never


class SchedulingBudget(Protocol):
    def consume(self, ticks: int = 1) -> None:
        """Consume logical progress units; raise BudgetExhausted when spent."""

    def get_mark(self) -> int:
        """Return the current mark for reporting."""


class BudgetExhausted(RuntimeError):
    """Raised by budgets when no further declarations may be scheduled."""


@dataclass(frozen=True)
class Unlimited:
    """Default budget: never stops scheduling."""

    def consume(self, ticks: int = 1) -> None:
        return

    def get_mark(self) -> int:
        return 0


@dataclass
class DeclarationBudget:
    """Deterministic budget counted in scheduled declarations."""

    limit: int
    current: int = 0

    def __post_init__(self) -> None:
        if int(self.limit) <= 0:
            never("invalid declaration budget limit", limit=self.limit)
        self.limit = int(self.limit)
        self.current = int(self.current)
        if self.current < 0:
            never("invalid declaration budget current", current=self.current)

    def consume(self, ticks: int = 1) -> None:
        ticks_value = int(ticks)
        if ticks_value <= 0:
            never("invalid declaration budget ticks", ticks=ticks)
        if self.current + ticks_value > self.limit:
            raise BudgetExhausted(
                f"Declaration budget exhausted: {self.current}/{self.limit}"
            )
        self.current += ticks_value

    def get_mark(self) -> int:
        return self.current
