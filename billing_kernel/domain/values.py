"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Money rounding and inclusive calendar date ranges, the two primitives
    every calculator in the billing core is built on.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary amounts are ``Decimal`` -- NEVER ``float``.
    - Monetary results round to 2 places, half away from zero
      (``ROUND_HALF_UP`` on Decimal rounds magnitudes, so -0.005 -> -0.01).
    - A DateRange never has ``end < start``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce to Decimal. Floats are rejected."""
    if isinstance(value, float):
        raise TypeError("Monetary values must not be float; use Decimal or str")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(amount: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts starting from Decimal zero (never int 0)."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total


@dataclass(frozen=True, slots=True)
class DateRange:
    """
    Inclusive calendar date range.

    Guarantees:
        - ``days`` counts both endpoints (Jan 15 - Jan 31 is 17 days).
        - ``clip`` / ``intersection`` never return an inverted range;
          they return None when ranges don't overlap.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("End date cannot be before start date")

    @classmethod
    def open_ended(cls, start: date, end: date | None, period: DateRange) -> DateRange | None:
        """Range from ``start`` to ``end`` (or the period end), clipped to ``period``."""
        effective_start = max(start, period.start)
        effective_end = period.end if end is None else min(end, period.end)
        if effective_end < effective_start:
            return None
        return cls(effective_start, effective_end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def overlaps(self, start: date, end: date | None) -> bool:
        """True when ``[start, end]`` (``end=None`` meaning open) touches this range."""
        return start <= self.end and (end is None or end >= self.start)

    def intersection(self, other: DateRange) -> DateRange | None:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end < start:
            return None
        return DateRange(start, end)

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"
