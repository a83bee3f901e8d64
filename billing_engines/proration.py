"""
Module: billing_engines.proration
Responsibility:
    Scale a full-period charge down to the part of a billing period it
    actually covers.  Two interchangeable strategies:

    * ActualDaysInMonth -- ``amount * days_in_range / days_in_period``
    * ThirtyDayMonth    -- ``amount * days_in_range / 30``

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain/values.

Invariants enforced:
    - Decimal-only arithmetic; results rounded to 2 places half away
      from zero.
    - Day counts are inclusive of both endpoints.
    - The usage range is clipped to the billing period; no overlap -> 0.00.
    - A usage range equal to the whole period returns the full amount
      under ActualDaysInMonth.

Failure modes:
    - ValueError for a negative full amount or an inverted range.

Usage:
    from billing_engines.proration import ProrationMethod, get_calculator

    calc = get_calculator(ProrationMethod.ACTUAL_DAYS_IN_MONTH)
    calc.calculate_proration(
        Decimal("10000"),
        date(2024, 1, 15), date(2024, 1, 31),
        date(2024, 1, 1), date(2024, 1, 31),
    )  # Decimal("5483.87")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from enum import Enum

from billing_kernel.domain.values import ZERO, DateRange, round_money, to_decimal

THIRTY_DAY_BASIS = Decimal("30")


class ProrationMethod(str, Enum):
    """How partial billing periods are scaled."""

    ACTUAL_DAYS_IN_MONTH = "ActualDaysInMonth"
    THIRTY_DAY_MONTH = "ThirtyDayMonth"


class ProrationCalculator(ABC):
    """
    Strategy interface for proration.

    Contract:
        ``calculate_proration(full_amount, usage_start, usage_end,
        period_start, period_end)`` returns the rounded amount for the
        days of ``[usage_start, usage_end]`` that fall inside
        ``[period_start, period_end]``.
    """

    method: ProrationMethod

    def calculate_proration(
        self,
        full_amount: Decimal,
        usage_start: date,
        usage_end: date,
        period_start: date,
        period_end: date,
    ) -> Decimal:
        full_amount = to_decimal(full_amount)
        if full_amount < 0:
            raise ValueError("Full amount cannot be negative")

        usage = DateRange(usage_start, usage_end)
        period = DateRange(period_start, period_end)

        billable = usage.intersection(period)
        if billable is None:
            return round_money(ZERO)

        return round_money(full_amount * Decimal(billable.days) / self._basis(period))

    @abstractmethod
    def _basis(self, period: DateRange) -> Decimal:
        """Number of days the full amount is spread over."""


class ActualDaysInMonthCalculator(ProrationCalculator):
    """Divides by the real length of the billing period (28-31 days)."""

    method = ProrationMethod.ACTUAL_DAYS_IN_MONTH

    def _basis(self, period: DateRange) -> Decimal:
        return Decimal(period.days)


class ThirtyDayMonthCalculator(ProrationCalculator):
    """
    Divides by 30 regardless of the period length.

    A full 31-day month is therefore billed at 31/30 of the monthly amount.
    """

    method = ProrationMethod.THIRTY_DAY_MONTH

    def _basis(self, period: DateRange) -> Decimal:
        return THIRTY_DAY_BASIS


_CALCULATORS: dict[ProrationMethod, ProrationCalculator] = {
    ProrationMethod.ACTUAL_DAYS_IN_MONTH: ActualDaysInMonthCalculator(),
    ProrationMethod.THIRTY_DAY_MONTH: ThirtyDayMonthCalculator(),
}


def get_calculator(method: ProrationMethod | str) -> ProrationCalculator:
    """Calculator for ``method`` (enum member or its string value)."""
    return _CALCULATORS[ProrationMethod(method)]
