"""
Shared helpers for billing services.

Used by billing_modules/billing/*.py for billing-period validation and for
turning line ranges into descriptions.

Architecture: Modules layer. Imports only from billing_kernel.
"""

from __future__ import annotations

from datetime import date

from billing_kernel.domain.values import DateRange
from billing_kernel.exceptions import InvalidBillingPeriodError


def billing_period(period_start: date, period_end: date) -> DateRange:
    """DateRange for a billing period, or InvalidBillingPeriodError."""
    if period_end < period_start:
        raise InvalidBillingPeriodError(period_start, period_end)
    return DateRange(period_start, period_end)


def rent_description(billed: DateRange, is_prorated: bool) -> str:
    """``Rent for Jan 2024`` or ``Rent for Jan 15 - Jan 31, 2024 (Prorated)``."""
    if is_prorated:
        return f"Rent for {billed.start:%b %d} - {billed.end:%b %d, %Y} (Prorated)"
    return f"Rent for {billed.start:%b %Y}"
