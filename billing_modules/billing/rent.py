"""
Rent calculation (``billing_modules.billing.rent``).

Splits a billing period across every lease term that overlaps it and
prorates each piece.  A rent change mid-month therefore yields two lines:

    10,000/mo through Jan 15, 12,000/mo from Jan 16, billed Jan 1-31
    (actual days)  ->  4,838.71 + 6,193.55 = 11,032.26
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from billing_engines.proration import ProrationMethod, get_calculator
from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.values import ZERO, DateRange, sum_money
from billing_kernel.exceptions import BillingError, LeaseNotFoundError, OperationCancelledError
from billing_kernel.logging_config import get_logger
from billing_modules._billing_helpers import billing_period, rent_description
from billing_modules.billing.ports import LeaseReader
from billing_modules.billing.results import BillingResult
from billing_modules.leasing.models import Lease

logger = get_logger("modules.billing.rent")


@dataclass(frozen=True)
class RentLineItem:
    lease_term_id: UUID
    period_start: date
    period_end: date
    full_monthly_rent: Decimal
    amount: Decimal
    is_prorated: bool
    description: str


@dataclass(frozen=True)
class RentCalculationResult:
    line_items: tuple[RentLineItem, ...] = ()
    total_amount: Decimal = ZERO


def calculate_rent_for_lease(
    lease: Lease,
    period: DateRange,
    proration_method: ProrationMethod,
) -> RentCalculationResult:
    """
    One line per term overlapping ``period``, in effective_from order.

    A term is prorated when its clipped range differs from the whole
    period.  No overlapping terms gives an empty result.
    """
    calculator = get_calculator(proration_method)
    items: list[RentLineItem] = []

    for term in lease.terms:
        if not term.overlaps(period):
            continue
        billed = DateRange.open_ended(term.effective_from, term.effective_to, period)
        if billed is None:
            continue

        is_prorated = billed != period
        amount = calculator.calculate_proration(
            term.monthly_rent, billed.start, billed.end, period.start, period.end,
        )
        items.append(
            RentLineItem(
                lease_term_id=term.id,
                period_start=billed.start,
                period_end=billed.end,
                full_monthly_rent=term.monthly_rent,
                amount=amount,
                is_prorated=is_prorated,
                description=rent_description(billed, is_prorated),
            )
        )

    return RentCalculationResult(
        line_items=tuple(items),
        total_amount=sum_money(item.amount for item in items),
    )


class RentCalculator:
    """Rent for a lease by id, loading its terms through ``LeaseReader``."""

    def __init__(self, leases: LeaseReader):
        self._leases = leases

    def calculate(
        self,
        lease_id: UUID,
        period_start: date,
        period_end: date,
        proration_method: ProrationMethod,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[RentCalculationResult]:
        try:
            period = billing_period(period_start, period_end)
            check_cancelled(cancellation, "calculate_rent")
            lease = self._leases.get_with_terms(lease_id)
            if lease is None:
                raise LeaseNotFoundError(str(lease_id))
        except OperationCancelledError:
            raise
        except BillingError as exc:
            return BillingResult.fail(exc)

        result = calculate_rent_for_lease(lease, period, proration_method)
        logger.debug(
            "rent_calculated",
            extra={
                "lease_id": str(lease_id),
                "term_count": len(result.line_items),
                "total_amount": str(result.total_amount),
            },
        )
        return BillingResult.ok(result)
