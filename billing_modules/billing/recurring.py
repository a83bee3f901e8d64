"""
Recurring charge calculation (``billing_modules.billing.recurring``).

Same select / clip / prorate pattern as rent, applied to a lease's active
recurring charges.  Only monthly charges are billed; other frequencies are
left out and logged at DEBUG.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from billing_engines.proration import ProrationMethod, get_calculator
from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.values import ZERO, DateRange, sum_money
from billing_kernel.exceptions import BillingError, NegativeAmountError, OperationCancelledError
from billing_kernel.logging_config import get_logger
from billing_modules._billing_helpers import billing_period
from billing_modules.billing.ports import RecurringChargeReader
from billing_modules.billing.results import BillingResult
from billing_modules.leasing.models import BillingFrequency, RecurringCharge

logger = get_logger("modules.billing.recurring")


@dataclass(frozen=True)
class RecurringChargeLineItem:
    charge_id: UUID
    charge_type_id: UUID
    description: str
    period_start: date
    period_end: date
    full_amount: Decimal
    amount: Decimal
    is_prorated: bool
    frequency: BillingFrequency


@dataclass(frozen=True)
class RecurringChargeCalculationResult:
    line_items: tuple[RecurringChargeLineItem, ...] = ()
    total_amount: Decimal = ZERO


def calculate_recurring_charges(
    charges: Iterable[RecurringCharge],
    period: DateRange,
    proration_method: ProrationMethod,
) -> RecurringChargeCalculationResult:
    """Lines for the monthly, active charges overlapping ``period``, in input order."""
    calculator = get_calculator(proration_method)
    items: list[RecurringChargeLineItem] = []

    for charge in charges:
        if not charge.is_active or not charge.overlaps(period):
            continue
        if charge.amount < 0:
            raise NegativeAmountError("Recurring charge amount", charge.amount)
        if charge.frequency != BillingFrequency.MONTHLY:
            logger.debug(
                "recurring_charge_frequency_not_billed",
                extra={
                    "recurring_charge_id": str(charge.id),
                    "frequency": charge.frequency.value,
                },
            )
            continue

        billed = DateRange.open_ended(charge.start_date, charge.end_date, period)
        if billed is None:
            continue

        amount = calculator.calculate_proration(
            charge.amount, billed.start, billed.end, period.start, period.end,
        )
        items.append(
            RecurringChargeLineItem(
                charge_id=charge.id,
                charge_type_id=charge.charge_type_id,
                description=charge.description,
                period_start=billed.start,
                period_end=billed.end,
                full_amount=charge.amount,
                amount=amount,
                is_prorated=billed != period,
                frequency=charge.frequency,
            )
        )

    return RecurringChargeCalculationResult(
        line_items=tuple(items),
        total_amount=sum_money(item.amount for item in items),
    )


class RecurringChargeCalculator:
    def __init__(self, charges: RecurringChargeReader):
        self._charges = charges

    def calculate(
        self,
        lease_id: UUID,
        period_start: date,
        period_end: date,
        proration_method: ProrationMethod,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[RecurringChargeCalculationResult]:
        try:
            period = billing_period(period_start, period_end)
            check_cancelled(cancellation, "calculate_recurring_charges")
            charges = self._charges.list_active_by_lease(lease_id)
            result = calculate_recurring_charges(charges, period, proration_method)
        except OperationCancelledError:
            raise
        except BillingError as exc:
            return BillingResult.fail(exc)

        return BillingResult.ok(result)
