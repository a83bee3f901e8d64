"""
Utility charge calculation (``billing_modules.billing.utility``).

Three independent entry points:

* ``calculate_amount_based``   -- pass a bill amount straight through.
* ``calculate_flat_rate``      -- ``units * rate + fixed``.
* ``calculate_slabs``          -- tiered tariff from a stored rate plan.

The arithmetic lives in ``billing_engines.utility``; this service loads
and checks the rate plan and wraps failures in ``BillingResult``.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from billing_engines.utility import calculate_flat_rate, calculate_slab_charges
from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.values import ZERO, round_money, to_decimal
from billing_kernel.exceptions import (
    BillingError,
    EmptyRatePlanError,
    NegativeAmountError,
    OperationCancelledError,
    RatePlanInactiveError,
    RatePlanNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.billing.models import UtilityCalculationResult, UtilityType
from billing_modules.billing.ports import UtilityRatePlanReader
from billing_modules.billing.results import BillingResult

logger = get_logger("modules.billing.utility")


def _non_negative(field_name: str, value: Decimal) -> Decimal:
    value = to_decimal(value)
    if value < 0:
        raise NegativeAmountError(field_name, value)
    return value


class UtilityCalculator:
    def __init__(self, rate_plans: UtilityRatePlanReader):
        self._rate_plans = rate_plans

    def calculate_amount_based(
        self,
        amount: Decimal,
        utility_type: UtilityType,
    ) -> BillingResult[UtilityCalculationResult]:
        try:
            amount = _non_negative("Amount", amount)
        except BillingError as exc:
            return BillingResult.fail(exc)

        return BillingResult.ok(
            UtilityCalculationResult(
                utility_type=utility_type,
                is_meter_based=False,
                total_amount=round_money(amount),
                description=f"{utility_type.value} - Direct billing",
            )
        )

    def calculate_flat_rate(
        self,
        units_consumed: Decimal,
        rate_per_unit: Decimal,
        utility_type: UtilityType,
        fixed_charge: Decimal = ZERO,
    ) -> BillingResult[UtilityCalculationResult]:
        try:
            units_consumed = _non_negative("Units consumed", units_consumed)
            rate_per_unit = _non_negative("Rate per unit", rate_per_unit)
            fixed_charge = _non_negative("Fixed charge", fixed_charge)
        except BillingError as exc:
            return BillingResult.fail(exc)

        calc = calculate_flat_rate(
            units_consumed=units_consumed,
            rate_per_unit=rate_per_unit,
            fixed_charge=fixed_charge,
        )
        return BillingResult.ok(
            UtilityCalculationResult(
                utility_type=utility_type,
                is_meter_based=True,
                units_consumed=units_consumed,
                total_amount=calc.total,
                description=(
                    f"{utility_type.value} - {units_consumed} units "
                    f"@ {rate_per_unit:.2f}/unit"
                ),
                slab_breakdown=calc.line_items,
            )
        )

    def calculate_slabs(
        self,
        units_consumed: Decimal,
        rate_plan_id: UUID,
        utility_type: UtilityType,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[UtilityCalculationResult]:
        """
        Slab-based charge for ``units_consumed`` against a stored rate plan.

        The plan must exist, be active, have at least one slab and pass the
        contiguity check; each of those is a distinct failure.
        """
        try:
            units_consumed = _non_negative("Units consumed", units_consumed)
            check_cancelled(cancellation, "calculate_utility_slabs")

            plan = self._rate_plans.get_with_slabs(rate_plan_id)
            if plan is None:
                raise RatePlanNotFoundError(str(rate_plan_id))
            if not plan.is_active:
                raise RatePlanInactiveError(str(rate_plan_id))
            if not plan.slabs:
                raise EmptyRatePlanError(str(rate_plan_id))

            calc = calculate_slab_charges(units_consumed=units_consumed, slabs=plan.slabs)
        except OperationCancelledError:
            raise
        except BillingError as exc:
            logger.warning(
                "utility_slab_calculation_failed",
                extra={
                    "rate_plan_id": str(rate_plan_id),
                    "error_code": exc.code,
                    "error_message": str(exc),
                },
            )
            return BillingResult.fail(exc)

        return BillingResult.ok(
            UtilityCalculationResult(
                utility_type=utility_type,
                is_meter_based=True,
                units_consumed=units_consumed,
                total_amount=calc.total,
                description=f"{utility_type.value} - {units_consumed} units (Slab-based)",
                slab_breakdown=calc.line_items,
            )
        )
