"""
Module: billing_engines.utility
Responsibility:
    Tiered (slab) and flat-rate utility tariff arithmetic.  Given units
    consumed and an ordered set of rate slabs, walk the slabs consuming
    units against each slab's capacity and produce a per-slab breakdown
    plus the rounded total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Rate plans are loaded by billing_modules.billing.utility; this module
    only sees the slabs.

Invariants enforced:
    - Slabs are contiguous and ordered: the first slab starts at or below
      zero, each later slab starts no higher than the previous slab ends,
      and only the last slab may be unbounded.
    - Slab total = rounded sum of (units_in_slab * rate + fixed_charge).
    - Decimal-only arithmetic.

Failure modes:
    - InvalidSlabConfigurationError for non-contiguous slabs.
    - ValueError for negative units, rates or fixed charges.

Usage:
    slabs = (
        RateSlab(slab_order=1, from_units=Decimal("0"), to_units=Decimal("100"), rate_per_unit=Decimal("3")),
        RateSlab(slab_order=2, from_units=Decimal("100"), to_units=Decimal("200"), rate_per_unit=Decimal("4")),
        RateSlab(slab_order=3, from_units=Decimal("200"), to_units=None, rate_per_unit=Decimal("5")),
    )
    calculate_slab_charges(units_consumed=Decimal("350"), slabs=slabs).total  # 1450.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from billing_kernel.domain.values import ZERO, round_money, sum_money, to_decimal
from billing_kernel.exceptions import InvalidSlabConfigurationError
from billing_engines.tracer import traced_engine


@dataclass(frozen=True)
class RateSlab:
    """
    One consumption band of a utility rate plan.

    ``to_units=None`` means unbounded (only valid for the last slab).
    """

    slab_order: int
    from_units: Decimal
    to_units: Decimal | None
    rate_per_unit: Decimal
    fixed_charge: Decimal | None = None

    @property
    def capacity(self) -> Decimal | None:
        if self.to_units is None:
            return None
        return self.to_units - self.from_units


@dataclass(frozen=True)
class SlabLineItem:
    """Breakdown line for the units billed within one slab."""

    from_units: Decimal
    to_units: Decimal
    units_in_slab: Decimal
    rate_per_unit: Decimal
    amount: Decimal
    fixed_charge: Decimal | None = None


@dataclass(frozen=True)
class SlabCalculation:
    line_items: tuple[SlabLineItem, ...]
    total: Decimal


def _require_non_negative(name: str, value: Decimal) -> Decimal:
    value = to_decimal(value)
    if value < 0:
        raise ValueError(f"{name} cannot be negative")
    return value


def order_slabs(slabs: Sequence[RateSlab]) -> tuple[RateSlab, ...]:
    return tuple(sorted(slabs, key=lambda s: s.slab_order))


def validate_slab_contiguity(slabs: Sequence[RateSlab]) -> None:
    """
    Raise InvalidSlabConfigurationError unless ``slabs`` (in slab order)
    form a contiguous ladder starting at or below zero.
    """
    ordered = order_slabs(slabs)
    previous: RateSlab | None = None

    for slab in ordered:
        if slab.to_units is not None and slab.to_units < slab.from_units:
            raise InvalidSlabConfigurationError(
                slab.slab_order, "to_units is below from_units",
            )
        if slab.rate_per_unit < 0:
            raise InvalidSlabConfigurationError(
                slab.slab_order, "rate_per_unit cannot be negative",
            )
        if slab.fixed_charge is not None and slab.fixed_charge < 0:
            raise InvalidSlabConfigurationError(
                slab.slab_order, "fixed_charge cannot be negative",
            )

        if previous is None:
            if slab.from_units > 0:
                raise InvalidSlabConfigurationError(
                    slab.slab_order, "first slab must start at or below zero units",
                )
        elif previous.to_units is None:
            raise InvalidSlabConfigurationError(
                previous.slab_order, "only the last slab may be unbounded",
            )
        elif slab.from_units > previous.to_units:
            raise InvalidSlabConfigurationError(
                slab.slab_order,
                f"gap between {previous.to_units} and {slab.from_units} units",
            )

        previous = slab


@traced_engine("utility_slabs", "1.0", fingerprint_fields=("units_consumed",))
def calculate_slab_charges(
    *,
    units_consumed: Decimal,
    slabs: Sequence[RateSlab],
) -> SlabCalculation:
    """
    Walk ``slabs`` in slab order consuming ``units_consumed``.

    Each slab takes ``min(remaining, to_units - from_units)`` units (all
    remaining units for the unbounded last slab).  Slabs with no capacity
    are skipped.  Breakdown amounts and the total are rounded to 2 places;
    the total is rounded once over the unrounded slab sums.
    """
    units_consumed = _require_non_negative("Units consumed", units_consumed)
    validate_slab_contiguity(slabs)

    remaining = units_consumed
    unrounded: list[Decimal] = []
    items: list[SlabLineItem] = []

    for slab in order_slabs(slabs):
        if remaining <= 0:
            break

        capacity = slab.capacity
        units_in_slab = remaining if capacity is None else min(remaining, capacity)
        if units_in_slab <= 0:
            continue

        slab_amount = units_in_slab * slab.rate_per_unit
        fixed = slab.fixed_charge or ZERO
        unrounded.append(slab_amount + fixed)

        items.append(
            SlabLineItem(
                from_units=slab.from_units,
                to_units=units_consumed if slab.to_units is None else slab.to_units,
                units_in_slab=units_in_slab,
                rate_per_unit=slab.rate_per_unit,
                amount=round_money(slab_amount),
                fixed_charge=fixed if fixed > 0 else None,
            )
        )
        remaining -= units_in_slab

    return SlabCalculation(
        line_items=tuple(items),
        total=round_money(sum_money(unrounded)),
    )


def calculate_flat_rate(
    *,
    units_consumed: Decimal,
    rate_per_unit: Decimal,
    fixed_charge: Decimal = ZERO,
) -> SlabCalculation:
    """``units * rate + fixed`` with a single breakdown line from zero."""
    units_consumed = _require_non_negative("Units consumed", units_consumed)
    rate_per_unit = _require_non_negative("Rate per unit", rate_per_unit)
    fixed_charge = _require_non_negative("Fixed charge", fixed_charge)

    consumption = units_consumed * rate_per_unit
    line = SlabLineItem(
        from_units=ZERO,
        to_units=units_consumed,
        units_in_slab=units_consumed,
        rate_per_unit=rate_per_unit,
        amount=round_money(consumption),
        fixed_charge=fixed_charge if fixed_charge > 0 else None,
    )
    return SlabCalculation(
        line_items=(line,),
        total=round_money(consumption + fixed_charge),
    )
