"""
Leasing Domain Models (``billing_modules.leasing.models``).

Responsibility
--------------
Frozen dataclass value objects for the lease-side inputs of billing:
leases and their versioned rent terms, recurring charges, charge types
and per-lease billing settings.  Lease management owns these records;
the billing core only reads them.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``Lease.terms`` is ordered by ``effective_from``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.values import DateRange


class LeaseStatus(str, Enum):
    """Lease lifecycle states."""

    DRAFT = "Draft"
    ACTIVE = "Active"
    NOTICE_GIVEN = "NoticeGiven"
    ENDED = "Ended"
    CANCELLED = "Cancelled"


class BillingFrequency(str, Enum):
    """How often a recurring charge falls due. Only MONTHLY is billed."""

    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"
    ONE_TIME = "OneTime"


class ChargeCode:
    """Well-known charge type codes."""

    RENT = "RENT"
    MAINTENANCE = "MAINT"


@dataclass(frozen=True)
class LeaseTerm:
    """
    A dated rent agreement version.

    ``effective_to=None`` means open-ended.  Superseded terms are never
    edited; a rent change appends a new term.
    """

    id: UUID
    lease_id: UUID
    effective_from: date
    monthly_rent: Decimal
    effective_to: date | None = None

    def __post_init__(self) -> None:
        if self.monthly_rent < 0:
            raise ValueError("Monthly rent cannot be negative")
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValueError("Term end cannot be before term start")

    def overlaps(self, period: DateRange) -> bool:
        return period.overlaps(self.effective_from, self.effective_to)


@dataclass(frozen=True)
class Lease:
    """A tenancy with its rent history."""

    id: UUID
    org_id: UUID
    lease_number: str
    status: LeaseStatus = LeaseStatus.DRAFT
    terms: tuple[LeaseTerm, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.terms, key=lambda t: t.effective_from))
        object.__setattr__(self, "terms", ordered)

    @property
    def is_active(self) -> bool:
        return self.status == LeaseStatus.ACTIVE

    @property
    def display_name(self) -> str:
        return self.lease_number or str(self.id)


@dataclass(frozen=True)
class ChargeType:
    """
    Ledger category for an invoice line (rent, maintenance, ...).

    ``tax_rate`` is a fraction (``Decimal("0.18")`` = 18%) and only applies
    when ``is_taxable`` is set.
    """

    id: UUID
    org_id: UUID | None
    code: str
    name: str
    is_active: bool = True
    is_taxable: bool = False
    tax_rate: Decimal = Decimal("0")

    @property
    def effective_tax_rate(self) -> Decimal:
        return self.tax_rate if self.is_taxable else Decimal("0")


@dataclass(frozen=True)
class RecurringCharge:
    """A fee attached to a lease (maintenance, parking, ...)."""

    id: UUID
    lease_id: UUID
    charge_type_id: UUID
    description: str
    amount: Decimal
    start_date: date
    frequency: BillingFrequency = BillingFrequency.MONTHLY
    end_date: date | None = None
    is_active: bool = True

    def overlaps(self, period: DateRange) -> bool:
        return period.overlaps(self.start_date, self.end_date)


@dataclass(frozen=True)
class LeaseBillingSetting:
    """Per-lease overrides of the organization billing defaults."""

    lease_id: UUID
    payment_term_days: int | None = None
    invoice_prefix: str | None = None
    payment_instructions: str | None = None
