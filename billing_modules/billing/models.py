"""
Billing Domain Models (``billing_modules.billing.models``).

Responsibility
--------------
Frozen dataclass value objects for billing documents: invoices and their
lines, credit notes and their lines, utility rate plans and utility
calculation results, plus the invoice state machine table.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Services build
new versions with ``dataclasses.replace``; stores persist them.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
* Invoice rollups always equal the sums of their lines (``with_lines``).
* ``row_version`` is an opaque concurrency token: services only pass it
  back to the store, never interpret it.  ``None`` means never persisted.
* Credit-note line amounts are stored negated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from billing_engines.utility import RateSlab, SlabLineItem
from billing_kernel.domain.values import ZERO, sum_money


# =============================================================================
# Invoice state machine
# =============================================================================


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "Draft"
    ISSUED = "Issued"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    VOIDED = "Voided"


# Payment-driven moves (Issued -> PartiallyPaid/Paid/Overdue) happen outside
# this package; they are listed so the table describes the whole lifecycle.
INVOICE_TRANSITIONS: Mapping[InvoiceStatus, frozenset[InvoiceStatus]] = MappingProxyType({
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.ISSUED}),
    InvoiceStatus.ISSUED: frozenset({
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.VOIDED,
    }),
    InvoiceStatus.PARTIALLY_PAID: frozenset({
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.VOIDED,
    }),
    InvoiceStatus.OVERDUE: frozenset({
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.PAID,
        InvoiceStatus.VOIDED,
    }),
    InvoiceStatus.PAID: frozenset({InvoiceStatus.VOIDED}),
    InvoiceStatus.VOIDED: frozenset(),
})

# States a credit note may be raised against.
CREDITABLE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.ISSUED,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
    InvoiceStatus.OVERDUE,
})


def can_transition(from_status: InvoiceStatus, to_status: InvoiceStatus) -> bool:
    return to_status in INVOICE_TRANSITIONS[from_status]


# =============================================================================
# Invoices
# =============================================================================


class LineSource(str, Enum):
    """What produced an invoice line."""

    RENT = "Rent"
    RECURRING_CHARGE = "RecurringCharge"
    UTILITY = "Utility"


@dataclass(frozen=True)
class InvoiceLine:
    """
    One line of an invoice.

    ``total_amount = amount + tax_amount``.  ``source_ref_id`` points at the
    lease term or recurring charge the line was computed from.
    """

    id: UUID
    line_number: int
    charge_type_id: UUID
    description: str
    amount: Decimal
    tax_amount: Decimal = ZERO
    total_amount: Decimal | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal | None = None
    tax_rate: Decimal = ZERO
    source: LineSource | None = None
    source_ref_id: UUID | None = None
    period_start: date | None = None
    period_end: date | None = None
    invoice_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.total_amount is None:
            object.__setattr__(self, "total_amount", self.amount + self.tax_amount)
        if self.unit_price is None:
            object.__setattr__(self, "unit_price", self.amount)


@dataclass(frozen=True)
class Invoice:
    """
    A billing document for one lease and one billing period.

    At most one *draft* exists per (lease, period); that pair is the
    idempotency key for generation.
    """

    id: UUID
    org_id: UUID
    lease_id: UUID
    billing_period_start: date
    billing_period_end: date
    invoice_date: date
    due_date: date
    invoice_number: str | None = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    sub_total: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    balance_amount: Decimal = ZERO
    payment_instructions: str | None = None
    notes: str | None = None
    issued_at: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    row_version: Any = None

    def with_lines(self, lines: tuple[InvoiceLine, ...]) -> Invoice:
        """
        Replace all lines and recompute rollups.

        Payment is reset: ``paid_amount = 0`` and ``balance = total``.
        Only ever called on drafts, which cannot carry payments.
        """
        lines = tuple(replace(line, invoice_id=self.id) for line in lines)
        total = sum_money(line.total_amount for line in lines)
        return replace(
            self,
            lines=lines,
            sub_total=sum_money(line.amount for line in lines),
            tax_amount=sum_money(line.tax_amount for line in lines),
            total_amount=total,
            paid_amount=ZERO,
            balance_amount=total,
        )

    def line(self, line_id: UUID) -> InvoiceLine | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None


# =============================================================================
# Credit notes
# =============================================================================


class CreditNoteReason(str, Enum):
    INVOICE_ERROR = "InvoiceError"
    DISCOUNT = "Discount"
    REFUND = "Refund"
    GOODWILL = "Goodwill"
    ADJUSTMENT = "Adjustment"
    OTHER = "Other"


@dataclass(frozen=True)
class CreditNoteLineRequest:
    """Caller's request to credit part of one invoice line."""

    invoice_line_id: UUID
    amount: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class CreditNoteLine:
    """A credited portion of an invoice line. Amounts are negative."""

    id: UUID
    invoice_line_id: UUID
    line_number: int
    description: str
    amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: str | None = None
    credit_note_id: UUID | None = None


@dataclass(frozen=True)
class CreditNote:
    """
    Negative-value document reversing part of an issued invoice.

    ``applied_at`` is set once on issuance and never cleared.
    """

    id: UUID
    org_id: UUID
    invoice_id: UUID
    credit_note_number: str
    credit_note_date: date
    reason: CreditNoteReason
    lines: tuple[CreditNoteLine, ...] = field(default_factory=tuple)
    total_amount: Decimal = ZERO
    notes: str | None = None
    applied_at: datetime | None = None
    row_version: Any = None

    @property
    def is_issued(self) -> bool:
        return self.applied_at is not None


# =============================================================================
# Utilities
# =============================================================================


class UtilityType(str, Enum):
    ELECTRICITY = "Electricity"
    WATER = "Water"
    GAS = "Gas"


@dataclass(frozen=True)
class UtilityRatePlan:
    """Tiered tariff for one utility."""

    id: UUID
    org_id: UUID
    name: str
    utility_type: UtilityType
    is_active: bool = True
    slabs: tuple[RateSlab, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UtilityCalculationResult:
    utility_type: UtilityType
    is_meter_based: bool
    total_amount: Decimal
    description: str
    units_consumed: Decimal | None = None
    slab_breakdown: tuple[SlabLineItem, ...] = ()
