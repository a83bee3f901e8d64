"""
Repository ports for the billing services.

The services depend only on these protocols.  SQLAlchemy implementations
live in ``billing_modules.billing.stores`` and
``billing_modules.leasing.readers``; tests use in-memory fakes.

Stores return frozen domain objects.  Every read of an invoice or credit
note carries its ``row_version``; ``update`` requires the version that was
read and raises ``OptimisticLockError`` if it changed meanwhile.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from billing_modules.billing.models import CreditNote, Invoice, UtilityRatePlan
from billing_modules.leasing.models import (
    ChargeType,
    Lease,
    LeaseBillingSetting,
    RecurringCharge,
)


@runtime_checkable
class LeaseReader(Protocol):
    def get_with_terms(self, lease_id: UUID) -> Lease | None: ...

    def list_active_by_org(self, org_id: UUID) -> list[Lease]: ...


@runtime_checkable
class RecurringChargeReader(Protocol):
    def list_active_by_lease(self, lease_id: UUID) -> list[RecurringCharge]: ...


@runtime_checkable
class ChargeTypeReader(Protocol):
    def get_by_code(self, code: str, org_id: UUID | None = None) -> ChargeType | None:
        """Organization-specific type first, then the system-wide one."""
        ...

    def get_by_id(self, charge_type_id: UUID) -> ChargeType | None: ...


@runtime_checkable
class BillingSettingReader(Protocol):
    def get_by_lease(self, lease_id: UUID) -> LeaseBillingSetting | None: ...


@runtime_checkable
class UtilityRatePlanReader(Protocol):
    def get_with_slabs(self, rate_plan_id: UUID) -> UtilityRatePlan | None: ...


@runtime_checkable
class InvoiceStore(Protocol):
    def get_draft_for_period(
        self, lease_id: UUID, period_start: date, period_end: date,
    ) -> Invoice | None: ...

    def list_for_period(
        self, lease_id: UUID, period_start: date, period_end: date,
    ) -> list[Invoice]:
        """Every invoice (any status) for exactly this lease and period."""
        ...

    def get(self, invoice_id: UUID) -> Invoice | None:
        """Header only; ``lines`` may be empty."""
        ...

    def get_with_lines(self, invoice_id: UUID) -> Invoice | None: ...

    def add(self, invoice: Invoice) -> Invoice:
        """Persist a new invoice; returns it with its first row_version."""
        ...

    def update(self, invoice: Invoice, expected_row_version: Any) -> Invoice:
        """Write-if-unchanged; returns the invoice with its new row_version."""
        ...


@runtime_checkable
class CreditNoteStore(Protocol):
    def get_with_lines(self, credit_note_id: UUID) -> CreditNote | None: ...

    def add(self, credit_note: CreditNote) -> CreditNote: ...

    def update(self, credit_note: CreditNote, expected_row_version: Any) -> CreditNote: ...


@runtime_checkable
class NumberSequenceProvider(Protocol):
    def next_value(self, org_id: UUID, sequence_type: str) -> int:
        """Atomically allocate the next value of a per-organization sequence."""
        ...
