"""
Module: billing_modules.billing.stores
Responsibility:
    SQLAlchemy implementations of the billing document ports
    (``InvoiceStore``, ``CreditNoteStore``, ``UtilityRatePlanReader``) and
    factory helpers that wire the billing services to one session.

Architecture position:
    **Modules layer** -- adapters.  Accept a Session from the caller and
    return frozen DTOs, never ORM instances.

Invariants enforced:
    - Stores only ``flush()``; the caller owns commit and rollback.
    - ``update`` is write-if-unchanged: the row must still carry
      ``expected_row_version``, and the UPDATE itself is guarded by the
      mapper's ``version_id_col``.  Either check failing raises
      OptimisticLockError.
    - Lines are replaced only while the stored invoice is a Draft; a
      header-only DTO never drops the lines of a finalized invoice.
    - Reads use ``populate_existing`` so an identity-mapped row never hides
      a newer version.

Failure modes:
    - OptimisticLockError on a version mismatch.
    - InvoiceNotFoundError / CreditNoteNotFoundError when updating a row
      that no longer exists.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from billing_config.schema import BillingConfig
from billing_kernel.db.base import SYSTEM_ACTOR
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import (
    CreditNoteNotFoundError,
    InvoiceNotFoundError,
    OptimisticLockError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.billing.credit_notes import CreditNoteManager
from billing_modules.billing.generation import InvoiceGenerator
from billing_modules.billing.lifecycle import InvoiceLifecycleManager
from billing_modules.billing.models import (
    CreditNote,
    Invoice,
    InvoiceStatus,
    UtilityRatePlan,
)
from billing_modules.billing.numbering import (
    CreditNoteNumberGenerator,
    InvoiceNumberGenerator,
)
from billing_modules.billing.orm import (
    CreditNoteModel,
    InvoiceLineModel,
    InvoiceModel,
    UtilityRatePlanModel,
)
from billing_modules.billing.utility import UtilityCalculator
from billing_modules.leasing.readers import (
    SqlBillingSettingReader,
    SqlChargeTypeReader,
    SqlLeaseReader,
    SqlRecurringChargeReader,
)

logger = get_logger("modules.billing.stores")


class SqlInvoiceStore:
    def __init__(self, session: Session, actor: str = SYSTEM_ACTOR):
        self.session = session
        self._actor = actor

    def _load(self, invoice_id: UUID) -> InvoiceModel | None:
        return self.session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.id == invoice_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_draft_for_period(
        self, lease_id: UUID, period_start: date, period_end: date,
    ) -> Invoice | None:
        model = self.session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.lease_id == lease_id,
                InvoiceModel.billing_period_start == period_start,
                InvoiceModel.billing_period_end == period_end,
                InvoiceModel.status == InvoiceStatus.DRAFT.value,
            )
            .order_by(InvoiceModel.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def list_for_period(
        self, lease_id: UUID, period_start: date, period_end: date,
    ) -> list[Invoice]:
        models = self.session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.lease_id == lease_id,
                InvoiceModel.billing_period_start == period_start,
                InvoiceModel.billing_period_end == period_end,
            )
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto(include_lines=False) for m in models]

    def get(self, invoice_id: UUID) -> Invoice | None:
        model = self._load(invoice_id)
        return model.to_dto(include_lines=False) if model else None

    def get_with_lines(self, invoice_id: UUID) -> Invoice | None:
        model = self._load(invoice_id)
        return model.to_dto() if model else None

    def add(self, invoice: Invoice) -> Invoice:
        model = InvoiceModel.from_dto(invoice, created_by=self._actor)
        self.session.add(model)
        self.session.flush()
        logger.debug(
            "invoice_persisted",
            extra={"invoice_id": str(model.id), "row_version": model.row_version},
        )
        return model.to_dto()

    def update(self, invoice: Invoice, expected_row_version: Any) -> Invoice:
        model = self._load(invoice.id)
        if model is None:
            raise InvoiceNotFoundError(str(invoice.id))
        if model.row_version != expected_row_version:
            raise OptimisticLockError("Invoice", str(invoice.id), expected_row_version)

        try:
            if model.status == InvoiceStatus.DRAFT.value and _lines_changed(model.lines, invoice.lines):
                # Old lines go first so line numbers can be reused.
                model.lines = []
                self.session.flush()
                model.lines = [
                    InvoiceLineModel.from_dto(line, invoice.id, self._actor)
                    for line in invoice.lines
                ]
            model.apply_dto(invoice, updated_by=self._actor)
            flag_modified(model, "status")
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("Invoice", str(invoice.id), expected_row_version) from exc

        logger.debug(
            "invoice_updated",
            extra={"invoice_id": str(model.id), "row_version": model.row_version},
        )
        return model.to_dto()


def _lines_changed(current: list[InvoiceLineModel], lines) -> bool:
    # Only drafts are rewritten; finalized lines are never touched.
    return [m.id for m in current] != [line.id for line in lines]


class SqlCreditNoteStore:
    def __init__(self, session: Session, actor: str = SYSTEM_ACTOR):
        self.session = session
        self._actor = actor

    def _load(self, credit_note_id: UUID) -> CreditNoteModel | None:
        return self.session.execute(
            select(CreditNoteModel)
            .where(CreditNoteModel.id == credit_note_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_with_lines(self, credit_note_id: UUID) -> CreditNote | None:
        model = self._load(credit_note_id)
        return model.to_dto() if model else None

    def list_for_invoice(self, invoice_id: UUID) -> list[CreditNote]:
        models = self.session.execute(
            select(CreditNoteModel)
            .where(CreditNoteModel.invoice_id == invoice_id)
            .order_by(CreditNoteModel.credit_note_number)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def add(self, credit_note: CreditNote) -> CreditNote:
        model = CreditNoteModel.from_dto(credit_note, created_by=self._actor)
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def update(self, credit_note: CreditNote, expected_row_version: Any) -> CreditNote:
        """Header-only update; credit note lines never change after creation."""
        model = self._load(credit_note.id)
        if model is None:
            raise CreditNoteNotFoundError(str(credit_note.id))
        if model.row_version != expected_row_version:
            raise OptimisticLockError("CreditNote", str(credit_note.id), expected_row_version)

        model.notes = credit_note.notes
        model.applied_at = credit_note.applied_at
        model.updated_by = self._actor
        flag_modified(model, "applied_at")
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(
                "CreditNote", str(credit_note.id), expected_row_version,
            ) from exc
        return model.to_dto()


class SqlUtilityRatePlanReader:
    def __init__(self, session: Session):
        self.session = session

    def get_with_slabs(self, rate_plan_id: UUID) -> UtilityRatePlan | None:
        model = self.session.get(UtilityRatePlanModel, rate_plan_id)
        return model.to_dto() if model else None


# =============================================================================
# Wiring
# =============================================================================


def build_invoice_generator(
    session: Session,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> InvoiceGenerator:
    config = config or BillingConfig()
    return InvoiceGenerator(
        leases=SqlLeaseReader(session),
        recurring_charges=SqlRecurringChargeReader(session),
        charge_types=SqlChargeTypeReader(session),
        billing_settings=SqlBillingSettingReader(session),
        invoices=SqlInvoiceStore(session),
        number_generator=InvoiceNumberGenerator(
            SequenceService(session), clock, config.invoice_prefix,
        ),
        config=config,
    )


def build_lifecycle_manager(session: Session, clock: Clock | None = None) -> InvoiceLifecycleManager:
    return InvoiceLifecycleManager(SqlInvoiceStore(session), clock)


def build_credit_note_manager(
    session: Session,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> CreditNoteManager:
    config = config or BillingConfig()
    return CreditNoteManager(
        invoices=SqlInvoiceStore(session),
        credit_notes=SqlCreditNoteStore(session),
        number_generator=CreditNoteNumberGenerator(
            SequenceService(session), clock, config.credit_note_prefix,
        ),
        clock=clock,
    )


def build_utility_calculator(session: Session) -> UtilityCalculator:
    return UtilityCalculator(SqlUtilityRatePlanReader(session))


__all__ = [
    "SqlCreditNoteStore",
    "SqlInvoiceStore",
    "SqlUtilityRatePlanReader",
    "build_credit_note_manager",
    "build_invoice_generator",
    "build_lifecycle_manager",
    "build_utility_calculator",
]
