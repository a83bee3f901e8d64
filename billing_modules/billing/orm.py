"""
Module: billing_modules.billing.orm
Responsibility:
    SQLAlchemy ORM persistence models for billing documents and utility
    rate plans.  Maps the frozen DTOs from ``billing_modules.billing.models``
    to relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - ``row_version`` is a SQLAlchemy ``version_id_col`` on invoices and
      credit notes: every UPDATE is ``... WHERE row_version = :read``.
    - Lines cascade with their document (delete-orphan); replacing the
      collection replaces the rows.
    - Enum fields stored as String(50) using the enum value.
    - (org_id, invoice_number) and (org_id, credit_note_number) unique.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import SYSTEM_ACTOR, TrackedBase, UUIDString


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


# =============================================================================
# Invoice
# =============================================================================


class InvoiceModel(TrackedBase):
    """
    Invoice header.

    Guarantees:
        - One row per invoice; lines in ``billing_invoice_lines``.
        - Rollup columns mirror the DTO and are written, never derived, here.
    """

    __tablename__ = "billing_invoices"

    __table_args__ = (
        UniqueConstraint("org_id", "invoice_number", name="uq_billing_invoice_number"),
        Index(
            "idx_billing_invoice_lease_period",
            "lease_id", "billing_period_start", "billing_period_end",
        ),
        Index("idx_billing_invoice_status", "status"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_leases.id"),
        nullable=False,
    )
    invoice_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="Draft")
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    sub_total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    balance_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    payment_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    lines: Mapped[list["InvoiceLineModel"]] = relationship(
        "InvoiceLineModel",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineModel.line_number",
    )

    __mapper_args__ = {"version_id_col": row_version}

    def to_dto(self, include_lines: bool = True):
        from billing_modules.billing.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            org_id=self.org_id,
            lease_id=self.lease_id,
            invoice_number=self.invoice_number,
            status=InvoiceStatus(self.status),
            invoice_date=self.invoice_date,
            due_date=self.due_date,
            billing_period_start=self.billing_period_start,
            billing_period_end=self.billing_period_end,
            lines=tuple(line.to_dto() for line in self.lines) if include_lines else (),
            sub_total=self.sub_total,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            balance_amount=self.balance_amount,
            payment_instructions=self.payment_instructions,
            notes=self.notes,
            issued_at=self.issued_at,
            voided_at=self.voided_at,
            void_reason=self.void_reason,
            row_version=self.row_version,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "InvoiceModel":
        model = cls(id=dto.id, created_by=created_by)
        model.apply_dto(dto)
        model.lines = [InvoiceLineModel.from_dto(line, dto.id, created_by) for line in dto.lines]
        return model

    def apply_dto(self, dto, updated_by: str | None = None) -> None:
        """Copy the header fields from ``dto``. Lines are handled by the caller."""
        self.org_id = dto.org_id
        self.lease_id = dto.lease_id
        self.invoice_number = dto.invoice_number
        self.status = _enum_value(dto.status)
        self.invoice_date = dto.invoice_date
        self.due_date = dto.due_date
        self.billing_period_start = dto.billing_period_start
        self.billing_period_end = dto.billing_period_end
        self.sub_total = dto.sub_total
        self.tax_amount = dto.tax_amount
        self.total_amount = dto.total_amount
        self.paid_amount = dto.paid_amount
        self.balance_amount = dto.balance_amount
        self.payment_instructions = dto.payment_instructions
        self.notes = dto.notes
        self.issued_at = dto.issued_at
        self.voided_at = dto.voided_at
        self.void_reason = dto.void_reason
        if updated_by is not None:
            self.updated_by = updated_by

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} ({self.status}) v{self.row_version}>"


class InvoiceLineModel(TrackedBase):
    """One invoice line."""

    __tablename__ = "billing_invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_billing_invoice_line_number"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_invoices.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    charge_type_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_ref_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship("InvoiceModel", back_populates="lines")

    def to_dto(self):
        from billing_modules.billing.models import InvoiceLine, LineSource

        return InvoiceLine(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            charge_type_id=self.charge_type_id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            source=LineSource(self.source) if self.source else None,
            source_ref_id=self.source_ref_id,
            period_start=self.period_start,
            period_end=self.period_end,
        )

    @classmethod
    def from_dto(cls, dto, invoice_id: UUID, created_by: str = SYSTEM_ACTOR) -> "InvoiceLineModel":
        return cls(
            id=dto.id,
            invoice_id=invoice_id,
            line_number=dto.line_number,
            charge_type_id=dto.charge_type_id,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            amount=dto.amount,
            tax_rate=dto.tax_rate,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            source=_enum_value(dto.source) if dto.source else None,
            source_ref_id=dto.source_ref_id,
            period_start=dto.period_start,
            period_end=dto.period_end,
            created_by=created_by,
        )


# =============================================================================
# Credit notes
# =============================================================================


class CreditNoteModel(TrackedBase):
    """Credit note header. Amounts negative."""

    __tablename__ = "billing_credit_notes"

    __table_args__ = (
        UniqueConstraint("org_id", "credit_note_number", name="uq_billing_credit_note_number"),
        Index("idx_billing_credit_note_invoice", "invoice_id"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_invoices.id"),
        nullable=False,
    )
    credit_note_number: Mapped[str] = mapped_column(String(50), nullable=False)
    credit_note_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    lines: Mapped[list["CreditNoteLineModel"]] = relationship(
        "CreditNoteLineModel",
        back_populates="credit_note",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CreditNoteLineModel.line_number",
    )

    __mapper_args__ = {"version_id_col": row_version}

    def to_dto(self):
        from billing_modules.billing.models import CreditNote, CreditNoteReason

        return CreditNote(
            id=self.id,
            org_id=self.org_id,
            invoice_id=self.invoice_id,
            credit_note_number=self.credit_note_number,
            credit_note_date=self.credit_note_date,
            reason=CreditNoteReason(self.reason),
            lines=tuple(line.to_dto() for line in self.lines),
            total_amount=self.total_amount,
            notes=self.notes,
            applied_at=self.applied_at,
            row_version=self.row_version,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "CreditNoteModel":
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            invoice_id=dto.invoice_id,
            credit_note_number=dto.credit_note_number,
            credit_note_date=dto.credit_note_date,
            reason=_enum_value(dto.reason),
            total_amount=dto.total_amount,
            notes=dto.notes,
            applied_at=dto.applied_at,
            lines=[CreditNoteLineModel.from_dto(line, dto.id, created_by) for line in dto.lines],
            created_by=created_by,
        )


class CreditNoteLineModel(TrackedBase):
    __tablename__ = "billing_credit_note_lines"

    credit_note_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_credit_notes.id"),
        nullable=False,
    )
    invoice_line_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_invoice_lines.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    credit_note: Mapped["CreditNoteModel"] = relationship(
        "CreditNoteModel", back_populates="lines",
    )

    def to_dto(self):
        from billing_modules.billing.models import CreditNoteLine

        return CreditNoteLine(
            id=self.id,
            credit_note_id=self.credit_note_id,
            invoice_line_id=self.invoice_line_id,
            line_number=self.line_number,
            description=self.description,
            amount=self.amount,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, credit_note_id: UUID, created_by: str = SYSTEM_ACTOR) -> "CreditNoteLineModel":
        return cls(
            id=dto.id,
            credit_note_id=credit_note_id,
            invoice_line_id=dto.invoice_line_id,
            line_number=dto.line_number,
            description=dto.description,
            amount=dto.amount,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            notes=dto.notes,
            created_by=created_by,
        )


# =============================================================================
# Utility rate plans
# =============================================================================


class UtilityRatePlanModel(TrackedBase):
    __tablename__ = "billing_utility_rate_plans"

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    utility_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    slabs: Mapped[list["RateSlabModel"]] = relationship(
        "RateSlabModel",
        back_populates="rate_plan",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RateSlabModel.slab_order",
    )

    def to_dto(self):
        from billing_modules.billing.models import UtilityRatePlan, UtilityType

        return UtilityRatePlan(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            utility_type=UtilityType(self.utility_type),
            is_active=self.is_active,
            slabs=tuple(slab.to_dto() for slab in self.slabs),
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "UtilityRatePlanModel":
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            name=dto.name,
            utility_type=_enum_value(dto.utility_type),
            is_active=dto.is_active,
            slabs=[RateSlabModel.from_dto(slab, created_by) for slab in dto.slabs],
            created_by=created_by,
        )


class RateSlabModel(TrackedBase):
    __tablename__ = "billing_rate_slabs"

    __table_args__ = (
        UniqueConstraint("rate_plan_id", "slab_order", name="uq_billing_rate_slab_order"),
    )

    rate_plan_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_utility_rate_plans.id"),
        nullable=False,
    )
    slab_order: Mapped[int] = mapped_column(Integer, nullable=False)
    from_units: Mapped[Decimal] = mapped_column(nullable=False)
    to_units: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    fixed_charge: Mapped[Decimal | None] = mapped_column(nullable=True)

    rate_plan: Mapped["UtilityRatePlanModel"] = relationship(
        "UtilityRatePlanModel", back_populates="slabs",
    )

    def to_dto(self):
        from billing_engines.utility import RateSlab

        return RateSlab(
            slab_order=self.slab_order,
            from_units=self.from_units,
            to_units=self.to_units,
            rate_per_unit=self.rate_per_unit,
            fixed_charge=self.fixed_charge,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "RateSlabModel":
        return cls(
            slab_order=dto.slab_order,
            from_units=dto.from_units,
            to_units=dto.to_units,
            rate_per_unit=dto.rate_per_unit,
            fixed_charge=dto.fixed_charge,
            created_by=created_by,
        )
