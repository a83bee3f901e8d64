"""
ORM models for invoice-run persistence.

Contract:
    InvoiceRunModel and InvoiceRunItemModel persist a finished run and its
    per-lease items.  Each has ``to_dto()`` / ``from_dto()`` round-trip
    methods.  ``SqlInvoiceRunStore`` is the SQLAlchemy ``InvoiceRunStore``.

Architecture: billing_batch/models. Imports from billing_kernel.db.base only
    (plus the batch domain types).

Invariants enforced:
    - ``run_number`` is UNIQUE.
    - A run is written once, with all of its items, at the end of the run.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from billing_kernel.db.base import SYSTEM_ACTOR, TrackedBase, UUIDString
from billing_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from billing_batch.domain.types import InvoiceRun, InvoiceRunItem

logger = get_logger("batch.run_store")


class InvoiceRunModel(TrackedBase):
    """Persistent invoice run record."""

    __tablename__ = "billing_invoice_runs"

    __table_args__ = (
        Index("ix_billing_invoice_runs_org_period", "org_id", "billing_period_start"),
        Index("ix_billing_invoice_runs_status", "status"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    run_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    run_type: Mapped[str] = mapped_column(String(50), nullable=False)
    billing_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    billing_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    total_leases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["InvoiceRunItemModel"]] = relationship(
        "InvoiceRunItemModel",
        back_populates="run",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> InvoiceRun:
        from billing_batch.domain.types import InvoiceRun, InvoiceRunStatus, InvoiceRunType

        return InvoiceRun(
            id=self.id,
            org_id=self.org_id,
            run_number=self.run_number,
            run_type=InvoiceRunType(self.run_type),
            billing_period_start=self.billing_period_start,
            billing_period_end=self.billing_period_end,
            status=InvoiceRunStatus(self.status),
            total_leases=self.total_leases,
            success_count=self.success_count,
            failure_count=self.failure_count,
            started_at=self.started_at,
            completed_at=self.completed_at,
            error_summary=self.error_summary,
            notes=self.notes,
            items=tuple(item.to_dto() for item in self.items),
        )

    @classmethod
    def from_dto(cls, dto: InvoiceRun, created_by: str = SYSTEM_ACTOR) -> InvoiceRunModel:
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            run_number=dto.run_number,
            run_type=dto.run_type.value,
            billing_period_start=dto.billing_period_start,
            billing_period_end=dto.billing_period_end,
            status=dto.status.value,
            total_leases=dto.total_leases,
            success_count=dto.success_count,
            failure_count=dto.failure_count,
            started_at=dto.started_at,
            completed_at=dto.completed_at,
            error_summary=dto.error_summary,
            notes=dto.notes,
            items=[InvoiceRunItemModel.from_dto(item, created_by) for item in dto.items],
            created_by=created_by,
        )


class InvoiceRunItemModel(TrackedBase):
    """One lease's result within a run."""

    __tablename__ = "billing_invoice_run_items"

    __table_args__ = (
        Index("ix_billing_invoice_run_items_run", "run_id"),
    )

    run_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_invoice_runs.id"),
        nullable=False,
    )
    lease_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    is_success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped["InvoiceRunModel"] = relationship(
        "InvoiceRunModel", back_populates="items",
    )

    def to_dto(self) -> InvoiceRunItem:
        from billing_batch.domain.types import InvoiceRunItem

        return InvoiceRunItem(
            id=self.id,
            run_id=self.run_id,
            lease_id=self.lease_id,
            invoice_id=self.invoice_id,
            is_success=self.is_success,
            error_message=self.error_message,
        )

    @classmethod
    def from_dto(cls, dto: InvoiceRunItem, created_by: str = SYSTEM_ACTOR) -> InvoiceRunItemModel:
        return cls(
            id=dto.id,
            run_id=dto.run_id,
            lease_id=dto.lease_id,
            invoice_id=dto.invoice_id,
            is_success=dto.is_success,
            error_message=dto.error_message,
            created_by=created_by,
        )


class SqlInvoiceRunStore:
    def __init__(self, session: Session, actor: str = SYSTEM_ACTOR):
        self.session = session
        self._actor = actor

    def add(self, run: InvoiceRun) -> InvoiceRun:
        model = InvoiceRunModel.from_dto(run, created_by=self._actor)
        self.session.add(model)
        self.session.flush()
        logger.debug(
            "invoice_run_persisted",
            extra={"run_id": str(model.id), "item_count": len(model.items)},
        )
        return model.to_dto()

    def get(self, run_id: UUID) -> InvoiceRun | None:
        model = self.session.get(InvoiceRunModel, run_id)
        return model.to_dto() if model else None
