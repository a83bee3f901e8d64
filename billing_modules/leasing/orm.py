"""
Module: billing_modules.leasing.orm
Responsibility:
    SQLAlchemy ORM persistence models for the lease-side billing inputs.
    Maps the frozen dataclass DTOs from ``billing_modules.leasing.models``
    to relational tables.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9) via the base type map).
    - Enum fields stored as String(50) using the enum value.
    - (org_id, code) is unique for charge types.
    - One billing setting row per lease.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import SYSTEM_ACTOR, TrackedBase, UUIDString


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


# =============================================================================
# Lease
# =============================================================================


class LeaseModel(TrackedBase):
    """
    A tenancy.

    Guarantees:
        - ``lease_number`` is unique within an organization.
        - ``terms`` load eagerly, ordered by effective_from.
    """

    __tablename__ = "billing_leases"

    __table_args__ = (
        UniqueConstraint("org_id", "lease_number", name="uq_billing_lease_number"),
        Index("idx_billing_lease_org_status", "org_id", "status"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    lease_number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="Draft")

    terms: Mapped[list["LeaseTermModel"]] = relationship(
        "LeaseTermModel",
        back_populates="lease",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LeaseTermModel.effective_from",
    )

    def to_dto(self, include_terms: bool = True):
        from billing_modules.leasing.models import Lease, LeaseStatus

        return Lease(
            id=self.id,
            org_id=self.org_id,
            lease_number=self.lease_number,
            status=LeaseStatus(self.status),
            terms=tuple(t.to_dto() for t in self.terms) if include_terms else (),
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "LeaseModel":
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            lease_number=dto.lease_number,
            status=_enum_value(dto.status),
            terms=[LeaseTermModel.from_dto(t, created_by) for t in dto.terms],
            created_by=created_by,
        )

    def __repr__(self) -> str:
        return f"<LeaseModel {self.lease_number} ({self.status})>"


class LeaseTermModel(TrackedBase):
    """A dated rent agreement version."""

    __tablename__ = "billing_lease_terms"

    __table_args__ = (
        Index("idx_billing_lease_term_lease", "lease_id", "effective_from"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_leases.id"),
        nullable=False,
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    monthly_rent: Mapped[Decimal] = mapped_column(nullable=False)

    lease: Mapped["LeaseModel"] = relationship(
        "LeaseModel", back_populates="terms",
    )

    def to_dto(self):
        from billing_modules.leasing.models import LeaseTerm

        return LeaseTerm(
            id=self.id,
            lease_id=self.lease_id,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            monthly_rent=self.monthly_rent,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "LeaseTermModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            monthly_rent=dto.monthly_rent,
            created_by=created_by,
        )


# =============================================================================
# Charge types and recurring charges
# =============================================================================


class ChargeTypeModel(TrackedBase):
    """Ledger category for invoice lines. ``org_id`` NULL = system-wide."""

    __tablename__ = "billing_charge_types"

    __table_args__ = (
        UniqueConstraint("org_id", "code", name="uq_billing_charge_type_code"),
    )

    org_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    def to_dto(self):
        from billing_modules.leasing.models import ChargeType

        return ChargeType(
            id=self.id,
            org_id=self.org_id,
            code=self.code,
            name=self.name,
            is_active=self.is_active,
            is_taxable=self.is_taxable,
            tax_rate=self.tax_rate,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "ChargeTypeModel":
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            code=dto.code,
            name=dto.name,
            is_active=dto.is_active,
            is_taxable=dto.is_taxable,
            tax_rate=dto.tax_rate,
            created_by=created_by,
        )


class RecurringChargeModel(TrackedBase):
    """A fee attached to a lease."""

    __tablename__ = "billing_recurring_charges"

    __table_args__ = (
        Index("idx_billing_recurring_charge_lease", "lease_id", "is_active"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_leases.id"),
        nullable=False,
    )
    charge_type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_charge_types.id"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    frequency: Mapped[str] = mapped_column(String(50), default="Monthly")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from billing_modules.leasing.models import BillingFrequency, RecurringCharge

        return RecurringCharge(
            id=self.id,
            lease_id=self.lease_id,
            charge_type_id=self.charge_type_id,
            description=self.description,
            amount=self.amount,
            frequency=BillingFrequency(self.frequency),
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "RecurringChargeModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            charge_type_id=dto.charge_type_id,
            description=dto.description,
            amount=dto.amount,
            frequency=_enum_value(dto.frequency),
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
            created_by=created_by,
        )


class LeaseBillingSettingModel(TrackedBase):
    """Per-lease billing overrides."""

    __tablename__ = "billing_lease_settings"

    __table_args__ = (
        UniqueConstraint("lease_id", name="uq_billing_lease_setting_lease"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("billing_leases.id"),
        nullable=False,
    )
    payment_term_days: Mapped[int | None] = mapped_column(nullable=True)
    invoice_prefix: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from billing_modules.leasing.models import LeaseBillingSetting

        return LeaseBillingSetting(
            lease_id=self.lease_id,
            payment_term_days=self.payment_term_days,
            invoice_prefix=self.invoice_prefix,
            payment_instructions=self.payment_instructions,
        )

    @classmethod
    def from_dto(cls, dto, created_by: str = SYSTEM_ACTOR) -> "LeaseBillingSettingModel":
        return cls(
            lease_id=dto.lease_id,
            payment_term_days=dto.payment_term_days,
            invoice_prefix=dto.invoice_prefix,
            payment_instructions=dto.payment_instructions,
            created_by=created_by,
        )
