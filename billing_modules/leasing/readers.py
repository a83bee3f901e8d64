"""
Module: billing_modules.leasing.readers
Responsibility:
    Read-only SQLAlchemy adapters for the lease-side billing ports
    (``LeaseReader``, ``RecurringChargeReader``, ``ChargeTypeReader``,
    ``BillingSettingReader``).

Architecture position:
    **Modules layer** -- adapters.  Readers accept a Session from the caller
    and return frozen DTOs, never ORM instances.

Invariants enforced:
    - Read-only: no add, flush, delete or commit.
    - Charge types resolve organization-specific first, then system-wide
      (``org_id IS NULL``).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_modules.leasing.models import (
    ChargeType,
    Lease,
    LeaseBillingSetting,
    LeaseStatus,
    RecurringCharge,
)
from billing_modules.leasing.orm import (
    ChargeTypeModel,
    LeaseBillingSettingModel,
    LeaseModel,
    RecurringChargeModel,
)


class BaseReader:
    """Holds the caller's session; subclasses only query."""

    def __init__(self, session: Session):
        self.session = session


class SqlLeaseReader(BaseReader):
    def get_with_terms(self, lease_id: UUID) -> Lease | None:
        model = self.session.get(LeaseModel, lease_id)
        return model.to_dto() if model else None

    def list_active_by_org(self, org_id: UUID) -> list[Lease]:
        models = self.session.execute(
            select(LeaseModel)
            .where(
                LeaseModel.org_id == org_id,
                LeaseModel.status == LeaseStatus.ACTIVE.value,
            )
            .order_by(LeaseModel.lease_number)
        ).scalars().all()
        return [m.to_dto() for m in models]


class SqlRecurringChargeReader(BaseReader):
    def list_active_by_lease(self, lease_id: UUID) -> list[RecurringCharge]:
        models = self.session.execute(
            select(RecurringChargeModel)
            .where(
                RecurringChargeModel.lease_id == lease_id,
                RecurringChargeModel.is_active.is_(True),
            )
            .order_by(RecurringChargeModel.start_date, RecurringChargeModel.description)
        ).scalars().all()
        return [m.to_dto() for m in models]


class SqlChargeTypeReader(BaseReader):
    def get_by_code(self, code: str, org_id: UUID | None = None) -> ChargeType | None:
        if org_id is not None:
            model = self.session.execute(
                select(ChargeTypeModel).where(
                    ChargeTypeModel.code == code,
                    ChargeTypeModel.org_id == org_id,
                    ChargeTypeModel.is_active.is_(True),
                )
            ).scalar_one_or_none()
            if model is not None:
                return model.to_dto()

        model = self.session.execute(
            select(ChargeTypeModel).where(
                ChargeTypeModel.code == code,
                ChargeTypeModel.org_id.is_(None),
                ChargeTypeModel.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def get_by_id(self, charge_type_id: UUID) -> ChargeType | None:
        model = self.session.get(ChargeTypeModel, charge_type_id)
        return model.to_dto() if model else None


class SqlBillingSettingReader(BaseReader):
    def get_by_lease(self, lease_id: UUID) -> LeaseBillingSetting | None:
        model = self.session.execute(
            select(LeaseBillingSettingModel).where(
                LeaseBillingSettingModel.lease_id == lease_id,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model else None
