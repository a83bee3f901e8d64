"""
ORM round-trip and SQL adapter tests for the billing core.

Runs the readers, stores and service factories against an in-memory SQLite
database: lease-side readers, the sequence counter, invoice persistence
with row_version concurrency, credit notes and rate plans.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from billing_engines.utility import RateSlab
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.exceptions import OptimisticLockError
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.billing.models import (
    CreditNoteLineRequest,
    CreditNoteReason,
    InvoiceStatus,
    UtilityRatePlan,
    UtilityType,
)
from billing_modules.billing.orm import InvoiceLineModel
from billing_modules.billing.stores import (
    SqlCreditNoteStore,
    SqlInvoiceStore,
    build_credit_note_manager,
    build_invoice_generator,
    build_lifecycle_manager,
    build_utility_calculator,
)
from billing_modules.leasing.models import (
    ChargeType,
    Lease,
    LeaseBillingSetting,
    LeaseStatus,
    LeaseTerm,
    RecurringCharge,
)
from billing_modules.leasing.orm import (
    ChargeTypeModel,
    LeaseBillingSettingModel,
    LeaseModel,
    RecurringChargeModel,
)
from billing_modules.leasing.readers import (
    SqlBillingSettingReader,
    SqlChargeTypeReader,
    SqlLeaseReader,
    SqlRecurringChargeReader,
)
from tests.conftest import JAN_END, JAN_START, TEST_ORG_ID


def _lease(lease_number="L-001", status=LeaseStatus.ACTIVE, org_id=TEST_ORG_ID, terms=None) -> Lease:
    lease_id = uuid4()
    if terms is None:
        terms = [(date(2023, 1, 1), None, Decimal("10000"))]
    return Lease(
        id=lease_id,
        org_id=org_id,
        lease_number=lease_number,
        status=status,
        terms=tuple(
            LeaseTerm(
                id=uuid4(), lease_id=lease_id, effective_from=start,
                effective_to=end, monthly_rent=rent,
            )
            for start, end, rent in terms
        ),
    )


@pytest.fixture
def add_lease(sql_session):
    def _add(**kwargs) -> Lease:
        lease = _lease(**kwargs)
        sql_session.add(LeaseModel.from_dto(lease))
        sql_session.flush()
        return lease

    return _add


@pytest.fixture
def add_charge_type(sql_session):
    def _add(code="RENT", org_id=None, **kwargs) -> ChargeType:
        charge_type = ChargeType(id=uuid4(), org_id=org_id, code=code, name=code.title(), **kwargs)
        sql_session.add(ChargeTypeModel.from_dto(charge_type))
        sql_session.flush()
        return charge_type

    return _add


@pytest.fixture
def rent_type(add_charge_type) -> ChargeType:
    return add_charge_type()


@pytest.fixture
def clock():
    return DeterministicClock()


class TestLeaseReaders:
    def test_lease_round_trip_with_terms(self, sql_session, add_lease):
        lease = add_lease(terms=[
            (date(2024, 1, 16), None, Decimal("12000")),
            (date(2023, 1, 1), date(2024, 1, 15), Decimal("10000")),
        ])

        loaded = SqlLeaseReader(sql_session).get_with_terms(lease.id)

        assert loaded.id == lease.id
        assert loaded.status == LeaseStatus.ACTIVE
        assert [t.effective_from for t in loaded.terms] == [date(2023, 1, 1), date(2024, 1, 16)]
        assert loaded.terms[1].monthly_rent == Decimal("12000")
        assert loaded.terms[0].effective_to == date(2024, 1, 15)

    def test_unknown_lease(self, sql_session):
        assert SqlLeaseReader(sql_session).get_with_terms(uuid4()) is None

    def test_active_leases_for_org(self, sql_session, add_lease):
        add_lease(lease_number="L-003")
        add_lease(lease_number="L-001")
        add_lease(lease_number="L-002", status=LeaseStatus.ENDED)
        add_lease(lease_number="L-004", org_id=uuid4())

        leases = SqlLeaseReader(sql_session).list_active_by_org(TEST_ORG_ID)

        assert [lease.lease_number for lease in leases] == ["L-001", "L-003"]

    def test_recurring_charges_active_only(self, sql_session, add_lease, add_charge_type):
        lease = add_lease()
        maint = add_charge_type(code="MAINT", org_id=TEST_ORG_ID)
        for description, active in [("Parking", True), ("Old fee", False)]:
            sql_session.add(
                RecurringChargeModel.from_dto(
                    RecurringCharge(
                        id=uuid4(), lease_id=lease.id, charge_type_id=maint.id,
                        description=description, amount=Decimal("100"),
                        start_date=date(2023, 1, 1), is_active=active,
                    )
                )
            )
        sql_session.flush()

        charges = SqlRecurringChargeReader(sql_session).list_active_by_lease(lease.id)

        assert [c.description for c in charges] == ["Parking"]

    def test_billing_setting(self, sql_session, add_lease):
        lease = add_lease()
        sql_session.add(
            LeaseBillingSettingModel.from_dto(
                LeaseBillingSetting(lease_id=lease.id, payment_term_days=10, invoice_prefix="RNT")
            )
        )
        sql_session.flush()

        setting = SqlBillingSettingReader(sql_session).get_by_lease(lease.id)

        assert setting.payment_term_days == 10
        assert setting.invoice_prefix == "RNT"
        assert SqlBillingSettingReader(sql_session).get_by_lease(uuid4()) is None


class TestChargeTypeReader:
    def test_org_specific_type_preferred(self, sql_session, add_charge_type):
        system = add_charge_type()
        org_type = add_charge_type(org_id=TEST_ORG_ID)
        reader = SqlChargeTypeReader(sql_session)

        assert reader.get_by_code("RENT", TEST_ORG_ID).id == org_type.id
        assert reader.get_by_code("RENT", uuid4()).id == system.id
        assert reader.get_by_code("RENT").id == system.id

    def test_inactive_org_type_falls_back(self, sql_session, add_charge_type):
        system = add_charge_type()
        add_charge_type(org_id=TEST_ORG_ID, is_active=False)

        found = SqlChargeTypeReader(sql_session).get_by_code("RENT", TEST_ORG_ID)

        assert found.id == system.id

    def test_tax_fields_round_trip(self, sql_session, add_charge_type):
        taxed = add_charge_type(
            code="MAINT", org_id=TEST_ORG_ID, is_taxable=True, tax_rate=Decimal("0.18"),
        )

        loaded = SqlChargeTypeReader(sql_session).get_by_id(taxed.id)

        assert loaded.is_taxable is True
        assert loaded.effective_tax_rate == Decimal("0.18")

    def test_missing_code(self, sql_session):
        assert SqlChargeTypeReader(sql_session).get_by_code("NOPE", TEST_ORG_ID) is None


class TestSequenceService:
    def test_values_increase(self, sql_session):
        service = SequenceService(sql_session)

        assert service.next_value(TEST_ORG_ID, SequenceService.INVOICE) == 1
        assert service.next_value(TEST_ORG_ID, SequenceService.INVOICE) == 2
        assert service.current_value(TEST_ORG_ID, SequenceService.INVOICE) == 2

    def test_counters_per_org_and_type(self, sql_session):
        service = SequenceService(sql_session)
        service.next_value(TEST_ORG_ID, SequenceService.INVOICE)

        assert service.next_value(TEST_ORG_ID, SequenceService.CREDIT_NOTE) == 1
        assert service.next_value(uuid4(), SequenceService.INVOICE) == 1

    def test_unused_counter(self, sql_session):
        assert SequenceService(sql_session).current_value(TEST_ORG_ID, "Invoice") is None


class TestInvoicePersistence:
    def test_generated_invoice_persisted(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()

        result = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        )

        assert result.is_success
        stored = SqlInvoiceStore(sql_session).get_with_lines(result.invoice.id)
        assert stored.invoice_number == "INV-202401-000001"
        assert stored.status == InvoiceStatus.DRAFT
        assert stored.row_version == 1
        assert stored.total_amount == Decimal("10000.00")
        assert [line.description for line in stored.lines] == ["Rent for Jan 2024"]
        assert stored.lines[0].charge_type_id == rent_type.id

    def test_regeneration_rewrites_draft_lines(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        generator = build_invoice_generator(sql_session, clock=clock)
        first = generator.generate(lease.id, JAN_START, JAN_END).invoice

        second = generator.generate(lease.id, JAN_START, JAN_END)

        assert second.was_updated is True
        assert second.invoice.id == first.id
        assert second.invoice.invoice_number == first.invoice_number
        assert second.invoice.row_version == 2
        line_count = sql_session.execute(
            select(func.count()).select_from(InvoiceLineModel)
        ).scalar_one()
        assert line_count == 1
        assert second.invoice.lines[0].id != first.lines[0].id

    def test_lease_prefix_from_settings(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        sql_session.add(
            LeaseBillingSettingModel.from_dto(
                LeaseBillingSetting(lease_id=lease.id, invoice_prefix="RNT", payment_term_days=5)
            )
        )
        sql_session.flush()

        invoice = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice

        assert invoice.invoice_number == "RNT-202401-000001"
        assert invoice.due_date == date(2024, 2, 5)

    def test_issue_and_void_bump_row_version(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        lifecycle = build_lifecycle_manager(sql_session, clock)

        issued = lifecycle.issue(draft.id).value
        voided = lifecycle.void(draft.id, "Duplicate").value

        assert issued.status == InvoiceStatus.ISSUED
        assert issued.issued_at is not None
        assert issued.row_version == 2
        assert voided.status == InvoiceStatus.VOIDED
        assert voided.void_reason == "Duplicate"
        assert voided.row_version == 3

    def test_void_keeps_lines(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        lifecycle = build_lifecycle_manager(sql_session, clock)
        lifecycle.issue(draft.id)

        lifecycle.void(draft.id, "Duplicate")

        stored = SqlInvoiceStore(sql_session).get_with_lines(draft.id)
        assert len(stored.lines) == 1
        assert stored.lines[0].id == draft.lines[0].id

    def test_stale_update_rejected(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        build_lifecycle_manager(sql_session, clock).issue(draft.id)

        with pytest.raises(OptimisticLockError):
            SqlInvoiceStore(sql_session).update(draft, draft.row_version)

    def test_stale_expected_version_through_lifecycle(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        lifecycle = build_lifecycle_manager(sql_session, clock)
        lifecycle.issue(draft.id)

        result = lifecycle.void(draft.id, "Duplicate", expected_row_version=draft.row_version)

        assert result.failure.code == "OPTIMISTIC_LOCK_CONFLICT"

    def test_finalized_invoice_blocks_generation(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        generator = build_invoice_generator(sql_session, clock=clock)
        draft = generator.generate(lease.id, JAN_START, JAN_END).invoice
        build_lifecycle_manager(sql_session, clock).issue(draft.id)

        result = generator.generate(lease.id, JAN_START, JAN_END)

        assert result.failure.code == "INVOICE_ALREADY_EXISTS"

    def test_list_for_period_is_header_only(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        build_invoice_generator(sql_session, clock=clock).generate(lease.id, JAN_START, JAN_END)

        invoices = SqlInvoiceStore(sql_session).list_for_period(lease.id, JAN_START, JAN_END)

        assert len(invoices) == 1
        assert invoices[0].lines == ()


class TestCreditNotePersistence:
    def test_create_and_issue(self, sql_session, add_lease, add_charge_type, clock):
        add_charge_type(is_taxable=True, tax_rate=Decimal("0.18"))
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        issued = build_lifecycle_manager(sql_session, clock).issue(draft.id).value
        manager = build_credit_note_manager(sql_session, clock=clock)

        created = manager.create(
            issued.id,
            CreditNoteReason.DISCOUNT,
            [CreditNoteLineRequest(invoice_line_id=issued.lines[0].id, amount=Decimal("1180"))],
        ).value
        applied = manager.issue(created.id)

        assert created.credit_note_number == "CN-202401-000001"
        assert created.lines[0].amount == Decimal("-1000.00")
        assert created.lines[0].tax_amount == Decimal("-180.00")
        assert created.total_amount == Decimal("-1180")
        assert applied.is_success
        assert applied.value.applied_at is not None

        stored = SqlCreditNoteStore(sql_session).list_for_invoice(issued.id)
        assert [note.id for note in stored] == [created.id]
        assert stored[0].is_issued

    def test_second_issue_rejected(self, sql_session, add_lease, rent_type, clock):
        lease = add_lease()
        draft = build_invoice_generator(sql_session, clock=clock).generate(
            lease.id, JAN_START, JAN_END,
        ).invoice
        issued = build_lifecycle_manager(sql_session, clock).issue(draft.id).value
        manager = build_credit_note_manager(sql_session, clock=clock)
        created = manager.create(
            issued.id,
            CreditNoteReason.OTHER,
            [CreditNoteLineRequest(invoice_line_id=issued.lines[0].id, amount=Decimal("10"))],
        ).value
        manager.issue(created.id)

        result = manager.issue(created.id)

        assert result.failure.code == "INVALID_CREDIT_NOTE_STATE"


class TestRatePlans:
    def test_slab_plan_from_database(self, sql_session):
        from billing_modules.billing.orm import UtilityRatePlanModel

        plan = UtilityRatePlan(
            id=uuid4(),
            org_id=TEST_ORG_ID,
            name="Residential",
            utility_type=UtilityType.ELECTRICITY,
            slabs=(
                RateSlab(slab_order=2, from_units=Decimal("100"), to_units=Decimal("200"), rate_per_unit=Decimal("4")),
                RateSlab(slab_order=1, from_units=Decimal("0"), to_units=Decimal("100"), rate_per_unit=Decimal("3")),
                RateSlab(slab_order=3, from_units=Decimal("200"), to_units=None, rate_per_unit=Decimal("5")),
            ),
        )
        sql_session.add(UtilityRatePlanModel.from_dto(plan))
        sql_session.flush()

        result = build_utility_calculator(sql_session).calculate_slabs(
            Decimal("350"), plan.id, UtilityType.ELECTRICITY,
        )

        assert result.is_success
        assert result.value.total_amount == Decimal("1450.00")
