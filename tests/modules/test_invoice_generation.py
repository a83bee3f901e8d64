"""
Tests for InvoiceGenerator.

Covers:
- Composing rent and recurring-charge lines into a draft
- Idempotent regeneration of the draft for a lease and period
- Blocking when a finalized invoice already covers the period
- Charge-type resolution, tax and the missing-charge-type policy
- Per-lease billing settings and config defaults
- Failure results and cancellation
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_config.schema import BillingConfig, MissingChargeTypePolicy
from billing_engines.proration import ProrationMethod
from billing_kernel.domain.cancellation import CancellationToken
from billing_kernel.exceptions import FailureKind, OperationCancelledError
from billing_modules.billing.generation import InvoiceGenerator
from billing_modules.billing.models import InvoiceStatus, LineSource
from billing_modules.billing.numbering import InvoiceNumberGenerator
from billing_modules.leasing.models import (
    ChargeType,
    LeaseBillingSetting,
    LeaseStatus,
    RecurringCharge,
)
from tests.conftest import JAN_END, JAN_START, TEST_ORG_ID
from tests.fakes import InMemoryChargeTypes


@pytest.fixture
def maintenance_type(charge_types) -> ChargeType:
    """Org-specific, taxed at 18%."""
    return charge_types.add(
        ChargeType(
            id=uuid4(),
            org_id=TEST_ORG_ID,
            code="MAINT",
            name="Maintenance",
            is_taxable=True,
            tax_rate=Decimal("0.18"),
        )
    )


@pytest.fixture
def add_charge(recurring_charges):
    def _add(lease, charge_type_id, amount="500", description="Maintenance", start=date(2023, 1, 1)):
        return recurring_charges.add(
            RecurringCharge(
                id=uuid4(),
                lease_id=lease.id,
                charge_type_id=charge_type_id,
                description=description,
                amount=Decimal(amount),
                start_date=start,
            )
        )

    return _add


def _generator(
    leases, recurring_charges, charge_types, billing_settings, invoices, sequences, clock,
    config,
) -> InvoiceGenerator:
    return InvoiceGenerator(
        leases=leases,
        recurring_charges=recurring_charges,
        charge_types=charge_types,
        billing_settings=billing_settings,
        invoices=invoices,
        number_generator=InvoiceNumberGenerator(sequences, clock, config.invoice_prefix),
        config=config,
    )


class TestNewInvoice:
    """First generation for a lease and period."""

    def test_full_month_rent_invoice(self, invoice_generator, make_lease, rent_charge_type):
        lease = make_lease()

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.is_success
        assert result.was_updated is False
        invoice = result.invoice
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.invoice_number == "INV-202401-000001"
        assert invoice.org_id == lease.org_id
        assert invoice.lease_id == lease.id
        assert (invoice.billing_period_start, invoice.billing_period_end) == (JAN_START, JAN_END)
        assert invoice.invoice_date == JAN_END
        assert invoice.due_date == JAN_END
        assert invoice.row_version == 1

        line = invoice.lines[0]
        assert line.line_number == 1
        assert line.description == "Rent for Jan 2024"
        assert line.amount == Decimal("10000.00")
        assert line.charge_type_id == rent_charge_type.id
        assert line.source == LineSource.RENT
        assert line.source_ref_id == lease.terms[0].id

    def test_rollups_match_lines(self, invoice_generator, make_lease):
        lease = make_lease()

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.sub_total == Decimal("10000.00")
        assert invoice.tax_amount == Decimal("0")
        assert invoice.total_amount == Decimal("10000.00")
        assert invoice.paid_amount == Decimal("0")
        assert invoice.balance_amount == invoice.total_amount

    def test_rent_change_mid_month(self, invoice_generator, make_lease):
        lease = make_lease(terms=[
            (date(2023, 1, 1), date(2024, 1, 15), Decimal("10000")),
            (date(2024, 1, 16), None, Decimal("12000")),
        ])

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert [line.amount for line in invoice.lines] == [Decimal("4838.71"), Decimal("6193.55")]
        assert [line.line_number for line in invoice.lines] == [1, 2]
        assert invoice.total_amount == Decimal("11032.26")

    def test_proration_method_argument(self, invoice_generator, make_lease):
        lease = make_lease(terms=[(date(2024, 1, 15), None, Decimal("10000"))])

        invoice = invoice_generator.generate(
            lease.id, JAN_START, JAN_END, ProrationMethod.THIRTY_DAY_MONTH,
        ).invoice

        assert invoice.total_amount == Decimal("5666.67")

    def test_proration_method_from_config(
        self, leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
        deterministic_clock, make_lease,
    ):
        config = BillingConfig(default_proration_method="ThirtyDayMonth")
        generator = _generator(
            leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
            deterministic_clock, config,
        )
        lease = make_lease(terms=[(date(2024, 1, 15), None, Decimal("10000"))])

        invoice = generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.total_amount == Decimal("5666.67")

    def test_lease_without_rent_terms_gives_empty_draft(self, invoice_generator, make_lease):
        lease = make_lease(terms=[(date(2022, 1, 1), date(2023, 6, 30), Decimal("9000"))])

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.is_success
        assert result.invoice.lines == ()
        assert result.invoice.total_amount == Decimal("0")

    def test_generation_logged(self, invoice_generator, make_lease, captured_logs):
        lease = make_lease()

        invoice_generator.generate(lease.id, JAN_START, JAN_END)

        records = [r for r in captured_logs() if r["message"] == "invoice_generated"]
        assert len(records) == 1
        assert records[0]["lease_id"] == str(lease.id)
        assert records[0]["invoice_number"] == "INV-202401-000001"
        assert records[0]["was_updated"] is False


class TestRecurringChargeLines:
    def test_recurring_lines_follow_rent(
        self, invoice_generator, make_lease, maintenance_type, add_charge,
    ):
        lease = make_lease()
        add_charge(lease, maintenance_type.id)

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert [line.source for line in invoice.lines] == [
            LineSource.RENT, LineSource.RECURRING_CHARGE,
        ]
        charge_line = invoice.lines[1]
        assert charge_line.line_number == 2
        assert charge_line.description == "Maintenance"
        assert charge_line.charge_type_id == maintenance_type.id

    def test_taxable_charge(self, invoice_generator, make_lease, maintenance_type, add_charge):
        lease = make_lease()
        add_charge(lease, maintenance_type.id, amount="500")

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        charge_line = invoice.lines[1]
        assert charge_line.amount == Decimal("500.00")
        assert charge_line.tax_rate == Decimal("0.18")
        assert charge_line.tax_amount == Decimal("90.00")
        assert charge_line.total_amount == Decimal("590.00")
        assert invoice.sub_total == Decimal("10500.00")
        assert invoice.tax_amount == Decimal("90.00")
        assert invoice.total_amount == Decimal("10590.00")

    def test_tax_rate_ignored_when_not_taxable(
        self, invoice_generator, charge_types, make_lease, add_charge,
    ):
        parking = charge_types.add(
            ChargeType(
                id=uuid4(), org_id=TEST_ORG_ID, code="PARK", name="Parking",
                is_taxable=False, tax_rate=Decimal("0.18"),
            )
        )
        lease = make_lease()
        add_charge(lease, parking.id, amount="200", description="Parking")

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.lines[1].tax_amount == Decimal("0")
        assert invoice.tax_amount == Decimal("0")

    def test_tax_rounded_per_line(self, invoice_generator, make_lease, maintenance_type, add_charge):
        lease = make_lease()
        add_charge(lease, maintenance_type.id, amount="33.33")

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.lines[1].tax_amount == Decimal("6.00")

    def test_multiple_charges_numbered_in_reader_order(
        self, invoice_generator, make_lease, maintenance_type, add_charge,
    ):
        lease = make_lease()
        add_charge(lease, maintenance_type.id, description="Maintenance")
        add_charge(lease, maintenance_type.id, amount="150", description="Housekeeping")

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert [(line.line_number, line.description) for line in invoice.lines] == [
            (1, "Rent for Jan 2024"),
            (2, "Maintenance"),
            (3, "Housekeeping"),
        ]


class TestMissingChargeTypes:
    def test_missing_recurring_type_skipped_by_default(
        self, invoice_generator, make_lease, add_charge, captured_logs,
    ):
        lease = make_lease()
        charge = add_charge(lease, uuid4(), amount="250")

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.is_success
        assert len(result.invoice.lines) == 1
        assert len(result.skipped_lines) == 1
        skipped = result.skipped_lines[0]
        assert skipped.recurring_charge_id == charge.id
        assert skipped.amount == Decimal("250.00")
        warnings = [r for r in captured_logs() if r["message"] == "recurring_charge_skipped"]
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["recurring_charge_id"] == str(charge.id)

    def test_line_numbers_stay_contiguous_after_skip(
        self, invoice_generator, make_lease, maintenance_type, add_charge,
    ):
        lease = make_lease()
        add_charge(lease, uuid4(), description="Unknown")
        add_charge(lease, maintenance_type.id, description="Maintenance")

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert [line.line_number for line in invoice.lines] == [1, 2]
        assert invoice.lines[1].description == "Maintenance"

    def test_fail_policy_fails_invoice(
        self, leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
        deterministic_clock, make_lease, add_charge,
    ):
        config = BillingConfig(missing_charge_type_policy=MissingChargeTypePolicy.FAIL)
        generator = _generator(
            leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
            deterministic_clock, config,
        )
        lease = make_lease()
        add_charge(lease, uuid4())

        result = generator.generate(lease.id, JAN_START, JAN_END)

        assert not result.is_success
        assert result.failure.code == "CHARGE_TYPE_NOT_FOUND"
        assert result.failure.kind == FailureKind.CONFIGURATION
        assert invoices.all() == []

    def test_missing_rent_type_fails(
        self, leases, recurring_charges, billing_settings, invoices, sequences,
        deterministic_clock, billing_config, make_lease,
    ):
        generator = _generator(
            leases, recurring_charges, InMemoryChargeTypes(), billing_settings, invoices,
            sequences, deterministic_clock, billing_config,
        )
        lease = make_lease()

        result = generator.generate(lease.id, JAN_START, JAN_END)

        assert result.failure.code == "CHARGE_TYPE_NOT_FOUND"
        assert result.error_message == "RENT charge type not found"
        assert invoices.add_calls == 0

    def test_org_rent_type_preferred(self, invoice_generator, charge_types, make_lease):
        org_rent = charge_types.add(
            ChargeType(id=uuid4(), org_id=TEST_ORG_ID, code="RENT", name="Office rent")
        )
        lease = make_lease()

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.lines[0].charge_type_id == org_rent.id

    def test_inactive_org_rent_type_falls_back(
        self, invoice_generator, charge_types, rent_charge_type, make_lease,
    ):
        charge_types.add(
            ChargeType(
                id=uuid4(), org_id=TEST_ORG_ID, code="RENT", name="Old rent", is_active=False,
            )
        )
        lease = make_lease()

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.lines[0].charge_type_id == rent_charge_type.id


class TestRegeneration:
    """The draft for (lease, period) is rewritten in place."""

    def test_second_generation_updates_draft(self, invoice_generator, invoices, make_lease):
        lease = make_lease()
        first = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        second = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert second.is_success
        assert second.was_updated is True
        assert second.invoice.id == first.id
        assert second.invoice.invoice_number == first.invoice_number
        assert second.invoice.row_version == 2
        assert len(invoices.all()) == 1
        assert invoices.add_calls == 1
        assert invoices.update_calls == 1

    def test_regeneration_picks_up_new_charges(
        self, invoice_generator, make_lease, maintenance_type, add_charge,
    ):
        lease = make_lease()
        first = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice
        add_charge(lease, maintenance_type.id)

        second = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert len(first.lines) == 1
        assert len(second.lines) == 2
        assert second.total_amount == Decimal("10590.00")
        assert second.invoice_number == first.invoice_number

    def test_regeneration_does_not_consume_a_number(
        self, invoice_generator, sequences, make_lease, org_id,
    ):
        lease = make_lease()
        invoice_generator.generate(lease.id, JAN_START, JAN_END)
        invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert sequences.next_value(org_id, "Invoice") == 2

    def test_other_periods_are_independent(self, invoice_generator, make_lease):
        lease = make_lease()
        january = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        february = invoice_generator.generate(lease.id, date(2024, 2, 1), date(2024, 2, 29))

        assert february.was_updated is False
        assert february.invoice.id != january.id
        assert february.invoice.invoice_number == "INV-202401-000002"

    def test_issued_invoice_blocks_generation(self, invoice_generator, lifecycle, invoices, make_lease):
        lease = make_lease()
        draft = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice
        lifecycle.issue(draft.id)

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert not result.is_success
        assert result.failure.code == "INVOICE_ALREADY_EXISTS"
        assert result.failure.kind == FailureKind.STATE_CONFLICT
        assert str(draft.id) in result.error_message
        assert len(invoices.all()) == 1

    def test_void_then_regenerate_creates_new_invoice(
        self, invoice_generator, lifecycle, invoices, make_lease,
    ):
        lease = make_lease()
        original = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice
        lifecycle.issue(original.id)
        lifecycle.void(original.id, "Wrong rent")

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.is_success
        assert result.was_updated is False
        assert result.invoice.id != original.id
        assert result.invoice.invoice_number == "INV-202401-000002"
        assert invoices.get(original.id).status == InvoiceStatus.VOIDED


class TestBillingSettings:
    def test_lease_payment_terms(self, invoice_generator, billing_settings, make_lease):
        lease = make_lease()
        billing_settings.add(LeaseBillingSetting(lease_id=lease.id, payment_term_days=15))

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.invoice_date == JAN_END
        assert invoice.due_date == date(2024, 2, 15)

    def test_config_default_payment_terms(
        self, leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
        deterministic_clock, make_lease,
    ):
        config = BillingConfig(default_payment_term_days=7)
        generator = _generator(
            leases, recurring_charges, charge_types, billing_settings, invoices, sequences,
            deterministic_clock, config,
        )
        lease = make_lease()

        invoice = generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.due_date == JAN_END + timedelta(days=7)

    def test_lease_prefix_and_instructions(self, invoice_generator, billing_settings, make_lease):
        lease = make_lease()
        billing_settings.add(
            LeaseBillingSetting(
                lease_id=lease.id,
                invoice_prefix="RNT",
                payment_instructions="Pay to account 123",
            )
        )

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.invoice_number == "RNT-202401-000001"
        assert invoice.payment_instructions == "Pay to account 123"

    def test_blank_instructions_ignored(self, invoice_generator, billing_settings, make_lease):
        lease = make_lease()
        billing_settings.add(LeaseBillingSetting(lease_id=lease.id, payment_instructions="   "))

        invoice = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice

        assert invoice.payment_instructions is None

    def test_cleared_instructions_removed_on_regeneration(
        self, invoice_generator, billing_settings, make_lease,
    ):
        lease = make_lease()
        billing_settings.add(
            LeaseBillingSetting(lease_id=lease.id, payment_instructions="Pay to account 123")
        )
        first = invoice_generator.generate(lease.id, JAN_START, JAN_END).invoice
        billing_settings.add(LeaseBillingSetting(lease_id=lease.id, payment_instructions=None))

        second = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert first.payment_instructions == "Pay to account 123"
        assert second.was_updated is True
        assert second.invoice.payment_instructions is None


class TestGenerationFailures:
    def test_unknown_lease(self, invoice_generator, captured_logs):
        lease_id = uuid4()

        result = invoice_generator.generate(lease_id, JAN_START, JAN_END)

        assert result.invoice is None
        assert result.failure.code == "LEASE_NOT_FOUND"
        assert result.error_message == f"Lease with ID {lease_id} not found"
        failures = [r for r in captured_logs() if r["message"] == "invoice_generation_failed"]
        assert failures[0]["error_code"] == "LEASE_NOT_FOUND"

    @pytest.mark.parametrize(
        "status",
        [LeaseStatus.DRAFT, LeaseStatus.NOTICE_GIVEN, LeaseStatus.ENDED, LeaseStatus.CANCELLED],
    )
    def test_lease_not_active(self, invoice_generator, make_lease, status):
        lease = make_lease(status=status)

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.failure.code == "LEASE_NOT_ACTIVE"
        assert result.error_message == f"Lease is not active (Status: {status.value})"

    def test_inverted_period(self, invoice_generator, leases, make_lease):
        lease = make_lease()

        result = invoice_generator.generate(lease.id, JAN_END, JAN_START)

        assert result.failure.code == "INVALID_BILLING_PERIOD"
        assert result.failure.kind == FailureKind.VALIDATION
        assert leases.calls == 0

    def test_negative_recurring_charge(
        self, invoice_generator, invoices, sequences, make_lease, maintenance_type, add_charge,
        org_id,
    ):
        lease = make_lease()
        add_charge(lease, maintenance_type.id, amount="-50")

        result = invoice_generator.generate(lease.id, JAN_START, JAN_END)

        assert result.invoice is None
        assert result.failure.code == "NEGATIVE_AMOUNT"
        assert result.failure.kind == FailureKind.VALIDATION
        assert result.error_message == "Recurring charge amount cannot be negative (got -50)"
        assert invoices.all() == []
        assert sequences.next_value(org_id, "Invoice") == 1

    def test_cancelled_before_start(self, invoice_generator, invoices, leases, make_lease):
        lease = make_lease()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            invoice_generator.generate(lease.id, JAN_START, JAN_END, cancellation=token)

        assert leases.calls == 0
        assert invoices.add_calls == 0
