"""
Pytest fixtures for the billing core test suite.

Provides:
- Structured logging setup and a ``captured_logs`` helper
- A DeterministicClock
- In-memory repository fakes wired into every billing service
- Domain object factories (leases, charge types, invoices)
- An in-memory SQLite session for the SQLAlchemy adapters
"""

import json
import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from billing_batch.orchestrator import InvoiceRunOrchestrator
from billing_config.schema import BillingConfig
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_modules.billing.credit_notes import CreditNoteManager
from billing_modules.billing.generation import InvoiceGenerator
from billing_modules.billing.lifecycle import InvoiceLifecycleManager
from billing_modules.billing.models import Invoice, InvoiceLine, InvoiceStatus
from billing_modules.billing.numbering import CreditNoteNumberGenerator, InvoiceNumberGenerator
from billing_modules.billing.utility import UtilityCalculator
from billing_modules.leasing.models import (
    ChargeCode,
    ChargeType,
    Lease,
    LeaseStatus,
    LeaseTerm,
)
from tests.fakes import (
    InMemoryBillingSettings,
    InMemoryChargeTypes,
    InMemoryCreditNoteStore,
    InMemoryInvoiceStore,
    InMemoryLeases,
    InMemoryRatePlans,
    InMemoryRecurringCharges,
    InMemoryRunStore,
    InMemorySequences,
)

TEST_ORG_ID = UUID("00000000-0000-4000-8000-000000000001")

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, invoice_generator):
            invoice_generator.generate(...)
            logs = captured_logs()
            assert any(r["message"] == "invoice_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and config
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def org_id() -> UUID:
    return TEST_ORG_ID


@pytest.fixture
def billing_config() -> BillingConfig:
    return BillingConfig()


# =============================================================================
# Repository fakes
# =============================================================================


@pytest.fixture
def leases():
    return InMemoryLeases()


@pytest.fixture
def recurring_charges():
    return InMemoryRecurringCharges()


@pytest.fixture
def rent_charge_type() -> ChargeType:
    """System-wide RENT type, untaxed."""
    return ChargeType(
        id=uuid4(), org_id=None, code=ChargeCode.RENT, name="Rent",
    )


@pytest.fixture
def charge_types(rent_charge_type):
    return InMemoryChargeTypes([rent_charge_type])


@pytest.fixture
def billing_settings():
    return InMemoryBillingSettings()


@pytest.fixture
def rate_plans():
    return InMemoryRatePlans()


@pytest.fixture
def invoices():
    return InMemoryInvoiceStore()


@pytest.fixture
def credit_notes():
    return InMemoryCreditNoteStore()


@pytest.fixture
def sequences():
    return InMemorySequences()


@pytest.fixture
def runs():
    return InMemoryRunStore()


# =============================================================================
# Services wired to the fakes
# =============================================================================


@pytest.fixture
def invoice_generator(
    leases, recurring_charges, charge_types, billing_settings, invoices,
    sequences, deterministic_clock, billing_config,
) -> InvoiceGenerator:
    return InvoiceGenerator(
        leases=leases,
        recurring_charges=recurring_charges,
        charge_types=charge_types,
        billing_settings=billing_settings,
        invoices=invoices,
        number_generator=InvoiceNumberGenerator(sequences, deterministic_clock),
        config=billing_config,
    )


@pytest.fixture
def lifecycle(invoices, deterministic_clock) -> InvoiceLifecycleManager:
    return InvoiceLifecycleManager(invoices, deterministic_clock)


@pytest.fixture
def credit_note_manager(invoices, credit_notes, sequences, deterministic_clock) -> CreditNoteManager:
    return CreditNoteManager(
        invoices=invoices,
        credit_notes=credit_notes,
        number_generator=CreditNoteNumberGenerator(sequences, deterministic_clock),
        clock=deterministic_clock,
    )


@pytest.fixture
def utility_calculator(rate_plans) -> UtilityCalculator:
    return UtilityCalculator(rate_plans)


@pytest.fixture
def orchestrator(leases, invoice_generator, runs, deterministic_clock, billing_config):
    return InvoiceRunOrchestrator(
        leases=leases,
        invoice_generator=invoice_generator,
        runs=runs,
        clock=deterministic_clock,
        config=billing_config,
    )


# =============================================================================
# Domain factories
# =============================================================================


@pytest.fixture
def make_lease(leases, org_id):
    """
    Register a lease and return it.

    ``terms`` is a list of ``(effective_from, effective_to, monthly_rent)``;
    the default is one open-ended 10,000/mo term from 2023-01-01.
    """

    def _make(
        terms=None,
        status: LeaseStatus = LeaseStatus.ACTIVE,
        lease_number: str | None = None,
        org: UUID | None = None,
    ) -> Lease:
        lease_id = uuid4()
        if terms is None:
            terms = [(date(2023, 1, 1), None, Decimal("10000"))]
        lease = Lease(
            id=lease_id,
            org_id=org or org_id,
            lease_number=lease_number if lease_number is not None else f"L-{lease_id.hex[:6]}",
            status=status,
            terms=tuple(
                LeaseTerm(
                    id=uuid4(),
                    lease_id=lease_id,
                    effective_from=start,
                    effective_to=end,
                    monthly_rent=Decimal(rent),
                )
                for start, end, rent in terms
            ),
        )
        return leases.add(lease)

    return _make


@pytest.fixture
def make_invoice(invoices, org_id, rent_charge_type):
    """
    Seed an invoice straight into the store.

    ``line_amounts`` is a list of ``(amount, tax_amount)`` pairs.
    """

    def _make(
        status: InvoiceStatus = InvoiceStatus.ISSUED,
        line_amounts=((Decimal("1000.00"), Decimal("0.00")),),
        paid_amount: Decimal = Decimal("0"),
        lease_id: UUID | None = None,
    ) -> Invoice:
        invoice_id = uuid4()
        lines = tuple(
            InvoiceLine(
                id=uuid4(),
                line_number=n,
                charge_type_id=rent_charge_type.id,
                description=f"Line {n}",
                amount=Decimal(amount),
                tax_amount=Decimal(tax),
            )
            for n, (amount, tax) in enumerate(line_amounts, start=1)
        )
        invoice = Invoice(
            id=invoice_id,
            org_id=org_id,
            lease_id=lease_id or uuid4(),
            billing_period_start=JAN_START,
            billing_period_end=JAN_END,
            invoice_date=JAN_END,
            due_date=JAN_END,
            invoice_number=f"INV-202401-{invoice_id.int % 1000000:06d}",
        ).with_lines(lines)
        invoice = replace(
            invoice,
            status=status,
            paid_amount=Decimal(paid_amount),
            balance_amount=invoice.total_amount - Decimal(paid_amount),
        )
        return invoices.put(invoice)

    return _make


# =============================================================================
# SQLite session for the SQL adapters
# =============================================================================


@pytest.fixture
def sql_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test; the session is rolled back at the end."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        drop_tables()
        reset_engine()
