"""
InvoiceGenerator -- idempotent invoice generation for one lease and period.

Responsibility:
    Compose rent lines and recurring-charge lines into a single draft
    invoice.  Re-running for the same lease and period rewrites the
    existing draft in place (same id, same number) instead of creating a
    duplicate.

Architecture position:
    Modules > Billing -- imperative shell over the pure rent and recurring
    calculations.  Called directly by callers and per lease by the
    invoice-run orchestrator.

Invariants enforced:
    - At most one draft per (lease, period); it is the idempotency key.
    - A non-draft, non-voided invoice for the same period blocks generation
      (INVOICE_ALREADY_EXISTS).  Void first to regenerate.
    - Numbers are assigned to new invoices only, never on update.
    - Line numbers are 1..n: rent lines first, then recurring charges in
      the order the reader returned them.
    - Rollups equal the sums of the lines; paid = 0, balance = total.

Failure modes:
    - InvoiceGenerationResult with a failure for every BillingError
      (validation, not found, state conflict, configuration, concurrency).
    - OperationCancelledError propagates.
    - Infrastructure exceptions propagate.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from uuid import UUID, uuid4

from billing_config.schema import BillingConfig, MissingChargeTypePolicy
from billing_engines.proration import ProrationMethod
from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.values import DateRange, round_money
from billing_kernel.exceptions import (
    BillingError,
    ChargeTypeNotFoundError,
    InvoiceAlreadyExistsError,
    LeaseNotActiveError,
    LeaseNotFoundError,
    OperationCancelledError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules._billing_helpers import billing_period
from billing_modules.billing.models import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    LineSource,
)
from billing_modules.billing.numbering import InvoiceNumberGenerator
from billing_modules.billing.ports import (
    BillingSettingReader,
    ChargeTypeReader,
    InvoiceStore,
    LeaseReader,
    RecurringChargeReader,
)
from billing_modules.billing.recurring import (
    RecurringChargeCalculationResult,
    calculate_recurring_charges,
)
from billing_modules.billing.rent import RentCalculationResult, calculate_rent_for_lease
from billing_modules.billing.results import InvoiceGenerationResult, SkippedLine
from billing_modules.leasing.models import ChargeType, Lease, LeaseBillingSetting

logger = get_logger("modules.billing.generation")

_NON_BLOCKING_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.VOIDED})


class InvoiceGenerator:
    """
    Generates or regenerates the draft invoice for a lease and period.

    Contract:
        ``generate(lease_id, period_start, period_end, proration_method)``
        returns an ``InvoiceGenerationResult``; ``was_updated`` tells a
        rewritten draft apart from a new one.

    Non-goals:
        - Does NOT commit; stores only flush.
        - Does NOT bill utilities.
    """

    def __init__(
        self,
        *,
        leases: LeaseReader,
        recurring_charges: RecurringChargeReader,
        charge_types: ChargeTypeReader,
        billing_settings: BillingSettingReader,
        invoices: InvoiceStore,
        number_generator: InvoiceNumberGenerator,
        config: BillingConfig | None = None,
    ):
        self._leases = leases
        self._recurring_charges = recurring_charges
        self._charge_types = charge_types
        self._billing_settings = billing_settings
        self._invoices = invoices
        self._number_generator = number_generator
        self._config = config or BillingConfig()

    def generate(
        self,
        lease_id: UUID,
        period_start: date,
        period_end: date,
        proration_method: ProrationMethod | None = None,
        cancellation: CancellationToken | None = None,
    ) -> InvoiceGenerationResult:
        method = ProrationMethod(proration_method or self._config.default_proration_method)

        with LogContext.bind(lease_id=lease_id):
            try:
                result = self._generate(lease_id, period_start, period_end, method, cancellation)
            except OperationCancelledError:
                raise
            except BillingError as exc:
                logger.warning(
                    "invoice_generation_failed",
                    extra={
                        "period_start": period_start,
                        "period_end": period_end,
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                return InvoiceGenerationResult.fail(exc)

            invoice = result.invoice
            logger.info(
                "invoice_generated",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "was_updated": result.was_updated,
                    "line_count": len(invoice.lines),
                    "total_amount": str(invoice.total_amount),
                    "skipped_line_count": len(result.skipped_lines),
                },
            )
            return result

    def _generate(
        self,
        lease_id: UUID,
        period_start: date,
        period_end: date,
        method: ProrationMethod,
        cancellation: CancellationToken | None,
    ) -> InvoiceGenerationResult:
        period = billing_period(period_start, period_end)

        check_cancelled(cancellation, "generate_invoice")
        lease = self._leases.get_with_terms(lease_id)
        if lease is None:
            raise LeaseNotFoundError(str(lease_id))
        if not lease.is_active:
            raise LeaseNotActiveError(str(lease_id), lease.status.value)

        check_cancelled(cancellation, "generate_invoice")
        existing = self._invoices.get_draft_for_period(lease_id, period.start, period.end)
        if existing is None:
            self._ensure_no_finalized_invoice(lease_id, period, cancellation)

        check_cancelled(cancellation, "generate_invoice")
        setting = self._billing_settings.get_by_lease(lease_id)

        rent = calculate_rent_for_lease(lease, period, method)
        lines = self._rent_lines(lease, rent, cancellation)

        check_cancelled(cancellation, "generate_invoice")
        charges = self._recurring_charges.list_active_by_lease(lease_id)
        recurring = calculate_recurring_charges(charges, period, method)
        recurring_lines, skipped = self._recurring_lines(
            lease, recurring, first_line_number=len(lines) + 1, cancellation=cancellation,
        )
        lines.extend(recurring_lines)

        invoice = self._draft(existing, lease, period, setting).with_lines(tuple(lines))

        check_cancelled(cancellation, "generate_invoice")
        if existing is None:
            prefix = setting.invoice_prefix if setting else None
            invoice = replace(
                invoice,
                invoice_number=self._number_generator.generate_next(lease.org_id, prefix),
            )
            saved = self._invoices.add(invoice)
        else:
            saved = self._invoices.update(invoice, existing.row_version)

        return InvoiceGenerationResult(
            invoice=saved,
            was_updated=existing is not None,
            skipped_lines=tuple(skipped),
        )

    def _ensure_no_finalized_invoice(
        self,
        lease_id: UUID,
        period: DateRange,
        cancellation: CancellationToken | None,
    ) -> None:
        check_cancelled(cancellation, "generate_invoice")
        for other in self._invoices.list_for_period(lease_id, period.start, period.end):
            if other.status not in _NON_BLOCKING_STATUSES:
                raise InvoiceAlreadyExistsError(
                    str(lease_id), str(other.id), other.status.value,
                )

    def _draft(
        self,
        existing: Invoice | None,
        lease: Lease,
        period: DateRange,
        setting: LeaseBillingSetting | None,
    ) -> Invoice:
        invoice_date = period.end
        term_days = self._config.default_payment_term_days
        if setting is not None and setting.payment_term_days is not None:
            term_days = setting.payment_term_days
        due_date = invoice_date + timedelta(days=term_days)

        instructions = None
        if setting is not None and setting.payment_instructions and setting.payment_instructions.strip():
            instructions = setting.payment_instructions

        if existing is not None:
            return replace(
                existing,
                invoice_date=invoice_date,
                due_date=due_date,
                payment_instructions=instructions,
            )

        return Invoice(
            id=uuid4(),
            org_id=lease.org_id,
            lease_id=lease.id,
            billing_period_start=period.start,
            billing_period_end=period.end,
            invoice_date=invoice_date,
            due_date=due_date,
            status=InvoiceStatus.DRAFT,
            payment_instructions=instructions,
        )

    def _rent_lines(
        self,
        lease: Lease,
        rent: RentCalculationResult,
        cancellation: CancellationToken | None,
    ) -> list[InvoiceLine]:
        if not rent.line_items:
            return []

        code = self._config.rent_charge_type_code
        check_cancelled(cancellation, "generate_invoice")
        rent_type = self._charge_types.get_by_code(code, lease.org_id)
        if rent_type is None:
            raise ChargeTypeNotFoundError(code, str(lease.org_id))

        return [
            _line(
                line_number=number,
                charge_type=rent_type,
                description=item.description,
                amount=item.amount,
                source=LineSource.RENT,
                source_ref_id=item.lease_term_id,
                period_start=item.period_start,
                period_end=item.period_end,
            )
            for number, item in enumerate(rent.line_items, start=1)
        ]

    def _recurring_lines(
        self,
        lease: Lease,
        recurring: RecurringChargeCalculationResult,
        first_line_number: int,
        cancellation: CancellationToken | None,
    ) -> tuple[list[InvoiceLine], list[SkippedLine]]:
        # One lookup per distinct charge type
        charge_types: dict[UUID, ChargeType | None] = {}
        for item in recurring.line_items:
            if item.charge_type_id not in charge_types:
                check_cancelled(cancellation, "generate_invoice")
                charge_types[item.charge_type_id] = self._charge_types.get_by_id(item.charge_type_id)

        lines: list[InvoiceLine] = []
        skipped: list[SkippedLine] = []
        line_number = first_line_number

        for item in recurring.line_items:
            charge_type = charge_types[item.charge_type_id]
            if charge_type is None:
                if self._config.missing_charge_type_policy == MissingChargeTypePolicy.FAIL:
                    raise ChargeTypeNotFoundError(str(item.charge_type_id), str(lease.org_id))
                logger.warning(
                    "recurring_charge_skipped",
                    extra={
                        "recurring_charge_id": str(item.charge_id),
                        "charge_type_id": str(item.charge_type_id),
                        "charge_description": item.description,
                        "amount": str(item.amount),
                    },
                )
                skipped.append(
                    SkippedLine(
                        recurring_charge_id=item.charge_id,
                        charge_type_id=item.charge_type_id,
                        amount=item.amount,
                        reason="Charge type not found",
                    )
                )
                continue

            lines.append(
                _line(
                    line_number=line_number,
                    charge_type=charge_type,
                    description=item.description,
                    amount=item.amount,
                    source=LineSource.RECURRING_CHARGE,
                    source_ref_id=item.charge_id,
                    period_start=item.period_start,
                    period_end=item.period_end,
                )
            )
            line_number += 1

        return lines, skipped


def _line(
    *,
    line_number: int,
    charge_type: ChargeType,
    description: str,
    amount,
    source: LineSource,
    source_ref_id: UUID,
    period_start: date,
    period_end: date,
) -> InvoiceLine:
    rate = charge_type.effective_tax_rate
    tax = round_money(amount * rate)
    return InvoiceLine(
        id=uuid4(),
        line_number=line_number,
        charge_type_id=charge_type.id,
        description=description,
        amount=amount,
        tax_rate=rate,
        tax_amount=tax,
        total_amount=amount + tax,
        source=source,
        source_ref_id=source_ref_id,
        period_start=period_start,
        period_end=period_end,
    )
