"""
CreditNoteManager -- create and issue credit notes against issued invoices.

Responsibility:
    Reverse part of an issued invoice.  Each requested line credits one
    invoice line; the credited amount is split into a pre-tax part and a
    tax part in the same proportion as the invoice line:

        credit_tax  = requested * (line.tax_amount / line.total_amount)
        credit_base = requested - credit_tax

    All three amounts are stored negated.

Invariants enforced:
    - The reason is a known ``CreditNoteReason`` and every amount is a finite
      Decimal; both are checked before the invoice is read or a number drawn.
    - Target invoice is Issued, PartiallyPaid, Paid or Overdue.
    - Every requested line references a line of that invoice with
      0 < requested <= line.total_amount.
    - ``line.total_amount == -requested`` exactly (tax is rounded to 2 places
      and the base takes the remainder).
    - ``credit_note.total_amount`` = sum of line totals (negative).
    - Issuing sets ``applied_at`` once; a second issue is rejected.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Sequence
from uuid import UUID, uuid4

from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.values import ZERO, round_money, sum_money, to_decimal
from billing_kernel.exceptions import (
    BillingError,
    CreditNoteNotFoundError,
    CreditNoteStateError,
    EmptyCreditNoteRequestError,
    InvalidCreditNoteLineError,
    InvalidCreditNoteReasonError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    OperationCancelledError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.billing.models import (
    CREDITABLE_STATUSES,
    CreditNote,
    CreditNoteLine,
    CreditNoteLineRequest,
    CreditNoteReason,
    Invoice,
    InvoiceLine,
)
from billing_modules.billing.numbering import CreditNoteNumberGenerator
from billing_modules.billing.ports import CreditNoteStore, InvoiceStore
from billing_modules.billing.results import BillingResult

logger = get_logger("modules.billing.credit_notes")


def split_credit_amount(requested: Decimal, invoice_line: InvoiceLine) -> tuple[Decimal, Decimal]:
    """(base, tax) for crediting ``requested`` against ``invoice_line``."""
    if invoice_line.total_amount > 0:
        tax = round_money(requested * invoice_line.tax_amount / invoice_line.total_amount)
    else:
        tax = ZERO
    return requested - tax, tax


def _resolve_reason(invoice_id: UUID, reason: object) -> CreditNoteReason:
    try:
        return CreditNoteReason(reason)
    except ValueError:
        raise InvalidCreditNoteReasonError(str(invoice_id), reason) from None


def _parse_amounts(invoice_id: UUID, requests: list[CreditNoteLineRequest]) -> list[Decimal]:
    """Requested amounts as finite Decimals, checked before anything is read or numbered."""
    amounts: list[Decimal] = []
    for request in requests:
        try:
            amount = to_decimal(request.amount)
        except (TypeError, ValueError, InvalidOperation):
            amount = None
        if amount is None or not amount.is_finite():
            raise InvalidCreditNoteLineError(
                str(invoice_id),
                str(request.invoice_line_id),
                f"Credit note line amount must be a Decimal, got {request.amount!r}",
            )
        amounts.append(amount)
    return amounts


class CreditNoteManager:
    def __init__(
        self,
        *,
        invoices: InvoiceStore,
        credit_notes: CreditNoteStore,
        number_generator: CreditNoteNumberGenerator,
        clock: Clock | None = None,
    ):
        self._invoices = invoices
        self._credit_notes = credit_notes
        self._number_generator = number_generator
        self._clock = clock or SystemClock()

    def create(
        self,
        invoice_id: UUID,
        reason: CreditNoteReason,
        line_items: Sequence[CreditNoteLineRequest],
        notes: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[CreditNote]:
        """Validate the request and persist an unissued credit note."""
        with LogContext.bind(invoice_id=invoice_id):
            try:
                requests = list(line_items)
                if not requests:
                    raise EmptyCreditNoteRequestError(str(invoice_id))
                credit_reason = _resolve_reason(invoice_id, reason)
                amounts = _parse_amounts(invoice_id, requests)

                check_cancelled(cancellation, "create_credit_note")
                invoice = self._invoices.get_with_lines(invoice_id)
                if invoice is None:
                    raise InvoiceNotFoundError(str(invoice_id))
                if invoice.status not in CREDITABLE_STATUSES:
                    raise InvalidInvoiceStateError(
                        str(invoice_id),
                        invoice.status.value,
                        "credit",
                        "Credit notes can only be created for issued, paid, partially paid, "
                        f"or overdue invoices. Current status: {invoice.status.value}",
                    )

                credit_note_id = uuid4()
                lines = self._build_lines(invoice, credit_note_id, requests, amounts)

                check_cancelled(cancellation, "create_credit_note")
                number = self._number_generator.generate_next(invoice.org_id)
                credit_note = CreditNote(
                    id=credit_note_id,
                    org_id=invoice.org_id,
                    invoice_id=invoice.id,
                    credit_note_number=number,
                    credit_note_date=self._clock.today_utc(),
                    reason=credit_reason,
                    lines=lines,
                    total_amount=sum_money(line.total_amount for line in lines),
                    notes=notes,
                )

                check_cancelled(cancellation, "create_credit_note")
                saved = self._credit_notes.add(credit_note)
            except OperationCancelledError:
                raise
            except BillingError as exc:
                logger.warning(
                    "credit_note_rejected",
                    extra={"error_code": exc.code, "error_message": str(exc)},
                )
                return BillingResult.fail(exc)

            logger.info(
                "credit_note_created",
                extra={
                    "credit_note_id": str(saved.id),
                    "credit_note_number": saved.credit_note_number,
                    "credit_total": str(saved.total_amount),
                    "line_count": len(saved.lines),
                },
            )
            return BillingResult.ok(saved)

    def issue(
        self,
        credit_note_id: UUID,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[CreditNote]:
        """Stamp ``applied_at``. Terminal; only once per credit note."""
        try:
            check_cancelled(cancellation, "issue_credit_note")
            credit_note = self._credit_notes.get_with_lines(credit_note_id)
            if credit_note is None:
                raise CreditNoteNotFoundError(str(credit_note_id))
            if credit_note.is_issued:
                raise CreditNoteStateError(
                    str(credit_note_id), "Credit note has already been issued",
                )
            if not credit_note.lines:
                raise CreditNoteStateError(
                    str(credit_note_id), "Credit note cannot be issued without line items",
                )

            issued = replace(credit_note, applied_at=self._clock.now_utc())
            check_cancelled(cancellation, "issue_credit_note")
            saved = self._credit_notes.update(issued, credit_note.row_version)
        except OperationCancelledError:
            raise
        except BillingError as exc:
            logger.warning(
                "credit_note_issue_rejected",
                extra={
                    "credit_note_id": str(credit_note_id),
                    "error_code": exc.code,
                    "error_message": str(exc),
                },
            )
            return BillingResult.fail(exc)

        logger.info(
            "credit_note_issued",
            extra={
                "credit_note_id": str(saved.id),
                "credit_note_number": saved.credit_note_number,
            },
        )
        return BillingResult.ok(saved)

    def _build_lines(
        self,
        invoice: Invoice,
        credit_note_id: UUID,
        requests: list[CreditNoteLineRequest],
        amounts: list[Decimal],
    ) -> tuple[CreditNoteLine, ...]:
        lines: list[CreditNoteLine] = []

        for number, (request, requested) in enumerate(zip(requests, amounts), start=1):
            invoice_line = invoice.line(request.invoice_line_id)
            if invoice_line is None:
                raise InvalidCreditNoteLineError(
                    str(invoice.id),
                    str(request.invoice_line_id),
                    f"Invoice line {request.invoice_line_id} not found on invoice {invoice.id}",
                )

            if requested <= 0:
                raise InvalidCreditNoteLineError(
                    str(invoice.id),
                    str(request.invoice_line_id),
                    "Credit note line amount must be positive",
                )
            if requested > invoice_line.total_amount:
                raise InvalidCreditNoteLineError(
                    str(invoice.id),
                    str(request.invoice_line_id),
                    f"Credit amount {requested:.2f} exceeds invoice line amount "
                    f"{invoice_line.total_amount:.2f}",
                )

            base, tax = split_credit_amount(requested, invoice_line)
            lines.append(
                CreditNoteLine(
                    id=uuid4(),
                    credit_note_id=credit_note_id,
                    invoice_line_id=invoice_line.id,
                    line_number=number,
                    description=f"Credit for: {invoice_line.description}",
                    amount=-base,
                    tax_amount=-tax,
                    total_amount=-requested,
                    notes=request.notes,
                )
            )

        return tuple(lines)

