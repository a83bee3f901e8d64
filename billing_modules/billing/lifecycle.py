"""
InvoiceLifecycleManager -- issue and void transitions.

Responsibility:
    Move invoices through the parts of the state machine this package
    owns: Draft -> Issued, and {Issued, PartiallyPaid, Paid, Overdue} ->
    Voided.  Payment-driven transitions belong to the payments side.

Invariants enforced:
    - Issue only from Draft, with at least one line and total > 0.
    - Void needs a non-blank reason; never from Draft or Voided, never
      once anything has been paid (credit note instead).
    - Every write is conditional on the row_version that was read.

Failure modes:
    - BillingResult with a failure for every BillingError.  A stale
      row_version is a CONCURRENCY_CONFLICT failure and is retryable.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any
from uuid import UUID

from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    BillingError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
    MissingVoidReasonError,
    OperationCancelledError,
    OptimisticLockError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.billing.models import Invoice, InvoiceStatus, can_transition
from billing_modules.billing.ports import InvoiceStore
from billing_modules.billing.results import BillingResult

logger = get_logger("modules.billing.lifecycle")

_UNSET = object()


class InvoiceLifecycleManager:
    def __init__(self, invoices: InvoiceStore, clock: Clock | None = None):
        self._invoices = invoices
        self._clock = clock or SystemClock()

    def issue(
        self,
        invoice_id: UUID,
        expected_row_version: Any = _UNSET,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[Invoice]:
        """
        Draft -> Issued, stamping ``issued_at``.

        ``expected_row_version`` lets a caller insist on the version it
        displayed; by default the version just read is used.
        """
        with LogContext.bind(invoice_id=invoice_id):
            try:
                check_cancelled(cancellation, "issue_invoice")
                invoice = self._load(invoice_id, expected_row_version, with_lines=True)
                _check_issuable(invoice)

                issued = replace(
                    invoice,
                    status=InvoiceStatus.ISSUED,
                    issued_at=self._clock.now_utc(),
                )
                check_cancelled(cancellation, "issue_invoice")
                saved = self._invoices.update(issued, invoice.row_version)
            except OperationCancelledError:
                raise
            except BillingError as exc:
                _log_rejected("issue", exc)
                return BillingResult.fail(exc)

            logger.info(
                "invoice_issued",
                extra={
                    "invoice_number": saved.invoice_number,
                    "total_amount": str(saved.total_amount),
                },
            )
            return BillingResult.ok(saved)

    def void(
        self,
        invoice_id: UUID,
        reason: str,
        expected_row_version: Any = _UNSET,
        cancellation: CancellationToken | None = None,
    ) -> BillingResult[Invoice]:
        """Mark an issued, unpaid invoice Voided with ``reason``."""
        with LogContext.bind(invoice_id=invoice_id):
            try:
                if reason is None or not reason.strip():
                    raise MissingVoidReasonError(str(invoice_id))

                check_cancelled(cancellation, "void_invoice")
                invoice = self._load(invoice_id, expected_row_version, with_lines=False)
                _check_voidable(invoice)

                voided = replace(
                    invoice,
                    status=InvoiceStatus.VOIDED,
                    voided_at=self._clock.now_utc(),
                    void_reason=reason.strip(),
                )
                check_cancelled(cancellation, "void_invoice")
                saved = self._invoices.update(voided, invoice.row_version)
            except OperationCancelledError:
                raise
            except BillingError as exc:
                _log_rejected("void", exc)
                return BillingResult.fail(exc)

            logger.info(
                "invoice_voided",
                extra={"invoice_number": saved.invoice_number, "void_reason": saved.void_reason},
            )
            return BillingResult.ok(saved)

    def _load(self, invoice_id: UUID, expected_row_version: Any, with_lines: bool) -> Invoice:
        if with_lines:
            invoice = self._invoices.get_with_lines(invoice_id)
        else:
            invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        if expected_row_version is not _UNSET and expected_row_version != invoice.row_version:
            raise OptimisticLockError("Invoice", str(invoice_id), expected_row_version)
        return invoice


def _check_issuable(invoice: Invoice) -> None:
    def reject(reason: str) -> InvalidInvoiceStateError:
        return InvalidInvoiceStateError(str(invoice.id), invoice.status.value, "issue", reason)

    if not can_transition(invoice.status, InvoiceStatus.ISSUED):
        raise reject(
            f"Invoice cannot be issued. Current status: {invoice.status.value}. "
            "Only Draft invoices can be issued."
        )
    if not invoice.lines:
        raise reject("Invoice cannot be issued without line items")
    if invoice.total_amount <= 0:
        raise reject("Invoice cannot be issued with zero or negative total amount")


def _check_voidable(invoice: Invoice) -> None:
    def reject(reason: str) -> InvalidInvoiceStateError:
        return InvalidInvoiceStateError(str(invoice.id), invoice.status.value, "void", reason)

    if invoice.status == InvoiceStatus.VOIDED:
        raise reject("Invoice is already voided")
    if invoice.status == InvoiceStatus.DRAFT:
        raise reject("Draft invoices should be deleted, not voided")
    if invoice.paid_amount > 0:
        raise reject("Cannot void an invoice with payments. Issue a credit note instead.")
    if not can_transition(invoice.status, InvoiceStatus.VOIDED):
        raise reject(f"Invoice cannot be voided from status {invoice.status.value}")


def _log_rejected(operation: str, exc: BillingError) -> None:
    logger.warning(
        "invoice_transition_rejected",
        extra={
            "operation": operation,
            "error_code": exc.code,
            "error_message": str(exc),
            "failure_kind": exc.kind.value,
        },
    )
