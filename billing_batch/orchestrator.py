"""
InvoiceRunOrchestrator -- generate invoices for every active lease of an org.

Contract:
    ``run_monthly_rent(org_id, period_start, period_end, proration_method)``
    attempts every active lease once, in the order the reader returns them,
    and writes one ``InvoiceRun`` with an item per attempted lease.

Architecture: billing_batch.  Depends on the billing ports and the
    InvoiceGenerator; nothing in kernel/, engines/ or modules/ imports
    from billing_batch.

Invariants enforced:
    - Per-lease isolation: a failed lease (domain failure or unexpected
      exception) becomes a failure item; the loop moves on.  With a
      ``begin_item`` factory (SAVEPOINT per lease) its writes roll back.
    - The run is persisted exactly once, after the loop, including when the
      run was cancelled part-way.
    - Counts, status and notes come from ``summarize_outcomes``; the loop
      keeps no counters.
    - All timestamps from the injected Clock.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable
from uuid import UUID, uuid4

from billing_batch.domain.aggregation import summarize_outcomes
from billing_batch.domain.types import (
    InvoiceRun,
    InvoiceRunItem,
    InvoiceRunResult,
    InvoiceRunStatus,
    InvoiceRunType,
    LeaseOutcome,
    make_run_number,
)
from billing_batch.ports import InvoiceRunStore
from billing_config.schema import BillingConfig
from billing_engines.proration import ProrationMethod
from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    BillingError,
    OperationCancelledError,
    UnsupportedOperationError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules._billing_helpers import billing_period
from billing_modules.billing.generation import InvoiceGenerator
from billing_modules.billing.ports import LeaseReader
from billing_modules.billing.results import BillingFailure
from billing_modules.leasing.models import Lease

logger = get_logger("batch.orchestrator")


class InvoiceRunOrchestrator:
    """
    Sequential invoice run over an organization's active leases.

    Non-goals:
        - Does NOT commit; the run store only flushes.
        - Does NOT retry failed leases; rerunning the whole run is safe
          because generation rewrites drafts in place.
    """

    def __init__(
        self,
        *,
        leases: LeaseReader,
        invoice_generator: InvoiceGenerator,
        runs: InvoiceRunStore,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        begin_item: Callable[[], Any] | None = None,
    ):
        self._leases = leases
        self._generator = invoice_generator
        self._runs = runs
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig()
        self._begin_item = begin_item

    def run_monthly_rent(
        self,
        org_id: UUID,
        period_start: date,
        period_end: date,
        proration_method: ProrationMethod | None = None,
        cancellation: CancellationToken | None = None,
    ) -> InvoiceRunResult:
        try:
            billing_period(period_start, period_end)
        except BillingError as exc:
            logger.warning(
                "invoice_run_rejected",
                extra={"org_id": str(org_id), "error_code": exc.code, "error_message": str(exc)},
            )
            return InvoiceRunResult(failure=BillingFailure.from_error(exc))

        run_id = uuid4()
        run_number = make_run_number(period_start)
        started_at = self._clock.now_utc()

        with LogContext.bind(org_id=org_id, run_id=run_id):
            logger.info(
                "invoice_run_started",
                extra={
                    "run_number": run_number,
                    "period_start": period_start,
                    "period_end": period_end,
                    "status": InvoiceRunStatus.IN_PROGRESS.value,
                },
            )

            outcomes: list[LeaseOutcome] = []
            cancelled_by: OperationCancelledError | None = None
            try:
                check_cancelled(cancellation, "invoice_run")
                leases = self._leases.list_active_by_org(org_id)
                for lease in leases:
                    check_cancelled(cancellation, "invoice_run")
                    outcomes.append(
                        self._process_lease(
                            lease, period_start, period_end, proration_method, cancellation,
                        )
                    )
            except OperationCancelledError as exc:
                cancelled_by = exc

            summary = summarize_outcomes(
                outcomes,
                cancelled=cancelled_by is not None,
                max_error_messages=self._config.max_run_error_messages,
            )
            run = InvoiceRun(
                id=run_id,
                org_id=org_id,
                run_number=run_number,
                run_type=InvoiceRunType.MONTHLY_RENT,
                billing_period_start=period_start,
                billing_period_end=period_end,
                status=summary.status,
                total_leases=summary.total_leases,
                success_count=summary.success_count,
                failure_count=summary.failure_count,
                started_at=started_at,
                completed_at=self._clock.now_utc(),
                error_summary=summary.error_summary,
                notes=summary.notes,
                items=tuple(_run_item(run_id, outcome) for outcome in outcomes),
            )
            saved = self._runs.add(run)

            logger.info(
                "invoice_run_completed",
                extra={
                    "run_number": saved.run_number,
                    "status": saved.status.value,
                    "total_leases": saved.total_leases,
                    "success_count": saved.success_count,
                    "failure_count": saved.failure_count,
                },
            )

            failure = BillingFailure.from_error(cancelled_by) if cancelled_by else None
            return InvoiceRunResult(
                run=saved, error_messages=summary.error_messages, failure=failure,
            )

    def run_utility(
        self,
        org_id: UUID,
        period_start: date,
        period_end: date,
        cancellation: CancellationToken | None = None,
    ) -> InvoiceRunResult:
        """Utility billing runs are not available; always reports UNSUPPORTED."""
        exc = UnsupportedOperationError(
            "run_utility", "Utility billing run not yet implemented",
        )
        logger.warning(
            "invoice_run_unsupported",
            extra={"org_id": str(org_id), "run_type": InvoiceRunType.UTILITY.value},
        )
        return InvoiceRunResult(error_messages=(str(exc),), failure=BillingFailure.from_error(exc))

    def _process_lease(
        self,
        lease: Lease,
        period_start: date,
        period_end: date,
        proration_method: ProrationMethod | None,
        cancellation: CancellationToken | None,
    ) -> LeaseOutcome:
        label = lease.display_name
        savepoint = self._begin_item() if self._begin_item else None
        try:
            result = self._generator.generate(
                lease.id, period_start, period_end, proration_method, cancellation,
            )
        except OperationCancelledError:
            if savepoint is not None:
                savepoint.rollback()
            raise
        except Exception as exc:
            if savepoint is not None:
                savepoint.rollback()
            logger.error(
                "invoice_run_lease_error",
                extra={"lease_id": str(lease.id), "error_message": str(exc)},
                exc_info=True,
            )
            return LeaseOutcome(lease_id=lease.id, lease_label=label, error_message=str(exc))

        if result.is_success:
            if savepoint is not None:
                savepoint.commit()
            return LeaseOutcome(lease_id=lease.id, lease_label=label, invoice_id=result.invoice.id)

        if savepoint is not None:
            savepoint.rollback()
        return LeaseOutcome(
            lease_id=lease.id,
            lease_label=label,
            error_message=result.error_message or "Unknown error",
        )


def _run_item(run_id: UUID, outcome: LeaseOutcome) -> InvoiceRunItem:
    return InvoiceRunItem(
        id=uuid4(),
        run_id=run_id,
        lease_id=outcome.lease_id,
        is_success=outcome.is_success,
        invoice_id=outcome.invoice_id,
        error_message=outcome.error_message,
    )


def build_invoice_run_orchestrator(
    session,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> InvoiceRunOrchestrator:
    """SQL wiring with a SAVEPOINT per lease."""
    from billing_batch.models.run import SqlInvoiceRunStore
    from billing_modules.billing.stores import build_invoice_generator
    from billing_modules.leasing.readers import SqlLeaseReader

    config = config or BillingConfig()
    return InvoiceRunOrchestrator(
        leases=SqlLeaseReader(session),
        invoice_generator=build_invoice_generator(session, config, clock),
        runs=SqlInvoiceRunStore(session),
        clock=clock,
        config=config,
        begin_item=session.begin_nested,
    )
