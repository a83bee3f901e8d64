"""
billing_batch.domain.aggregation -- Fold per-lease outcomes into a run summary.

Pure.  The orchestrator collects one ``LeaseOutcome`` per attempted lease
and hands the whole sequence here; nothing in the loop keeps counters.

Status rules:
    - cancelled                      -> Cancelled
    - no leases                      -> Completed, "No active leases found"
    - no failures                    -> Completed
    - some successes, some failures  -> CompletedWithErrors
    - no successes                   -> Failed, "All invoices failed to generate"
"""

from __future__ import annotations

from typing import Iterable

from billing_batch.domain.types import InvoiceRunStatus, LeaseOutcome, RunSummary

NO_ACTIVE_LEASES = "No active leases found"
ALL_FAILED = "All invoices failed to generate"


def summarize_outcomes(
    outcomes: Iterable[LeaseOutcome],
    *,
    cancelled: bool = False,
    max_error_messages: int = 10,
) -> RunSummary:
    outcomes = tuple(outcomes)
    succeeded = sum(1 for o in outcomes if o.is_success)
    failed = len(outcomes) - succeeded
    messages = tuple(o.summary_message for o in outcomes if not o.is_success)

    error_summary = "; ".join(messages[:max_error_messages]) or None
    notes = None

    if cancelled:
        status = InvoiceRunStatus.CANCELLED
        notes = f"Run cancelled after {len(outcomes)} lease(s)"
    elif not outcomes:
        status = InvoiceRunStatus.COMPLETED
        notes = NO_ACTIVE_LEASES
    elif failed == 0:
        status = InvoiceRunStatus.COMPLETED
    elif succeeded > 0:
        status = InvoiceRunStatus.COMPLETED_WITH_ERRORS
    else:
        status = InvoiceRunStatus.FAILED
        error_summary = ALL_FAILED

    return RunSummary(
        status=status,
        total_leases=len(outcomes),
        success_count=succeeded,
        failure_count=failed,
        error_messages=messages,
        error_summary=error_summary,
        notes=notes,
    )
