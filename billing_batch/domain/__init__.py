"""Pure invoice-run types and the outcome fold. ZERO I/O."""

from billing_batch.domain.aggregation import summarize_outcomes
from billing_batch.domain.types import (
    InvoiceRun,
    InvoiceRunItem,
    InvoiceRunResult,
    InvoiceRunStatus,
    InvoiceRunType,
    LeaseOutcome,
    RunSummary,
    make_run_number,
)

__all__ = [
    "summarize_outcomes",
    "InvoiceRun",
    "InvoiceRunItem",
    "InvoiceRunResult",
    "InvoiceRunStatus",
    "InvoiceRunType",
    "LeaseOutcome",
    "RunSummary",
    "make_run_number",
]
