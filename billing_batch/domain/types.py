"""
billing_batch.domain.types -- Pure frozen dataclasses for invoice runs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - ``success_count + failure_count == total_leases`` on every run.
    - Items are ordered as the leases were attempted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from billing_modules.billing.results import BillingFailure


# =============================================================================
# Status enums
# =============================================================================


class InvoiceRunStatus(str, Enum):
    """Run-level lifecycle status."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class InvoiceRunType(str, Enum):
    MONTHLY_RENT = "MonthlyRent"
    UTILITY = "Utility"


def make_run_number(period_start: date) -> str:
    """``RUN-{YYYYMM}-{8 hex}`` keyed on the billing period start."""
    return f"RUN-{period_start:%Y%m}-{uuid4().hex[:8].upper()}"


# =============================================================================
# Per-lease outcome (input to the fold)
# =============================================================================


@dataclass(frozen=True)
class LeaseOutcome:
    """What happened to one lease in a run. ``invoice_id`` set iff it succeeded."""

    lease_id: UUID
    lease_label: str
    invoice_id: UUID | None = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.invoice_id is not None and self.error_message is None

    @property
    def summary_message(self) -> str:
        return f"Lease {self.lease_label}: {self.error_message}"


@dataclass(frozen=True)
class RunSummary:
    """Counts, status and notes folded from a sequence of outcomes."""

    status: InvoiceRunStatus
    total_leases: int
    success_count: int
    failure_count: int
    error_messages: tuple[str, ...] = ()
    error_summary: str | None = None
    notes: str | None = None


# =============================================================================
# Run DTOs
# =============================================================================


@dataclass(frozen=True)
class InvoiceRunItem:
    id: UUID
    run_id: UUID
    lease_id: UUID
    is_success: bool
    invoice_id: UUID | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class InvoiceRun:
    """Immutable snapshot of one invoice run and its items."""

    id: UUID
    org_id: UUID
    run_number: str
    run_type: InvoiceRunType
    billing_period_start: date
    billing_period_end: date
    status: InvoiceRunStatus
    total_leases: int = 0
    success_count: int = 0
    failure_count: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_summary: str | None = None
    notes: str | None = None
    items: tuple[InvoiceRunItem, ...] = ()


@dataclass(frozen=True)
class InvoiceRunResult:
    """
    Returned by the run orchestrator.

    ``run`` is set whenever a run record was written, including cancelled
    runs; ``failure`` is set for cancelled and unsupported runs.
    """

    run: InvoiceRun | None = None
    error_messages: tuple[str, ...] = ()
    failure: BillingFailure | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def total_leases(self) -> int:
        return self.run.total_leases if self.run else 0

    @property
    def success_count(self) -> int:
        return self.run.success_count if self.run else 0

    @property
    def failure_count(self) -> int:
        return self.run.failure_count if self.run else 0
