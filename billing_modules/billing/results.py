"""
Result values returned by the billing services.

Public operations never raise ``BillingError`` to their caller; they catch
it at the boundary and return one of these with a ``BillingFailure``
describing what went wrong.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import UUID

from billing_kernel.exceptions import BillingError, FailureKind
from billing_modules.billing.models import Invoice

T = TypeVar("T")


@dataclass(frozen=True)
class BillingFailure:
    """Machine-readable failure: category, stable code, human message."""

    kind: FailureKind
    code: str
    message: str

    @property
    def is_retryable(self) -> bool:
        return self.kind == FailureKind.CONCURRENCY_CONFLICT

    @classmethod
    def from_error(cls, error: BillingError) -> BillingFailure:
        return cls(kind=error.kind, code=error.code, message=str(error))


@dataclass(frozen=True)
class BillingResult(Generic[T]):
    """Success value or failure, never both."""

    value: T | None = None
    failure: BillingFailure | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, value: T) -> BillingResult[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, error: BillingError) -> BillingResult[Any]:
        return cls(failure=BillingFailure.from_error(error))

    @property
    def error_message(self) -> str | None:
        return self.failure.message if self.failure else None


@dataclass(frozen=True)
class SkippedLine:
    """A recurring charge left off an invoice because its charge type is missing."""

    recurring_charge_id: UUID
    charge_type_id: UUID
    amount: Decimal
    reason: str


@dataclass(frozen=True)
class InvoiceGenerationResult:
    """Outcome of generating (or regenerating) one lease's invoice."""

    invoice: Invoice | None = None
    was_updated: bool = False
    skipped_lines: tuple[SkippedLine, ...] = ()
    failure: BillingFailure | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None and self.invoice is not None

    @property
    def error_message(self) -> str | None:
        return self.failure.message if self.failure else None

    @classmethod
    def fail(cls, error: BillingError) -> InvoiceGenerationResult:
        return cls(failure=BillingFailure.from_error(error))
