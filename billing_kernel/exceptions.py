"""
Typed Exception Hierarchy for the Billing Core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the billing core must be able to tell a bad request apart from a
missing record, a lifecycle conflict, a stale write, or broken reference data
without parsing message strings. Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. A KIND class attribute (the failure category from the taxonomy below)
  4. Structured DATA attributes (ids, statuses, amounts)

Services raise these internally. Public operations catch ``BillingError`` at
their boundary and hand back a result value carrying a ``BillingFailure``
built from the exception (see ``billing_modules.billing.results``).
Anything that is not a ``BillingError`` is an infrastructure fault and
propagates.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- BillingValidationError                       kind=VALIDATION
    |   +-- InvalidBillingPeriodError
    |   +-- NegativeAmountError
    |   +-- MissingVoidReasonError
    |   +-- EmptyCreditNoteRequestError
    |   +-- InvalidCreditNoteLineError
    |   +-- InvalidCreditNoteReasonError
    |
    +-- BillingNotFoundError                         kind=NOT_FOUND
    |   +-- LeaseNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- CreditNoteNotFoundError
    |   +-- RatePlanNotFoundError
    |
    +-- StateConflictError                           kind=STATE_CONFLICT
    |   +-- LeaseNotActiveError
    |   +-- InvoiceAlreadyExistsError
    |   +-- InvalidInvoiceStateError
    |   +-- CreditNoteStateError
    |
    +-- ConcurrencyError                             kind=CONCURRENCY_CONFLICT
    |   +-- OptimisticLockError
    |
    +-- BillingConfigurationError                    kind=CONFIGURATION
    |   +-- ChargeTypeNotFoundError
    |   +-- RatePlanInactiveError
    |   +-- EmptyRatePlanError
    |   +-- InvalidSlabConfigurationError
    |
    +-- UnsupportedOperationError                    kind=UNSUPPORTED
    |
    +-- OperationCancelledError                      kind=CANCELLED

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------------
Validation      | INVALID_BILLING_PERIOD        | Period end precedes period start
                | NEGATIVE_AMOUNT               | Amount/units/rate below zero
                | MISSING_VOID_REASON           | Void requested with a blank reason
                | EMPTY_CREDIT_NOTE_REQUEST     | Credit note requested with no lines
                | INVALID_CREDIT_NOTE_LINE      | Unknown invoice line / bad credit amount
                | INVALID_CREDIT_NOTE_REASON    | Credit note reason missing or unknown
----------------|-------------------------------|-----------------------------------------
Not found       | LEASE_NOT_FOUND               | Lease id doesn't exist
                | INVOICE_NOT_FOUND             | Invoice id doesn't exist
                | CREDIT_NOTE_NOT_FOUND         | Credit note id doesn't exist
                | RATE_PLAN_NOT_FOUND           | Utility rate plan id doesn't exist
----------------|-------------------------------|-----------------------------------------
State conflict  | LEASE_NOT_ACTIVE              | Billing a lease that isn't Active
                | INVOICE_ALREADY_EXISTS        | Non-draft invoice already covers period
                | INVALID_INVOICE_STATE         | Issue/void/credit from the wrong status
                | INVALID_CREDIT_NOTE_STATE     | Credit note already issued / empty
----------------|-------------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Row version changed since it was read
----------------|-------------------------------|-----------------------------------------
Configuration   | CHARGE_TYPE_NOT_FOUND         | Charge type missing for a billed line
                | RATE_PLAN_INACTIVE            | Slab billing against inactive plan
                | RATE_PLAN_EMPTY               | Rate plan without slabs
                | INVALID_SLAB_CONFIGURATION    | Slabs not contiguous / not ordered
----------------|-------------------------------|-----------------------------------------
Unsupported     | OPERATION_NOT_SUPPORTED       | Placeholder entry points
Cancelled       | OPERATION_CANCELLED           | Cancellation token was signalled
"""

from decimal import Decimal
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Failure category. Drives how callers react to an error."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STATE_CONFLICT = "state_conflict"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    CONFIGURATION = "configuration"
    UNSUPPORTED = "unsupported"
    CANCELLED = "cancelled"


class BillingError(Exception):
    """
    Base exception for all billing core errors.

    All subclasses must have ``code`` and ``kind`` class attributes.
    """

    code: str = "BILLING_ERROR"
    kind: FailureKind = FailureKind.VALIDATION


# Validation errors


class BillingValidationError(BillingError):
    """Caller-correctable input problem."""

    code: str = "VALIDATION_ERROR"
    kind: FailureKind = FailureKind.VALIDATION


class InvalidBillingPeriodError(BillingValidationError):
    """Billing period end precedes its start."""

    code: str = "INVALID_BILLING_PERIOD"

    def __init__(self, period_start: Any, period_end: Any):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__("Billing period end cannot be before start")


class NegativeAmountError(BillingValidationError):
    """A monetary amount or quantity that must be non-negative is not."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, field_name: str, value: Decimal):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} cannot be negative (got {value})")


class MissingVoidReasonError(BillingValidationError):
    """Void requested without a reason."""

    code: str = "MISSING_VOID_REASON"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__("Void reason is required")


class EmptyCreditNoteRequestError(BillingValidationError):
    """Credit note requested with no line items."""

    code: str = "EMPTY_CREDIT_NOTE_REQUEST"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__("At least one line item is required for credit note")


class InvalidCreditNoteLineError(BillingValidationError):
    """A requested credit line does not fit the invoice line it references."""

    code: str = "INVALID_CREDIT_NOTE_LINE"

    def __init__(self, invoice_id: str, invoice_line_id: str, reason: str):
        self.invoice_id = invoice_id
        self.invoice_line_id = invoice_line_id
        self.reason = reason
        super().__init__(reason)


class InvalidCreditNoteReasonError(BillingValidationError):
    """Credit note reason is missing or not a known reason."""

    code: str = "INVALID_CREDIT_NOTE_REASON"

    def __init__(self, invoice_id: str, reason: object):
        self.invoice_id = invoice_id
        self.reason = reason
        super().__init__(f"Invalid credit note reason: {reason!r}")


# Not-found errors


class BillingNotFoundError(BillingError):
    """Referenced record is absent."""

    code: str = "NOT_FOUND"
    kind: FailureKind = FailureKind.NOT_FOUND


class LeaseNotFoundError(BillingNotFoundError):
    code: str = "LEASE_NOT_FOUND"

    def __init__(self, lease_id: str):
        self.lease_id = lease_id
        super().__init__(f"Lease with ID {lease_id} not found")


class InvoiceNotFoundError(BillingNotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice with ID {invoice_id} not found")


class CreditNoteNotFoundError(BillingNotFoundError):
    code: str = "CREDIT_NOTE_NOT_FOUND"

    def __init__(self, credit_note_id: str):
        self.credit_note_id = credit_note_id
        super().__init__(f"Credit note with ID {credit_note_id} not found")


class RatePlanNotFoundError(BillingNotFoundError):
    code: str = "RATE_PLAN_NOT_FOUND"

    def __init__(self, rate_plan_id: str):
        self.rate_plan_id = rate_plan_id
        super().__init__(f"Utility rate plan with ID {rate_plan_id} not found")


# State-conflict errors


class StateConflictError(BillingError):
    """Operation attempted against a record in the wrong lifecycle state."""

    code: str = "STATE_CONFLICT"
    kind: FailureKind = FailureKind.STATE_CONFLICT


class LeaseNotActiveError(StateConflictError):
    code: str = "LEASE_NOT_ACTIVE"

    def __init__(self, lease_id: str, status: str):
        self.lease_id = lease_id
        self.status = status
        super().__init__(f"Lease is not active (Status: {status})")


class InvoiceAlreadyExistsError(StateConflictError):
    """A non-draft invoice already covers the lease and period."""

    code: str = "INVOICE_ALREADY_EXISTS"

    def __init__(self, lease_id: str, invoice_id: str, status: str):
        self.lease_id = lease_id
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(
            f"Invoice {invoice_id} already exists for this period "
            f"(Status: {status}). Void it before regenerating."
        )


class InvalidInvoiceStateError(StateConflictError):
    code: str = "INVALID_INVOICE_STATE"

    def __init__(self, invoice_id: str, status: str, operation: str, reason: str):
        self.invoice_id = invoice_id
        self.status = status
        self.operation = operation
        self.reason = reason
        super().__init__(reason)


class CreditNoteStateError(StateConflictError):
    code: str = "INVALID_CREDIT_NOTE_STATE"

    def __init__(self, credit_note_id: str, reason: str):
        self.credit_note_id = credit_note_id
        self.reason = reason
        super().__init__(reason)


# Concurrency errors


class ConcurrencyError(BillingError):
    """Base for concurrent modification conflicts. Always retryable."""

    code: str = "CONCURRENCY_ERROR"
    kind: FailureKind = FailureKind.CONCURRENCY_CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Stored row version no longer matches the one the caller read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity_type} was modified by another process. Please retry."
        )


# Configuration errors


class BillingConfigurationError(BillingError):
    """Reference or setup data is broken. Fails the operation loudly."""

    code: str = "CONFIGURATION_ERROR"
    kind: FailureKind = FailureKind.CONFIGURATION


class ChargeTypeNotFoundError(BillingConfigurationError):
    code: str = "CHARGE_TYPE_NOT_FOUND"

    def __init__(self, charge_type: str, org_id: str | None = None):
        self.charge_type = charge_type
        self.org_id = org_id
        super().__init__(f"{charge_type} charge type not found")


class RatePlanInactiveError(BillingConfigurationError):
    code: str = "RATE_PLAN_INACTIVE"

    def __init__(self, rate_plan_id: str):
        self.rate_plan_id = rate_plan_id
        super().__init__(f"Utility rate plan {rate_plan_id} is not active")


class EmptyRatePlanError(BillingConfigurationError):
    code: str = "RATE_PLAN_EMPTY"

    def __init__(self, rate_plan_id: str):
        self.rate_plan_id = rate_plan_id
        super().__init__(
            f"Utility rate plan {rate_plan_id} has no rate slabs defined"
        )


class InvalidSlabConfigurationError(BillingConfigurationError):
    code: str = "INVALID_SLAB_CONFIGURATION"

    def __init__(self, slab_order: int, reason: str):
        self.slab_order = slab_order
        self.reason = reason
        super().__init__(f"Invalid rate slab {slab_order}: {reason}")


# Unsupported / cancelled


class UnsupportedOperationError(BillingError):
    code: str = "OPERATION_NOT_SUPPORTED"
    kind: FailureKind = FailureKind.UNSUPPORTED

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(reason)


class OperationCancelledError(BillingError):
    """Raised at a repository boundary once cancellation was requested."""

    code: str = "OPERATION_CANCELLED"
    kind: FailureKind = FailureKind.CANCELLED

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} was cancelled")
