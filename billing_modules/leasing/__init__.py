"""
Leasing Module.

The lease-side inputs of billing: leases with their dated terms, charge
types, recurring charges and per-lease billing settings.  Read-only from
the billing side.
"""

from billing_modules.leasing.models import (
    BillingFrequency,
    ChargeCode,
    ChargeType,
    Lease,
    LeaseBillingSetting,
    LeaseStatus,
    LeaseTerm,
    RecurringCharge,
)

__all__ = [
    "BillingFrequency",
    "ChargeCode",
    "ChargeType",
    "Lease",
    "LeaseBillingSetting",
    "LeaseStatus",
    "LeaseTerm",
    "RecurringCharge",
]
