"""
BillingConfig schema.

Organization-wide billing defaults.  Per-lease billing settings
(``LeaseBillingSetting``) override the payment-term days and invoice
prefix; everything else comes from here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from billing_engines.proration import ProrationMethod


class MissingChargeTypePolicy(str, Enum):
    """What invoice generation does when a recurring charge's type is missing."""

    SKIP = "skip"  # warn and leave the line out
    FAIL = "fail"  # fail the whole invoice


@dataclass(frozen=True)
class BillingConfig:
    """Billing defaults. Validated on construction."""

    default_payment_term_days: int = 0
    invoice_prefix: str = "INV"
    credit_note_prefix: str = "CN"
    rent_charge_type_code: str = "RENT"
    missing_charge_type_policy: MissingChargeTypePolicy = MissingChargeTypePolicy.SKIP
    default_proration_method: ProrationMethod = ProrationMethod.ACTUAL_DAYS_IN_MONTH
    max_run_error_messages: int = 10

    def __post_init__(self) -> None:
        if self.default_payment_term_days < 0:
            raise ValueError("default_payment_term_days cannot be negative")
        if not self.invoice_prefix.strip():
            raise ValueError("invoice_prefix cannot be blank")
        if not self.credit_note_prefix.strip():
            raise ValueError("credit_note_prefix cannot be blank")
        if not self.rent_charge_type_code.strip():
            raise ValueError("rent_charge_type_code cannot be blank")
        if self.max_run_error_messages < 1:
            raise ValueError("max_run_error_messages must be at least 1")
        # Accept raw strings from YAML / callers
        object.__setattr__(
            self,
            "missing_charge_type_policy",
            MissingChargeTypePolicy(self.missing_charge_type_policy),
        )
        object.__setattr__(
            self,
            "default_proration_method",
            ProrationMethod(self.default_proration_method),
        )
