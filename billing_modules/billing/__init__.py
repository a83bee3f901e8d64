"""
Billing Module.

Rent and recurring-charge calculation, utility charges, invoice
generation, the invoice lifecycle and credit notes.

Proration and slab arithmetic come from billing_engines.
"""

from billing_modules.billing.credit_notes import CreditNoteManager
from billing_modules.billing.generation import InvoiceGenerator
from billing_modules.billing.lifecycle import InvoiceLifecycleManager
from billing_modules.billing.models import (
    CreditNote,
    CreditNoteLine,
    CreditNoteLineRequest,
    CreditNoteReason,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    UtilityRatePlan,
    UtilityType,
)
from billing_modules.billing.numbering import CreditNoteNumberGenerator, InvoiceNumberGenerator
from billing_modules.billing.recurring import RecurringChargeCalculator
from billing_modules.billing.rent import RentCalculator
from billing_modules.billing.results import BillingFailure, BillingResult, InvoiceGenerationResult
from billing_modules.billing.utility import UtilityCalculator

__all__ = [
    "CreditNoteManager",
    "InvoiceGenerator",
    "InvoiceLifecycleManager",
    "CreditNote",
    "CreditNoteLine",
    "CreditNoteLineRequest",
    "CreditNoteReason",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "UtilityRatePlan",
    "UtilityType",
    "CreditNoteNumberGenerator",
    "InvoiceNumberGenerator",
    "RecurringChargeCalculator",
    "RentCalculator",
    "BillingFailure",
    "BillingResult",
    "InvoiceGenerationResult",
    "UtilityCalculator",
]
