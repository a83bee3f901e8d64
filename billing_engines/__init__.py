"""
Module: billing_engines
Responsibility:
    Re-exports the pure calculation engines used by the billing services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (domain values, exceptions, logging).
    MUST NOT import billing_modules or billing_batch.

Invariants enforced:
    - Engines NEVER read the clock; timestamps are parameters.
    - Decimal-only arithmetic for money and units.
    - Identical inputs always produce identical outputs.

Usage:
    from billing_engines.proration import ProrationMethod, get_calculator
    from billing_engines.utility import RateSlab, calculate_slab_charges
    from billing_engines.numbering import DocumentType, format_document_number
"""

from billing_engines.numbering import (
    DEFAULT_PREFIXES,
    DocumentType,
    format_document_number,
    resolve_prefix,
)
from billing_engines.proration import (
    ActualDaysInMonthCalculator,
    ProrationCalculator,
    ProrationMethod,
    ThirtyDayMonthCalculator,
    get_calculator,
)
from billing_engines.utility import (
    RateSlab,
    SlabCalculation,
    SlabLineItem,
    calculate_flat_rate,
    calculate_slab_charges,
    validate_slab_contiguity,
)

__all__ = [
    "DEFAULT_PREFIXES",
    "DocumentType",
    "format_document_number",
    "resolve_prefix",
    "ActualDaysInMonthCalculator",
    "ProrationCalculator",
    "ProrationMethod",
    "ThirtyDayMonthCalculator",
    "get_calculator",
    "RateSlab",
    "SlabCalculation",
    "SlabLineItem",
    "calculate_flat_rate",
    "calculate_slab_charges",
    "validate_slab_contiguity",
]
