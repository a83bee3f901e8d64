"""
Billing Modules.

Services that turn lease data into billing documents.  Each module contains:
- Domain models (frozen DTOs)
- ORM models
- Ports and their SQLAlchemy adapters

Modules:
- Leasing: leases, lease terms, charge types, recurring charges, settings
- Billing: rent, recurring charges, utilities, invoices, credit notes

Calculation logic lives in billing_engines; these modules load inputs,
apply business rules and persist results.
"""

from billing_modules import billing, leasing

__all__ = ["billing", "leasing"]
