"""
Billing Kernel

Shared infrastructure for the rental billing core:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with failure kinds
- Injectable clock and cooperative cancellation
- Money rounding and inclusive date ranges
- SQLAlchemy declarative base, engine and document number sequences
"""

__version__ = "0.1.0"
