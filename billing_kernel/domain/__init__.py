"""
Pure domain layer.

Value objects, clock and cancellation with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (other than SystemClock)
"""

from billing_kernel.domain.cancellation import CancellationToken, check_cancelled
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.values import (
    ZERO,
    DateRange,
    round_money,
    sum_money,
    to_decimal,
)

__all__ = [
    "CancellationToken",
    "check_cancelled",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "DateRange",
    "ZERO",
    "round_money",
    "sum_money",
    "to_decimal",
]
