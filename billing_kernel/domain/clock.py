"""
Clock -- injectable time source for the billing core.

Services never call ``datetime.now()`` or ``date.today()`` themselves.
Document numbers (``PREFIX-YYYYMM-NNNNNN``), issue/void stamps, credit
note dates and invoice-run timestamps all read time through a Clock, so
tests can pin the billing month.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now_utc(self) -> datetime:
        ...

    def now(self) -> datetime:
        return self.now_utc()

    def today_utc(self) -> date:
        """Calendar date used for credit-note dates."""
        return self.now_utc().date()


class SystemClock(Clock):
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests, starting at 2024-01-01 12:00 UTC.

    Time only moves through ``advance()`` or ``set_time()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def now_utc(self) -> datetime:
        return self._current.astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
