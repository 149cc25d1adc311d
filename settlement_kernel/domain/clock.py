"""
Clock -- injectable time source for shifts, cashups and payroll runs.

Services stamp ``opened_at``/``closed_at``, snapshot ``createdAt`` and
``run_at`` from ``now()``.  Business dates (a return's ``returned_on``, a
CLI's default payroll month) come from ``today()``, which is the calendar
date in the business timezone, not the UTC date: a return booked at
01:30 in Nairobi belongs to that Nairobi day even though UTC is still on
the previous one.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo


def resolve_timezone(name: str | None) -> tzinfo:
    """Map a configured IANA zone name to a tzinfo; empty or UTC gives UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class Clock(ABC):
    """Source of the current instant and the current business date."""

    def __init__(self, business_timezone: str | None = None):
        self.tz = resolve_timezone(business_timezone)

    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""

    def today(self) -> date:
        return self.now().astimezone(self.tz).date()

    def current_period(self) -> tuple[int, int]:
        """(year, month) of the business date."""
        today = self.today()
        return today.year, today.month


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Fixed clock for tests.

    ``now()`` does not move until ``advance()`` is called, so two calls in
    one service method see the same instant.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_timezone: str | None = None,
    ):
        super().__init__(business_timezone)
        start = fixed_time or datetime(2025, 11, 1, 9, 0, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current
