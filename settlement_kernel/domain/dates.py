"""
Date helpers -- UTC date-only values and half-open month ranges.

All period arithmetic in the settlement engine uses UTC half-open
``[start, end)`` intervals on date-only values.
"""

from __future__ import annotations

from datetime import MAXYEAR, date, datetime, timezone

from settlement_kernel.exceptions import InvalidPayrollPeriodError


def date_only_utc(value: date | datetime | str) -> date:
    """Reduce a date, datetime or ``YYYY-MM-DD`` string to a UTC calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def validate_period(year: int, month: int) -> None:
    """
    Raise InvalidPayrollPeriodError unless month is 1..12 and year is positive.

    December of the last representable year is refused too: its half-open
    range would end past ``date.max``.
    """
    for part in (year, month):
        if isinstance(part, bool) or not isinstance(part, int):
            raise InvalidPayrollPeriodError(year, month)
    if year < 1 or month < 1 or month > 12 or (year, month) >= (MAXYEAR, 12):
        raise InvalidPayrollPeriodError(year, month)


def month_range(year: int, month: int) -> tuple[date, date]:
    """Return ``(first_day, first_day_of_next_month)`` for the period."""
    validate_period(year, month)
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end
