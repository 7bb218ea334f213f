"""Calendar helpers for monthly recurrence."""

import calendar
from collections.abc import Iterator
from datetime import date


def last_day_of_month(year: int, month: int) -> int:
    """Return the number of days in the given month."""
    return calendar.monthrange(year, month)[1]


def calculate_actual_due_date(due_day: int, year: int, month: int) -> date:
    """Return the real calendar date for a due day in the target month.

    Due days below 1 clamp to the 1st; due days past the end of the month
    clamp to its last day (31 in February becomes the 28th or 29th).
    """
    day = max(1, due_day)
    return date(year, month, min(day, last_day_of_month(year, month)))


def month_start(value: date) -> date:
    """Return the first day of the month containing ``value``."""
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Return the first day of the month ``months`` after ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def iter_months(start: date, count: int) -> Iterator[tuple[int, int]]:
    """Yield ``(year, month)`` for ``count`` months beginning at ``start``."""
    for offset in range(count):
        current = add_months(start, offset)
        yield current.year, current.month
