"""Calendar arithmetic for billing-cycle alignment.

All helpers are day granular and pure.  Month arithmetic clamps the day
of month to the length of the target month, so a billing-cycle day of 31
lands on Feb 28/29 and returns to the 31st in March.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def aligned_date(year: int, month: int, day_of_month: int) -> date:
    """Date in the given month on ``day_of_month``, clamped to the month length."""
    return date(year, month, min(day_of_month, days_in_month(year, month)))


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    """(year, month) moved by ``months`` (may be negative)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day of month."""
    year, month = shift_month(value.year, value.month, months)
    return aligned_date(year, month, value.day)


def months_between(start: date, end: date) -> int:
    """Whole months from ``start`` to ``end``; negative when ``end`` is earlier.

    A month counts once adding it to ``start`` does not overshoot ``end``
    (Jan 31 -> Feb 28 is one whole month).
    """
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and add_months(start, months) > end:
        months -= 1
    elif months < 0 and add_months(start, months) < end:
        months += 1
    return months


def to_timezone(name: str | tzinfo) -> tzinfo:
    if isinstance(name, tzinfo):
        return name
    return ZoneInfo(name)


def local_date(instant: datetime, zone: str | tzinfo) -> date:
    """Calendar date of ``instant`` as seen in ``zone``.

    Raises:
        ValueError: if ``instant`` is naive.
    """
    if instant.tzinfo is None:
        raise ValueError(f"Naive datetime not allowed: {instant!r}")
    return instant.astimezone(to_timezone(zone)).date()
