from __future__ import annotations

import math
from datetime import date, timedelta


DAYS_PER_MONTH = 30.44
"""Average month length used for day-level positioning."""

RESTRICTED_MONTHS = frozenset({1, 4, 8})
"""Calendar months (January, April, August) treated as non-productive on site."""


def add_months(value: date, months: float) -> date:
    """
    Shift `value` by whole calendar months, keeping the day of month.

    When the target month is too short the surplus days roll forward into
    the following month (Jan 31 + 1 month -> Mar 3, or Mar 2 in leap years).
    Fractional shifts are truncated toward zero after being added to the
    zero-based month index. Shifts beyond the supported calendar saturate at
    date.min / date.max.
    """

    try:
        index = int(value.month - 1 + months)
        year = value.year + index // 12
        month = index % 12 + 1
        return date(year, month, 1) + timedelta(days=value.day - 1)
    except (OverflowError, ValueError):
        return date.max if months > 0 else date.min


def sub_months(value: date, months: float) -> date:
    """Shift `value` back by `months` calendar months (see add_months)."""
    return add_months(value, -months)


def add_days(value: date, days: int) -> date:
    try:
        return value + timedelta(days=days)
    except OverflowError:
        return date.max if days > 0 else date.min


def diff_months(start: date, end: date) -> int:
    """
    Whole months from `start` to `end` using year/month only.

    Day of month is ignored and negative spans are floored to 0.
    """

    months = (end.year - start.year) * 12 - start.month + end.month
    return months if months > 0 else 0


def is_restricted_month(value: date) -> bool:
    return value.month in RESTRICTED_MONTHS


def month_days(months: float) -> int:
    """Day count for a month duration, rounded half up."""
    return math.floor(months * DAYS_PER_MONTH + 0.5)
