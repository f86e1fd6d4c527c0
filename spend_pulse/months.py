"""Calendar helpers keyed by ``"YYYY-MM"`` month strings.

All date math operates on plain calendar dates; no timezone conversion
happens here.
"""

from __future__ import annotations

import calendar
import re
from datetime import date

from .errors import InvalidMonthError

type MonthKey = str

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(key: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` key or raise ``InvalidMonthError``."""

    m = _MONTH_RE.fullmatch(key) if isinstance(key, str) else None
    if m is None:
        raise InvalidMonthError(key)
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidMonthError(key)
    return year, month


def month_key(d: date) -> MonthKey:
    return f"{d.year:04d}-{d.month:02d}"


def days_in_month(key: MonthKey) -> int:
    year, month = parse_month(key)
    return calendar.monthrange(year, month)[1]


def month_bounds(key: MonthKey) -> tuple[date, date]:
    """First and last calendar day of the month (inclusive)."""

    year, month = parse_month(key)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def contains(key: MonthKey, d: date) -> bool:
    start, end = month_bounds(key)
    return start <= d <= end


def previous_month(key: MonthKey) -> MonthKey:
    year, month = parse_month(key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def month_label(key: MonthKey, *, short: bool = False) -> str:
    """``"February 2026"`` or, with ``short=True``, ``"Feb"``."""

    year, month = parse_month(key)
    if short:
        return calendar.month_abbr[month]
    return f"{calendar.month_name[month]} {year}"


__all__ = [
    "MonthKey",
    "parse_month",
    "month_key",
    "days_in_month",
    "month_bounds",
    "contains",
    "previous_month",
    "month_label",
]
