"""
Month Utilities

Months are carried everywhere as zero-padded "YYYY-MM" strings.
Zero padding makes plain string comparison agree with calendar order,
which is what the active-in-month range predicate relies on.
"""

import re
from datetime import date
from typing import Iterator, Optional

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

_MONTH_RE = re.compile(MONTH_PATTERN)


def _split(month_iso: str) -> tuple[int, int]:
    year, month = month_iso.split("-")
    return int(year), int(month)


def current_month(today: Optional[date] = None) -> str:
    """Get the current month in "YYYY-MM" format."""
    today = today or date.today()
    return f"{today.year}-{today.month:02d}"


def month_of(day: date) -> str:
    """Month that a calendar date falls in."""
    return f"{day.year}-{day.month:02d}"


def previous_month(month_iso: str) -> str:
    """
    Get the month before `month_iso`.

    January wraps to December of the previous year.
    """
    year, month = _split(month_iso)
    if month == 1:
        return f"{year - 1}-12"
    return f"{year}-{month - 1:02d}"


def next_month(month_iso: str) -> str:
    """
    Get the month after `month_iso`.

    December wraps to January of the next year.
    """
    year, month = _split(month_iso)
    if month == 12:
        return f"{year + 1}-01"
    return f"{year}-{month + 1:02d}"


def compare_months(month1: str, month2: str) -> int:
    """Return -1, 0 or 1 as month1 is before, equal to or after month2."""
    if month1 < month2:
        return -1
    if month1 > month2:
        return 1
    return 0


def is_valid_month_format(month: str) -> bool:
    return isinstance(month, str) and _MONTH_RE.match(month) is not None


def iter_months(start_month: str, count: int) -> Iterator[str]:
    """Yield `count` consecutive months beginning with `start_month`."""
    month = start_month
    for _ in range(count):
        yield month
        month = next_month(month)


def first_day(month_iso: str) -> date:
    year, month = _split(month_iso)
    return date(year, month, 1)


def format_month_for_display(month_iso: str) -> str:
    """Format a month for display (e.g. "2026-02" -> "February 2026")."""
    return first_day(month_iso).strftime("%B %Y")
