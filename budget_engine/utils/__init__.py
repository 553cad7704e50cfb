"""Month arithmetic helpers."""

from budget_engine.utils.months import (
    MONTH_PATTERN,
    compare_months,
    current_month,
    first_day,
    format_month_for_display,
    is_valid_month_format,
    iter_months,
    month_of,
    next_month,
    previous_month,
)

__all__ = [
    "MONTH_PATTERN",
    "compare_months",
    "current_month",
    "first_day",
    "format_month_for_display",
    "is_valid_month_format",
    "iter_months",
    "month_of",
    "next_month",
    "previous_month",
]
