"""
Calculation Engine

Pure, stateless arithmetic over budget rules. Nothing here touches storage.

DESIGN DECISION: There are two ways to turn a rule into a monthly figure:
1. normalize_to_monthly - a fixed multiplier per frequency. Approximate,
   used for "amount left to allocate" style averages.
2. planned_amount_for_month - counts what actually lands in one calendar
   month. Exact, used for month summaries, monthly state and projections.
"""

import math
from datetime import date
from typing import Iterable, Optional, Union

from budget_engine.models.budget import BudgetRule, Frequency, RuleType
from budget_engine.utils.months import first_day


FREQUENCY_MULTIPLIERS: dict[Frequency, float] = {
    Frequency.WEEKLY: 4.33,
    Frequency.BI_WEEKLY: 2.17,
    Frequency.MONTHLY: 1,
    Frequency.YEARLY: 1 / 12,
}

INTERVAL_DAYS: dict[Frequency, int] = {
    Frequency.WEEKLY: 7,
    Frequency.BI_WEEKLY: 14,
}


def normalize_to_monthly(rule: BudgetRule) -> float:
    """
    Approximate monthly equivalent of a rule's amount.

    Non-recurring rules (and recurring rules without a frequency) return
    the raw amount.
    """
    if not rule.is_recurring or rule.frequency is None:
        return rule.amount
    return rule.amount * FREQUENCY_MULTIPLIERS.get(rule.frequency, 1)


def _anchor_date(rule: BudgetRule) -> date:
    return rule.start_date or first_day(rule.start_month)


def count_occurrences_in_month(
    anchor: Union[date, str],
    year: int,
    month: int,
    interval_days: int,
) -> int:
    """
    Count how many times a fixed-interval recurrence lands in a month.

    Args:
        anchor: First occurrence (date or ISO "YYYY-MM-DD")
        year: Target year
        month: Target month (1-12)
        interval_days: 7 for weekly, 14 for bi-weekly

    Returns:
        Number of occurrences between the first and last day of the month
    """
    if isinstance(anchor, str):
        anchor = date.fromisoformat(anchor)

    anchor_day = anchor.toordinal()
    month_start = date(year, month, 1).toordinal()
    if month == 12:
        month_end = date(year + 1, 1, 1).toordinal() - 1
    else:
        month_end = date(year, month + 1, 1).toordinal() - 1

    if anchor_day > month_end:
        return 0

    steps = max(0, math.ceil((month_start - anchor_day) / interval_days))
    first_occurrence = anchor_day + steps * interval_days
    if first_occurrence > month_end:
        return 0

    return (month_end - first_occurrence) // interval_days + 1


def planned_amount_for_month(rule: BudgetRule, month_iso: str) -> float:
    """
    Calendar-accurate planned amount of a rule in one month.

    - Non-recurring: the amount in its start month, zero elsewhere
    - Monthly (or no frequency): the amount
    - Yearly: the amount in the anchor's calendar month, zero elsewhere
    - Weekly / bi-weekly: amount times the occurrences landing in the month

    The caller is expected to have filtered to rules active in `month_iso`.
    """
    if not rule.is_recurring:
        return rule.amount if month_iso == rule.start_month else 0.0

    if rule.frequency is None or rule.frequency == Frequency.MONTHLY:
        return rule.amount

    year, month = (int(part) for part in month_iso.split("-"))

    if rule.frequency == Frequency.YEARLY:
        return rule.amount if _anchor_date(rule).month == month else 0.0

    occurrences = count_occurrences_in_month(
        _anchor_date(rule),
        year,
        month,
        INTERVAL_DAYS[rule.frequency],
    )
    return rule.amount * occurrences


def calculate_monthly_net(rules: Iterable[BudgetRule]) -> float:
    """Raw income amounts minus raw expense amounts, without normalization."""
    net = 0.0
    for rule in rules:
        if rule.type == RuleType.INCOME:
            net += rule.amount
        else:
            net -= rule.amount
    return net


def apply_projection(starting_balance: float, monthly_net: float, months: int) -> float:
    """Linear extrapolation: starting + net * months."""
    return starting_balance + monthly_net * months


def round_currency(amount: float) -> float:
    """Round to cents, exact halves up: 0.125 -> 0.13, -0.125 -> -0.12."""
    return math.floor(amount * 100 + 0.5) / 100


def format_currency(amount: float, symbol: Optional[str] = "$") -> str:
    """
    Format an amount for display, e.g. 1234.5 -> "$1,234.50".

    Negative amounts put the sign before the symbol: "-$20.00".
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol or ''}{abs(round_currency(amount)):,.2f}"
