"""
Projection Engine

Forward balance projections for accounts.

DESIGN DECISION: Projections walk the horizon one month at a time and
re-evaluate which rule versions are active in each month. A closed-form
`starting + net * months` is wrong as soon as any version starts or stops
inside the window, which is exactly what splitting a rule produces.

Liabilities are stored as NEGATIVE balances, so all math works naturally:
- Assets: positive balance + income - expenses
- Liabilities: negative balance + payments (which are treated as income)
"""

from typing import Iterable, Optional

from budget_engine.engine.calculation import planned_amount_for_month, round_currency
from budget_engine.models.budget import ASSET_ACCOUNT_TYPES, Account, BudgetRule, ProjectionResult, RuleType
from budget_engine.utils.months import current_month, iter_months


def is_rule_active_in_month(rule: BudgetRule, month: str) -> bool:
    """start_month <= month and (end_month is None or end_month >= month)."""
    return rule.is_active_in(month)


def get_monthly_income_for_account(
    account_id: str,
    rules: Iterable[BudgetRule],
    month: str,
) -> float:
    """
    Money flowing into an account in one month.

    Counts income rules paying into the account, plus expense rules whose
    destination is the account (transfers in, debt paydown).
    """
    total = 0.0
    for rule in rules:
        if not is_rule_active_in_month(rule, month):
            continue
        direct_income = rule.type == RuleType.INCOME and rule.account_id == account_id
        transfer_in = rule.type == RuleType.EXPENSE and rule.to_account_id == account_id
        if direct_income or transfer_in:
            total += planned_amount_for_month(rule, month)
    return total


def get_monthly_expenses_for_account(
    account_id: str,
    rules: Iterable[BudgetRule],
    month: str,
) -> float:
    """Expense rules paid from the account in one month."""
    return sum(
        planned_amount_for_month(rule, month)
        for rule in rules
        if rule.type == RuleType.EXPENSE
        and rule.account_id == account_id
        and is_rule_active_in_month(rule, month)
    )


def calculate_account_projection(
    account: Account,
    rules: list[BudgetRule],
    months: int,
    start_month: Optional[str] = None,
) -> ProjectionResult:
    """
    Project an account's balance `months` months ahead.

    Args:
        account: Account to project
        rules: Every rule version that might apply (inactive ones are skipped per month)
        months: Horizon length
        start_month: First projected month, defaults to the current month

    Returns:
        ProjectionResult with the start-month snapshot and the final balance
    """
    start_month = start_month or current_month()

    monthly_income = get_monthly_income_for_account(account.id, rules, start_month)
    monthly_expenses = get_monthly_expenses_for_account(account.id, rules, start_month)

    balance = account.starting_balance
    for month in iter_months(start_month, months):
        balance += (
            get_monthly_income_for_account(account.id, rules, month)
            - get_monthly_expenses_for_account(account.id, rules, month)
        )

    return ProjectionResult(
        account_id=account.id,
        starting_balance=account.starting_balance,
        monthly_income=round_currency(monthly_income),
        monthly_expenses=round_currency(monthly_expenses),
        monthly_net=round_currency(monthly_income - monthly_expenses),
        projected_balance=round_currency(balance),
        months=months,
    )


def calculate_all_projections(
    accounts: Iterable[Account],
    rules: list[BudgetRule],
    months: int,
    start_month: Optional[str] = None,
) -> dict[str, ProjectionResult]:
    """Projection per account, keyed by account id."""
    start_month = start_month or current_month()
    return {
        account.id: calculate_account_projection(account, rules, months, start_month)
        for account in accounts
    }


def get_projected_net_worth(projections: dict[str, ProjectionResult]) -> float:
    return round_currency(sum(p.projected_balance for p in projections.values()))


def _projected_total(
    accounts: Iterable[Account],
    projections: dict[str, ProjectionResult],
    assets: bool,
) -> float:
    total = 0.0
    for account in accounts:
        if (account.type in ASSET_ACCOUNT_TYPES) != assets:
            continue
        projection = projections.get(account.id)
        total += projection.projected_balance if projection else account.starting_balance
    return round_currency(total)


def get_projected_assets(
    accounts: Iterable[Account],
    projections: dict[str, ProjectionResult],
) -> float:
    """Projected balances of asset accounts (falls back to starting balance)."""
    return _projected_total(accounts, projections, assets=True)


def get_projected_liabilities(
    accounts: Iterable[Account],
    projections: dict[str, ProjectionResult],
) -> float:
    """Projected balances of liability accounts (negative numbers)."""
    return _projected_total(accounts, projections, assets=False)
