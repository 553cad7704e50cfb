"""
Budget engine core.

calculation and projection are pure functions; the managers read and
write through a BudgetStorageInterface.
"""

from budget_engine.engine.accounts import AccountManager
from budget_engine.engine.budget import BudgetEngine
from budget_engine.engine.calculation import (
    FREQUENCY_MULTIPLIERS,
    apply_projection,
    calculate_monthly_net,
    count_occurrences_in_month,
    format_currency,
    normalize_to_monthly,
    planned_amount_for_month,
    round_currency,
)
from budget_engine.engine.ledger import LedgerManager
from budget_engine.engine.monthly_state import MonthlyStateResolver
from budget_engine.engine.projection import (
    calculate_account_projection,
    calculate_all_projections,
    get_monthly_expenses_for_account,
    get_monthly_income_for_account,
    get_projected_assets,
    get_projected_liabilities,
    get_projected_net_worth,
    is_rule_active_in_month,
)
from budget_engine.engine.rules import RuleManager
from budget_engine.engine.versioning import RuleVersioning

__all__ = [
    # Managers
    "AccountManager",
    "BudgetEngine",
    "LedgerManager",
    "MonthlyStateResolver",
    "RuleManager",
    "RuleVersioning",
    # Calculation
    "FREQUENCY_MULTIPLIERS",
    "apply_projection",
    "calculate_monthly_net",
    "count_occurrences_in_month",
    "format_currency",
    "normalize_to_monthly",
    "planned_amount_for_month",
    "round_currency",
    # Projection
    "calculate_account_projection",
    "calculate_all_projections",
    "get_monthly_expenses_for_account",
    "get_monthly_income_for_account",
    "get_projected_assets",
    "get_projected_liabilities",
    "get_projected_net_worth",
    "is_rule_active_in_month",
]
