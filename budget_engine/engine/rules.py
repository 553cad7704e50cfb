"""
Rule Manager

Planned and actual aggregation over one profile's rules.

DESIGN DECISION: Two aggregation paths exist side by side.
- The approximate path (get_total_income, get_total_expenses,
  get_amount_left_to_allocate, get_summary) uses normalize_to_monthly and
  answers "how much do I make or spend in an average month".
- The exact path (get_month_summary) uses planned_amount_for_month and
  answers "what is true for this particular month".
"""

from typing import Iterable, Optional

from budget_engine.engine.calculation import normalize_to_monthly, planned_amount_for_month, round_currency
from budget_engine.models.budget import BudgetRule, MonthSummary, RuleSummary, RuleType
from budget_engine.services.storage import BudgetStorageInterface
from budget_engine.utils.months import current_month


class RuleManager:
    """
    Reads and aggregates budget rules for one profile.

    Methods taking an optional `month` default to the current month.
    """

    def __init__(self, storage: BudgetStorageInterface, profile_id: str):
        self._storage = storage
        self.profile_id = profile_id

    async def get_budget_rules_for_month(self, month: str) -> list[BudgetRule]:
        """Rule versions active in `month`, in creation order."""
        return await self._storage.list_rules_for_month(self.profile_id, month)

    async def get_rules(self, month: Optional[str] = None) -> list[BudgetRule]:
        return await self.get_budget_rules_for_month(month or current_month())

    async def get_all_versions(self) -> list[BudgetRule]:
        """Every version regardless of month (what projections walk over)."""
        return await self._storage.list_rules(self.profile_id)

    async def get_income_rules(self, month: Optional[str] = None) -> list[BudgetRule]:
        return [r for r in await self.get_rules(month) if r.type == RuleType.INCOME]

    async def get_expense_rules(self, month: Optional[str] = None) -> list[BudgetRule]:
        return [r for r in await self.get_rules(month) if r.type == RuleType.EXPENSE]

    async def get_rules_for_account(
        self,
        account_id: str,
        month: Optional[str] = None,
    ) -> list[BudgetRule]:
        """Rules where the account is the source or the destination."""
        return [
            r for r in await self.get_rules(month)
            if r.account_id == account_id or r.to_account_id == account_id
        ]

    async def get_total_income(self, month: Optional[str] = None) -> float:
        return _sum_normalized(await self.get_rules(month), RuleType.INCOME)

    async def get_total_expenses(self, month: Optional[str] = None) -> float:
        return _sum_normalized(await self.get_rules(month), RuleType.EXPENSE)

    async def get_amount_left_to_allocate(self, month: Optional[str] = None) -> float:
        rules = await self.get_rules(month)
        return _sum_normalized(rules, RuleType.INCOME) - _sum_normalized(rules, RuleType.EXPENSE)

    async def get_summary(self, month: Optional[str] = None) -> RuleSummary:
        """Approximate monthly totals plus the rules behind them."""
        rules = await self.get_rules(month)
        income = _sum_normalized(rules, RuleType.INCOME)
        expenses = _sum_normalized(rules, RuleType.EXPENSE)
        return RuleSummary(
            total_income=income,
            total_expenses=expenses,
            amount_left_to_allocate=income - expenses,
            income_rules=[r for r in rules if r.type == RuleType.INCOME],
            expense_rules=[r for r in rules if r.type == RuleType.EXPENSE],
        )

    async def get_month_summary(self, month: str) -> MonthSummary:
        """
        Exact planned totals for `month` and the actual expense postings.

        Actuals only count ledger entries posted against expense rules of
        this profile.
        """
        rules = await self.get_budget_rules_for_month(month)
        actual = await self._storage.sum_ledger_amounts(self.profile_id, month, RuleType.EXPENSE)
        return MonthSummary(
            total_income=round_currency(_sum_planned(rules, RuleType.INCOME, month)),
            total_planned_expense=round_currency(_sum_planned(rules, RuleType.EXPENSE, month)),
            total_actual_expense=round_currency(actual),
        )

    async def get_rule_count(self, month: Optional[str] = None) -> int:
        return len(await self.get_rules(month))


def _sum_normalized(rules: Iterable[BudgetRule], rule_type: RuleType) -> float:
    return sum(normalize_to_monthly(r) for r in rules if r.type == rule_type)


def _sum_planned(rules: Iterable[BudgetRule], rule_type: RuleType, month: str) -> float:
    return sum(planned_amount_for_month(r, month) for r in rules if r.type == rule_type)
