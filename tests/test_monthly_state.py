"""Tests for the monthly state resolver."""

from datetime import date

import pytest

from budget_engine.config import EngineSettings
from budget_engine.engine import MonthlyStateResolver
from budget_engine.models.budget import CategoryKind, LedgerEntry, RuleType

from conftest import USER_ID


MONTH = "2026-02"


@pytest.fixture
def resolver(storage, engine_settings):
    return MonthlyStateResolver(storage, engine_settings)


async def post(storage, rule, amount, day=1):
    return await storage.insert_ledger_entry(LedgerEntry(
        user_id=rule.user_id,
        profile_id=rule.profile_id,
        month_iso=MONTH,
        rule_id=rule.id,
        amount=amount,
        entry_date=date(2026, 2, day),
    ))


class TestBills:

    async def test_bill_actual_is_sum_of_postings(self, resolver, storage, rule_factory, profile):
        """Three postings against a 1000 bill: paid, actual 1100."""
        rent = await storage.insert_rule(rule_factory(
            label="Rent", amount=1000, type=RuleType.EXPENSE,
            category="Rent", category_kind=CategoryKind.BILL, start_month="2026-01",
        ))
        for amount in (400, 500, 200):
            await post(storage, rent, amount)

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)

        assert len(state.bills) == 1
        bill = state.bills[0]
        assert bill.planned == 1000
        assert bill.actual == 1100
        assert bill.is_paid

    async def test_partial_payment_still_paid(self, resolver, storage, rule_factory, profile):
        """Paid means anything was posted, not that the amount was met."""
        rent = await storage.insert_rule(rule_factory(
            amount=1000, type=RuleType.EXPENSE, category_kind=CategoryKind.BILL,
        ))
        await post(storage, rent, 10)

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert state.bills[0].is_paid

    async def test_unpaid_bill(self, resolver, storage, rule_factory, profile):
        await storage.insert_rule(rule_factory(
            amount=80, type=RuleType.EXPENSE, category_kind=CategoryKind.BILL,
            start_date=date(2026, 1, 15),
        ))

        bill = (await resolver.get_monthly_state(profile.id, MONTH, USER_ID)).bills[0]
        assert not bill.is_paid
        assert bill.actual is None
        assert bill.due_day == 15


class TestClassification:

    async def test_rule_kind_wins_over_lookup(self, resolver, storage, rule_factory, profile):
        await storage.seed_default_categories(USER_ID)
        await storage.insert_rule(rule_factory(
            label="Big shop", type=RuleType.EXPENSE, category="Groceries",
            category_kind=CategoryKind.BILL,
        ))

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert [b.label for b in state.bills] == ["Big shop"]

    async def test_lookup_used_without_rule_kind(self, resolver, storage, rule_factory, profile):
        await storage.seed_default_categories(USER_ID)
        await storage.insert_rule(rule_factory(label="Internet", type=RuleType.EXPENSE, category="Internet"))

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert [b.label for b in state.bills] == ["Internet"]
        assert state.spending == []

    async def test_unknown_category_defaults_to_spending(self, resolver, storage, rule_factory, profile):
        await storage.insert_rule(rule_factory(label="Misc", type=RuleType.EXPENSE, category="Misc"))

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert [s.label for s in state.spending] == ["Misc"]

    async def test_configured_default_kind(self, storage, rule_factory, profile):
        resolver = MonthlyStateResolver(storage, EngineSettings(default_category_kind="bill", _env_file=None))
        await storage.insert_rule(rule_factory(label="Misc", type=RuleType.EXPENSE, category="Misc"))

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert [b.label for b in state.bills] == ["Misc"]

    async def test_set_category_kind(self, resolver, storage, rule_factory, profile):
        await storage.insert_rule(rule_factory(label="Gym", type=RuleType.EXPENSE, category="Fitness"))

        category = await resolver.set_category_kind(USER_ID, "Fitness", CategoryKind.BILL)
        assert category.kind == CategoryKind.BILL

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert [b.label for b in state.bills] == ["Gym"]
        assert [c.name for c in await resolver.list_categories(USER_ID)] == ["Fitness"]


class TestSpendingAndSummary:

    async def test_spending_envelope(self, resolver, storage, rule_factory, profile):
        groceries = await storage.insert_rule(rule_factory(
            label="Groceries", amount=400, type=RuleType.EXPENSE, category="Groceries",
        ))
        await post(storage, groceries, 150, day=3)
        await post(storage, groceries, 300, day=17)

        spending = (await resolver.get_monthly_state(profile.id, MONTH, USER_ID)).spending[0]
        assert spending.planned == 400
        assert spending.spent == 450
        assert spending.remaining == -50
        assert spending.transaction_count == 2
        assert spending.is_over_budget

    async def test_safe_to_spend(self, resolver, storage, rule_factory, profile):
        """Unpaid bills are reserved, paid bills count once through actuals."""
        await storage.seed_default_categories(USER_ID)
        await storage.insert_rule(rule_factory(label="Salary", amount=5000, type=RuleType.INCOME))
        rent = await storage.insert_rule(rule_factory(
            label="Rent", amount=1000, type=RuleType.EXPENSE, category="Rent",
        ))
        await storage.insert_rule(rule_factory(
            label="Internet", amount=80, type=RuleType.EXPENSE, category="Internet",
        ))
        groceries = await storage.insert_rule(rule_factory(
            label="Groceries", amount=400, type=RuleType.EXPENSE, category="Groceries",
        ))
        await storage.insert_rule(rule_factory(
            label="Misc", amount=100, type=RuleType.EXPENSE, category="Misc",
        ))
        for amount in (400, 500, 200):
            await post(storage, rent, amount)
        await post(storage, groceries, 150)
        await post(storage, groceries, 50)

        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)

        assert state.month_iso == MONTH
        assert state.summary.income == 5000
        assert state.summary.total_planned_expenses == 1580
        assert state.summary.total_actual_spent == 1300
        assert state.summary.safe_to_spend == 5000 - (1300 + 80)
        assert [b.label for b in state.bills] == ["Rent", "Internet"]
        assert [s.label for s in state.spending] == ["Groceries", "Misc"]

    async def test_weekly_planned_amount(self, resolver, storage, rule_factory, profile):
        await storage.insert_rule(rule_factory(
            label="Lunch", amount=25, type=RuleType.EXPENSE, frequency="weekly",
            start_date=date(2026, 1, 15), start_month="2026-01",
        ))
        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert state.spending[0].planned == 100

    async def test_inactive_rules_ignored(self, resolver, storage, rule_factory, profile):
        await storage.insert_rule(rule_factory(
            label="Old", amount=100, type=RuleType.EXPENSE, start_month="2025-01", end_month="2026-01",
        ))
        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert state.spending == []
        assert state.summary.total_planned_expenses == 0

    async def test_empty_month(self, resolver, profile):
        state = await resolver.get_monthly_state(profile.id, MONTH, USER_ID)
        assert state.summary.safe_to_spend == 0
        assert state.bills == []
        assert state.spending == []
