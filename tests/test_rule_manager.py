"""Tests for planned/actual aggregation."""

from datetime import date

import pytest

from budget_engine.engine import RuleManager
from budget_engine.models.budget import LedgerEntry, Profile, RuleType

from conftest import USER_ID


@pytest.fixture
def manager(storage, profile):
    return RuleManager(storage, profile.id)


async def post(storage, rule, month, amount, day=1):
    return await storage.insert_ledger_entry(LedgerEntry(
        user_id=rule.user_id,
        profile_id=rule.profile_id,
        month_iso=month,
        rule_id=rule.id,
        amount=amount,
        entry_date=date(int(month[:4]), int(month[5:]), day),
    ))


class TestRuleQueries:

    async def test_rules_for_month_in_creation_order(self, manager, storage, rule_factory):
        await storage.insert_rule(rule_factory(label="First", start_month="2026-01"))
        await storage.insert_rule(rule_factory(label="Second", start_month="2025-06"))
        await storage.insert_rule(rule_factory(label="Ended", start_month="2025-01", end_month="2025-12"))

        rules = await manager.get_budget_rules_for_month("2026-02")
        assert [r.label for r in rules] == ["First", "Second"]

    async def test_type_filters(self, manager, storage, rule_factory):
        await storage.insert_rule(rule_factory(label="Salary", type=RuleType.INCOME))
        await storage.insert_rule(rule_factory(label="Rent", type=RuleType.EXPENSE))

        assert [r.label for r in await manager.get_income_rules("2026-01")] == ["Salary"]
        assert [r.label for r in await manager.get_expense_rules("2026-01")] == ["Rent"]
        assert await manager.get_rule_count("2026-01") == 2

    async def test_rules_for_account_include_destination(self, manager, storage, rule_factory, accounts):
        loan_id = accounts["loan"].id
        await storage.insert_rule(rule_factory(label="Salary"))
        await storage.insert_rule(rule_factory(label="Loan payment", type=RuleType.EXPENSE, to_account_id=loan_id))
        await storage.insert_rule(rule_factory(label="Loan fee", type=RuleType.EXPENSE, account_id=loan_id))

        labels = [r.label for r in await manager.get_rules_for_account(loan_id, "2026-01")]
        assert labels == ["Loan payment", "Loan fee"]


class TestApproximateTotals:
    """normalize_to_monthly path."""

    async def test_totals_use_multipliers(self, manager, storage, rule_factory):
        await storage.insert_rule(rule_factory(amount=1000, type=RuleType.INCOME, frequency="bi-weekly"))
        await storage.insert_rule(rule_factory(amount=100, type=RuleType.EXPENSE, frequency="weekly"))
        await storage.insert_rule(rule_factory(amount=1200, type=RuleType.EXPENSE, frequency="yearly"))

        assert await manager.get_total_income("2026-01") == pytest.approx(2170)
        assert await manager.get_total_expenses("2026-01") == pytest.approx(533)
        assert await manager.get_amount_left_to_allocate("2026-01") == pytest.approx(1637)

    async def test_summary(self, manager, storage, rule_factory):
        await storage.insert_rule(rule_factory(amount=5000, type=RuleType.INCOME))
        await storage.insert_rule(rule_factory(amount=1500, type=RuleType.EXPENSE))

        summary = await manager.get_summary("2026-01")
        assert summary.total_income == 5000
        assert summary.total_expenses == 1500
        assert summary.amount_left_to_allocate == 3500
        assert len(summary.income_rules) == 1
        assert len(summary.expense_rules) == 1


class TestMonthSummary:
    """Exact planned_amount_for_month path plus ledger actuals."""

    async def test_planned_and_actual(self, manager, storage, rule_factory):
        income = await storage.insert_rule(rule_factory(amount=1000, type=RuleType.INCOME, start_month="2026-01"))
        rent = await storage.insert_rule(rule_factory(amount=400, type=RuleType.EXPENSE, start_month="2026-01"))

        await post(storage, rent, "2026-02", 200)
        # Income postings are not expense actuals
        await post(storage, income, "2026-02", 1000)

        summary = await manager.get_month_summary("2026-02")
        assert summary.total_income == 1000
        assert summary.total_planned_expense == 400
        assert summary.total_actual_expense == 200

    async def test_exact_weekly_amount(self, manager, storage, rule_factory):
        await storage.insert_rule(rule_factory(
            amount=100, type=RuleType.EXPENSE, frequency="weekly",
            start_date=date(2026, 1, 15), start_month="2026-01",
        ))
        summary = await manager.get_month_summary("2026-04")
        assert summary.total_planned_expense == 500

    async def test_other_profiles_excluded(self, manager, storage, rule_factory, profile):
        rent = await storage.insert_rule(rule_factory(amount=400, type=RuleType.EXPENSE))
        await post(storage, rent, "2026-02", 150)

        other = await storage.save_profile(Profile(user_id=USER_ID, name="Other"))
        other_rule = await storage.insert_rule(rule_factory(
            profile_id=other.id, account_id=None, amount=999, type=RuleType.EXPENSE,
        ))
        await post(storage, other_rule, "2026-02", 999)

        summary = await manager.get_month_summary("2026-02")
        assert summary.total_planned_expense == 400
        assert summary.total_actual_expense == 150

    async def test_empty_month(self, manager):
        summary = await manager.get_month_summary("2026-02")
        assert summary.total_income == 0
        assert summary.total_planned_expense == 0
        assert summary.total_actual_expense == 0
