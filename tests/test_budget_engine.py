"""Tests for the profile-level budget engine."""

import pytest

from budget_engine.engine import BudgetEngine
from budget_engine.models.budget import Profile, RuleType
from budget_engine.services.storage import NotFoundError

from conftest import USER_ID, make_rule


@pytest.fixture
def engine(storage, profile, engine_settings):
    return BudgetEngine(storage, profile.id, engine_settings)


@pytest.fixture
async def plan(storage, rule_factory, accounts):
    """3000 salary into checking, 500 a month paying down the loan."""
    await storage.insert_rule(rule_factory(
        label="Salary", amount=3000, type=RuleType.INCOME, start_month="2026-01",
    ))
    await storage.insert_rule(rule_factory(
        label="Loan payment", amount=500, type=RuleType.EXPENSE,
        to_account_id=accounts["loan"].id, start_month="2026-01",
    ))


class TestProfileSummary:

    async def test_summary(self, engine, plan):
        summary = await engine.get_profile_summary("2026-02")

        assert summary.profile_name == "Household"
        assert summary.net_worth == 1000 + 5000 - 10000
        assert summary.total_income == 3000
        assert summary.total_expenses == 500
        assert summary.amount_left_to_allocate == 2500
        assert summary.account_count == 3
        assert summary.rule_count == 2

    async def test_missing_profile(self, storage, engine_settings):
        with pytest.raises(NotFoundError):
            await BudgetEngine(storage, "missing", engine_settings).get_profile_summary()


class TestProjections:

    async def test_accounts_with_projections(self, engine, plan, accounts):
        result = await engine.get_accounts_with_projections(months=12, start_month="2026-01")

        balances = {a.account.name: a.projection.projected_balance for a in result.accounts}
        assert balances == {
            "Checking": 1000 + 2500 * 12,
            "Savings": 5000,
            "Car Loan": -10000 + 500 * 12,
        }
        assert result.budget_name == "Household"

        analysis = result.net_worth_analysis
        assert analysis.current_net_worth == -4000
        assert analysis.current_assets == 6000
        assert analysis.current_liabilities == -10000
        assert analysis.projected_net_worth == 32000
        assert analysis.projected_assets == 36000
        assert analysis.projected_liabilities == -4000
        assert analysis.projection_months == 12

    async def test_projection_sees_future_versions(self, engine, storage, rule_factory):
        """A raise starting mid-horizon is picked up from its start month."""
        await storage.insert_rule(rule_factory(amount=1000, start_month="2026-01", end_month="2026-06"))
        await storage.insert_rule(rule_factory(amount=2000, start_month="2026-07"))

        analysis = await engine.get_net_worth_analysis(months=12, start_month="2026-01")
        assert analysis.projected_net_worth == -4000 + 1000 * 6 + 2000 * 6

    async def test_default_horizon(self, engine, engine_settings):
        analysis = await engine.get_net_worth_analysis(start_month="2026-01")
        assert analysis.projection_months == engine_settings.default_projection_months

    async def test_projection_with_other_budget(self, engine, storage, plan, accounts):
        """Project this profile's accounts on another profile's rules."""
        lean = await storage.save_profile(Profile(user_id=USER_ID, name="Lean"))
        await storage.insert_rule(make_rule(
            profile_id=lean.id, account_id=accounts["checking"].id, amount=100, start_month="2026-01",
        ))

        result = await engine.get_accounts_with_projections(
            months=10, budget_id=lean.id, start_month="2026-01",
        )
        assert result.budget_id == lean.id
        assert result.budget_name == "Lean"
        checking = next(a for a in result.accounts if a.account.name == "Checking")
        assert checking.projection.projected_balance == 1000 + 100 * 10

    async def test_missing_budget_profile(self, engine):
        with pytest.raises(NotFoundError):
            await engine.get_accounts_with_projections(months=1, budget_id="missing")
