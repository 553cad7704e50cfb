"""
Budget Engine

Profile-level facade combining accounts, rules and projections.

Projections are fed every rule version of the profile, not only the
versions active today: the projection walk decides per month which
versions apply, so a raise that starts in July shows up from July.
"""

from typing import Optional

from budget_engine.config import EngineSettings, get_settings
from budget_engine.engine.accounts import AccountManager
from budget_engine.engine.projection import (
    calculate_all_projections,
    get_projected_assets,
    get_projected_liabilities,
    get_projected_net_worth,
)
from budget_engine.engine.rules import RuleManager
from budget_engine.models.budget import (
    Account,
    AccountsWithProjections,
    AccountWithProjection,
    BudgetRule,
    NetWorthAnalysis,
    Profile,
    ProfileSummary,
)
from budget_engine.services.storage import BudgetStorageInterface, NotFoundError
from budget_engine.utils.months import current_month


class BudgetEngine:
    """
    Coordinates the managers of one profile.

    Usage:
        engine = BudgetEngine(storage, profile_id)
        summary = await engine.get_profile_summary()
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        profile_id: str,
        settings: Optional[EngineSettings] = None,
    ):
        self._storage = storage
        self.profile_id = profile_id
        self._settings = settings or get_settings().engine
        self.accounts = AccountManager(storage, profile_id)
        self.rules = RuleManager(storage, profile_id)

    async def _get_profile(self, profile_id: str) -> Profile:
        profile = await self._storage.get_profile(profile_id)
        if profile is None:
            raise NotFoundError(f"Profile not found: {profile_id}")
        return profile

    async def get_profile_summary(self, month: Optional[str] = None) -> ProfileSummary:
        """
        Net worth, approximate monthly totals and counts.

        Raises:
            NotFoundError: If the profile does not exist
        """
        profile = await self._get_profile(self.profile_id)
        summary = await self.rules.get_summary(month)

        return ProfileSummary(
            profile_id=profile.id,
            profile_name=profile.name,
            net_worth=await self.accounts.get_net_worth(),
            total_income=summary.total_income,
            total_expenses=summary.total_expenses,
            amount_left_to_allocate=summary.amount_left_to_allocate,
            account_count=await self.accounts.get_account_count(),
            rule_count=len(summary.income_rules) + len(summary.expense_rules),
        )

    async def _net_worth_analysis(
        self,
        accounts: list[Account],
        rules: list[BudgetRule],
        months: int,
        start_month: str,
    ) -> tuple[NetWorthAnalysis, dict]:
        projections = calculate_all_projections(accounts, rules, months, start_month)
        analysis = NetWorthAnalysis(
            current_net_worth=await self.accounts.get_net_worth(),
            current_assets=await self.accounts.get_total_assets(),
            current_liabilities=await self.accounts.get_total_liabilities(),
            projected_net_worth=get_projected_net_worth(projections),
            projected_assets=get_projected_assets(accounts, projections),
            projected_liabilities=get_projected_liabilities(accounts, projections),
            projection_months=months,
        )
        return analysis, projections

    async def get_accounts_with_projections(
        self,
        months: Optional[int] = None,
        budget_id: Optional[str] = None,
        start_month: Optional[str] = None,
    ) -> AccountsWithProjections:
        """
        Project this profile's accounts.

        Args:
            months: Horizon, defaults to the configured projection months
            budget_id: Profile whose rules drive the projection (defaults to
                this profile), for "what if I lived on that budget" views
            start_month: First projected month, defaults to the current month

        Raises:
            NotFoundError: If the rules' profile does not exist
        """
        months = months if months is not None else self._settings.default_projection_months
        start_month = start_month or current_month()
        budget_id = budget_id or self.profile_id

        budget_profile = await self._get_profile(budget_id)
        accounts = await self.accounts.get_accounts()
        rules = await RuleManager(self._storage, budget_id).get_all_versions()

        analysis, projections = await self._net_worth_analysis(accounts, rules, months, start_month)

        return AccountsWithProjections(
            accounts=[
                AccountWithProjection(account=account, projection=projections[account.id])
                for account in accounts
            ],
            net_worth_analysis=analysis,
            budget_id=budget_profile.id,
            budget_name=budget_profile.name,
        )

    async def get_net_worth_analysis(
        self,
        months: Optional[int] = None,
        start_month: Optional[str] = None,
    ) -> NetWorthAnalysis:
        months = months if months is not None else self._settings.default_projection_months
        accounts = await self.accounts.get_accounts()
        rules = await self.rules.get_all_versions()
        analysis, _ = await self._net_worth_analysis(
            accounts, rules, months, start_month or current_month()
        )
        return analysis
