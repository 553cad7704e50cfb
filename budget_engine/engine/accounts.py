"""
Account Manager

Read side of a profile's accounts.

Balances are base values (`starting_balance`), not derived from the
ledger. Liabilities are negative, so net worth is a plain sum.
"""

from typing import Optional

from budget_engine.models.budget import ASSET_ACCOUNT_TYPES, LIABILITY_ACCOUNT_TYPES, Account
from budget_engine.services.storage import BudgetStorageInterface


class AccountManager:
    """Accounts of one profile and their totals."""

    def __init__(self, storage: BudgetStorageInterface, profile_id: str):
        self._storage = storage
        self.profile_id = profile_id

    async def get_accounts(self) -> list[Account]:
        """All accounts, oldest first."""
        return await self._storage.list_accounts(self.profile_id)

    async def get_account_by_id(self, account_id: str) -> Optional[Account]:
        return await self._storage.get_account(account_id, self.profile_id)

    async def account_exists(self, account_id: str) -> bool:
        return await self.get_account_by_id(account_id) is not None

    async def get_asset_accounts(self) -> list[Account]:
        return [a for a in await self.get_accounts() if a.type in ASSET_ACCOUNT_TYPES]

    async def get_liability_accounts(self) -> list[Account]:
        return [a for a in await self.get_accounts() if a.type in LIABILITY_ACCOUNT_TYPES]

    async def get_total_assets(self) -> float:
        return sum(a.starting_balance for a in await self.get_asset_accounts())

    async def get_total_liabilities(self) -> float:
        """Sum of liability balances (a negative number or zero)."""
        return sum(a.starting_balance for a in await self.get_liability_accounts())

    async def get_net_worth(self) -> float:
        return sum(a.starting_balance for a in await self.get_accounts())

    async def get_account_count(self) -> int:
        return len(await self.get_accounts())
