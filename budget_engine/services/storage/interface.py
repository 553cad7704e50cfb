"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against SQLite locally and PostgreSQL in production
2. Keep the engine decoupled from SQL
3. Pin down which writes must be atomic

The interface is intentionally narrow - we're not building a full ORM.
Just the reads and writes the engine needs, scoped by profile and user.
"""

from abc import ABC, abstractmethod
from typing import Optional

from budget_engine.models.audit import AuditEvent
from budget_engine.models.budget import (
    Account,
    BudgetRule,
    Category,
    CategoryKind,
    LedgerEntry,
    Profile,
    RuleType,
)


class BudgetStorageInterface(ABC):
    """
    Abstract interface for budget storage operations.

    Any storage implementation must implement these methods.
    Methods raise StorageError (or a subclass) on persistence failures.
    """

    # -------------------------------------------------------------------------
    # Profiles and accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_profile(self, profile: Profile) -> Profile:
        """Insert or replace a profile."""
        pass

    @abstractmethod
    async def get_profile(
        self,
        profile_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Profile]:
        """Get a profile, optionally restricted to one user."""
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> Account:
        """Insert or replace an account."""
        pass

    @abstractmethod
    async def get_account(self, account_id: str, profile_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def list_accounts(self, profile_id: str) -> list[Account]:
        """Accounts of a profile, oldest first."""
        pass

    # -------------------------------------------------------------------------
    # Rule versions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_rule(self, rule: BudgetRule) -> BudgetRule:
        """
        Insert a new rule version.

        Raises:
            DuplicateError: If a version with the same id exists
        """
        pass

    @abstractmethod
    async def get_rule(self, rule_id: str, user_id: str) -> Optional[BudgetRule]:
        """Get one version by id, only if it belongs to `user_id`."""
        pass

    @abstractmethod
    async def update_rule(self, rule: BudgetRule) -> BudgetRule:
        """
        Overwrite an existing version with the given field values.

        Raises:
            NotFoundError: If the version does not exist for rule.user_id
        """
        pass

    @abstractmethod
    async def list_rules(
        self,
        profile_id: str,
        user_id: Optional[str] = None,
    ) -> list[BudgetRule]:
        """Every version of every rule in the profile, oldest first."""
        pass

    @abstractmethod
    async def list_rules_for_month(
        self,
        profile_id: str,
        month: str,
        user_id: Optional[str] = None,
    ) -> list[BudgetRule]:
        """
        Versions active in `month`, ordered by creation time.

        Active means start_month <= month and
        (end_month IS NULL or end_month >= month).
        """
        pass

    @abstractmethod
    async def list_rule_versions(self, lineage_id: str, user_id: str) -> list[BudgetRule]:
        """All versions of one logical rule, ordered by start_month."""
        pass

    @abstractmethod
    async def split_rule(
        self,
        rule_id: str,
        user_id: str,
        close_at: Optional[str],
        successor: BudgetRule,
    ) -> BudgetRule:
        """
        Close a version and insert its successor ATOMICALLY.

        Sets end_month of `rule_id` to `close_at` and inserts `successor`.
        When `close_at` is None the version is replaced instead: its ledger
        entries are moved to `successor` and the old row is removed. Both writes commit together or not at all, so no
        reader sees zero or two versions claiming the same month.

        Returns:
            The stored successor
        """
        pass

    @abstractmethod
    async def delete_rule(self, rule_id: str, user_id: str) -> bool:
        """
        Physically delete a version and its ledger entries.

        Returns:
            True if a row was removed
        """
        pass

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        pass

    @abstractmethod
    async def update_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Raises:
            NotFoundError: If the entry does not exist for entry.user_id
        """
        pass

    @abstractmethod
    async def get_ledger_entry(self, entry_id: str, user_id: str) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    async def find_ledger_entry(
        self,
        rule_id: str,
        month_iso: str,
        profile_id: str,
        user_id: str,
    ) -> Optional[LedgerEntry]:
        """First entry posted against a rule in a month, if any."""
        pass

    @abstractmethod
    async def list_ledger_entries(
        self,
        profile_id: str,
        month_iso: str,
        user_id: Optional[str] = None,
    ) -> list[LedgerEntry]:
        """Entries posted in a month, in posting-date order."""
        pass

    @abstractmethod
    async def delete_ledger_entry(self, entry_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def sum_ledger_amounts(
        self,
        profile_id: str,
        month_iso: str,
        rule_type: RuleType,
    ) -> float:
        """
        Total posted in a month against rules of one type.

        Only entries whose rule belongs to the same profile count.
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_category_kinds(self, user_id: str) -> dict[str, CategoryKind]:
        """Category name -> kind lookup for one user."""
        pass

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[Category]:
        pass

    @abstractmethod
    async def upsert_category(self, category: Category) -> Category:
        """Insert a category or update the kind of an existing one (by name)."""
        pass

    @abstractmethod
    async def seed_default_categories(self, user_id: str) -> int:
        """
        Add the default categories a user does not have yet.

        Returns:
            Number of categories added
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or not visible to the caller)."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
