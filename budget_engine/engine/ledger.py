"""
Ledger Manager

Records what actually happened against the plan: bill payments and
variable spending transactions.

DESIGN DECISION: A bill has at most one "paid" posting per month, so
marking it paid again overwrites that posting. Spending transactions are
always appended, any number per month.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from budget_engine.audit import AuditLogger
from budget_engine.models.budget import BudgetRule, LedgerEntry, utcnow
from budget_engine.services.storage import BudgetStorageInterface, NotFoundError
from budget_engine.utils.months import first_day


class LedgerManager:
    """Bill payments and transactions for rules of one user."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger

    async def _get_rule(self, rule_id: str, profile_id: str, user_id: str) -> BudgetRule:
        rule = await self._storage.get_rule(rule_id, user_id)
        if rule is None or rule.profile_id != profile_id:
            raise NotFoundError(f"Rule not found: {rule_id}")
        return rule

    async def _audit_recorded(self, entry: LedgerEntry, correlation_id: Optional[UUID]) -> None:
        if self._audit:
            await self._audit.log_ledger_entry_recorded(
                entry_id=entry.id,
                rule_id=entry.rule_id,
                month_iso=entry.month_iso,
                amount=entry.amount,
                user_id=entry.user_id,
                correlation_id=correlation_id,
            )

    async def mark_bill_paid(
        self,
        user_id: str,
        profile_id: str,
        rule_id: str,
        month_iso: str,
        amount: Optional[float] = None,
        entry_date: Optional[date] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """
        Record a bill as paid for a month.

        Args:
            amount: Defaults to the rule's amount
            entry_date: Defaults to the first day of the month
            notes: Defaults to "Bill paid"

        Raises:
            NotFoundError: If the rule is not in this profile for this user
        """
        rule = await self._get_rule(rule_id, profile_id, user_id)

        fields = {
            "amount": amount if amount is not None else rule.amount,
            "entry_date": entry_date or first_day(month_iso),
            "notes": notes if notes is not None else "Bill paid",
        }

        existing = await self._storage.find_ledger_entry(rule_id, month_iso, profile_id, user_id)
        if existing:
            entry = existing.model_copy(update={**fields, "created_at": utcnow()})
            entry = await self._storage.update_ledger_entry(entry)
        else:
            entry = await self._storage.insert_ledger_entry(LedgerEntry(
                user_id=user_id,
                profile_id=profile_id,
                month_iso=month_iso,
                rule_id=rule_id,
                **fields,
            ))

        await self._audit_recorded(entry, correlation_id)
        return entry

    async def unmark_bill_paid(
        self,
        user_id: str,
        profile_id: str,
        rule_id: str,
        month_iso: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Remove every posting against a bill in a month.

        Returns:
            Number of postings removed
        """
        await self._get_rule(rule_id, profile_id, user_id)

        removed = 0
        for entry in await self._storage.list_ledger_entries(profile_id, month_iso, user_id):
            if entry.rule_id != rule_id:
                continue
            if await self._storage.delete_ledger_entry(entry.id, user_id):
                removed += 1
                if self._audit:
                    await self._audit.log_ledger_entry_deleted(
                        entry_id=entry.id,
                        user_id=user_id,
                        correlation_id=correlation_id,
                    )
        return removed

    async def add_transaction(
        self,
        user_id: str,
        profile_id: str,
        rule_id: str,
        month_iso: str,
        amount: float,
        entry_date: date,
        notes: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """Append a spending transaction against a rule."""
        await self._get_rule(rule_id, profile_id, user_id)

        entry = await self._storage.insert_ledger_entry(LedgerEntry(
            user_id=user_id,
            profile_id=profile_id,
            month_iso=month_iso,
            rule_id=rule_id,
            amount=amount,
            entry_date=entry_date,
            notes=notes,
        ))
        await self._audit_recorded(entry, correlation_id)
        return entry

    async def list_entries(
        self,
        user_id: str,
        profile_id: str,
        month_iso: str,
    ) -> list[LedgerEntry]:
        return await self._storage.list_ledger_entries(profile_id, month_iso, user_id)

    async def delete_entry(
        self,
        user_id: str,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: If the entry does not exist for this user
        """
        entry = await self._storage.get_ledger_entry(entry_id, user_id)
        if entry is None or not await self._storage.delete_ledger_entry(entry.id, user_id):
            raise NotFoundError(f"Ledger entry not found: {entry_id}")

        if self._audit:
            await self._audit.log_ledger_entry_deleted(
                entry_id=entry_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
