"""Tests for bill payments and spending transactions."""

from datetime import date

import pytest

from budget_engine.audit import AuditLogger
from budget_engine.engine import LedgerManager
from budget_engine.models.audit import AuditEventType
from budget_engine.models.budget import Profile, RuleType
from budget_engine.services.storage import NotFoundError

from conftest import OTHER_USER_ID, USER_ID


MONTH = "2026-03"


@pytest.fixture
def ledger(storage, audit_storage):
    return LedgerManager(storage, AuditLogger(audit_storage))


@pytest.fixture
async def rent(storage, rule_factory):
    return await storage.insert_rule(rule_factory(
        label="Rent", amount=1200, type=RuleType.EXPENSE, category="Rent",
    ))


class TestMarkBillPaid:

    async def test_defaults(self, ledger, rent, profile):
        entry = await ledger.mark_bill_paid(USER_ID, profile.id, rent.id, MONTH)

        assert entry.amount == 1200
        assert entry.entry_date == date(2026, 3, 1)
        assert entry.notes == "Bill paid"
        assert entry.month_iso == MONTH

    async def test_marking_twice_overwrites(self, ledger, rent, profile):
        first = await ledger.mark_bill_paid(USER_ID, profile.id, rent.id, MONTH)
        second = await ledger.mark_bill_paid(
            USER_ID, profile.id, rent.id, MONTH, amount=1250, entry_date=date(2026, 3, 4),
        )

        assert second.id == first.id
        entries = await ledger.list_entries(USER_ID, profile.id, MONTH)
        assert len(entries) == 1
        assert entries[0].amount == 1250
        assert entries[0].entry_date == date(2026, 3, 4)

    async def test_rule_from_other_profile(self, ledger, rent, storage):
        other = await storage.save_profile(Profile(user_id=USER_ID, name="Other"))
        with pytest.raises(NotFoundError):
            await ledger.mark_bill_paid(USER_ID, other.id, rent.id, MONTH)

    async def test_rule_of_other_user(self, ledger, rent, profile):
        with pytest.raises(NotFoundError):
            await ledger.mark_bill_paid(OTHER_USER_ID, profile.id, rent.id, MONTH)

    async def test_audited(self, ledger, rent, profile, audit_storage):
        entry = await ledger.mark_bill_paid(USER_ID, profile.id, rent.id, MONTH)
        events = await audit_storage.get_events_by_entity("ledger_entry", entry.id)
        assert events[0].event_type == AuditEventType.LEDGER_ENTRY_RECORDED


class TestUnmark:

    async def test_removes_all_postings_for_rule(self, ledger, rent, storage, rule_factory, profile):
        groceries = await storage.insert_rule(rule_factory(label="Groceries", type=RuleType.EXPENSE))
        await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 600, date(2026, 3, 1))
        await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 600, date(2026, 3, 15))
        await ledger.add_transaction(USER_ID, profile.id, groceries.id, MONTH, 80, date(2026, 3, 2))

        assert await ledger.unmark_bill_paid(USER_ID, profile.id, rent.id, MONTH) == 2

        remaining = await ledger.list_entries(USER_ID, profile.id, MONTH)
        assert [e.rule_id for e in remaining] == [groceries.id]

    async def test_nothing_to_unmark(self, ledger, rent, profile):
        assert await ledger.unmark_bill_paid(USER_ID, profile.id, rent.id, MONTH) == 0


class TestTransactions:

    async def test_transactions_append(self, ledger, rent, profile):
        await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 30, date(2026, 3, 9), "Coffee")
        await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 45, date(2026, 3, 2))

        entries = await ledger.list_entries(USER_ID, profile.id, MONTH)
        assert [e.amount for e in entries] == [45, 30]
        assert entries[1].notes == "Coffee"

    async def test_delete_entry(self, ledger, rent, profile):
        entry = await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 30, date(2026, 3, 9))
        await ledger.delete_entry(USER_ID, entry.id)
        assert await ledger.list_entries(USER_ID, profile.id, MONTH) == []

    async def test_delete_missing_entry(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.delete_entry(USER_ID, "missing")

    async def test_delete_other_users_entry(self, ledger, rent, profile):
        entry = await ledger.add_transaction(USER_ID, profile.id, rent.id, MONTH, 30, date(2026, 3, 9))
        with pytest.raises(NotFoundError):
            await ledger.delete_entry(OTHER_USER_ID, entry.id)
