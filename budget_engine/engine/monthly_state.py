"""
Monthly State Resolver

Combines budget rules and ledger entries into one UI-ready view of a month.

Each expense rule is shown either as a bill (paid / unpaid) or as a
spending envelope (spent / remaining). The classification comes from, in
order: the rule's own category_kind, the user's category lookup, the
configured default.

DESIGN DECISION: A bill counts as paid as soon as anything is posted
against it in the month, whatever the amount. Its actual is the sum of
every posting in the month, not only the first one, so split payments
and top-ups show in full (400 + 500 + 200 against 1000 reads 1100).

Safe-to-spend reserves the planned amount of every unpaid bill; paid
bills are already inside the actual-spent total and are not reserved
twice.
"""

from collections import defaultdict
from typing import Optional
from uuid import UUID

from budget_engine.audit import AuditLogger
from budget_engine.config import EngineSettings, get_settings
from budget_engine.engine.calculation import planned_amount_for_month, round_currency
from budget_engine.models.budget import (
    BillState,
    BudgetRule,
    Category,
    CategoryKind,
    LedgerEntry,
    MonthlyState,
    MonthlyStateSummary,
    RuleType,
    SpendingState,
)
from budget_engine.services.storage import BudgetStorageInterface


class MonthlyStateResolver:
    """
    Builds MonthlyState for a profile and month.

    Also owns the category lookup that drives bill/spending classification.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        settings: Optional[EngineSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().engine
        self._audit = audit_logger

    def classify(self, rule: BudgetRule, category_kinds: dict[str, CategoryKind]) -> CategoryKind:
        if rule.category_kind is not None:
            return rule.category_kind
        if rule.category in category_kinds:
            return category_kinds[rule.category]
        return CategoryKind(self._settings.default_category_kind)

    async def get_monthly_state(self, profile_id: str, month_iso: str, user_id: str) -> MonthlyState:
        rules = await self._storage.list_rules_for_month(profile_id, month_iso, user_id)
        entries = await self._storage.list_ledger_entries(profile_id, month_iso, user_id)
        category_kinds = await self._storage.get_category_kinds(user_id)

        entries_by_rule: dict[str, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            entries_by_rule[entry.rule_id].append(entry)

        income = sum(
            planned_amount_for_month(rule, month_iso)
            for rule in rules
            if rule.type == RuleType.INCOME
        )

        bills: list[BillState] = []
        spending: list[SpendingState] = []
        total_planned_expenses = 0.0
        unpaid_bills = 0.0

        for rule in rules:
            if rule.type != RuleType.EXPENSE:
                continue

            planned = planned_amount_for_month(rule, month_iso)
            total_planned_expenses += planned
            rule_entries = entries_by_rule.get(rule.id, [])
            posted = sum(entry.amount for entry in rule_entries)

            if self.classify(rule, category_kinds) == CategoryKind.BILL:
                is_paid = len(rule_entries) > 0
                if not is_paid:
                    unpaid_bills += planned
                bills.append(BillState(
                    rule_id=rule.id,
                    label=rule.label,
                    planned=round_currency(planned),
                    actual=round_currency(posted) if is_paid else None,
                    is_paid=is_paid,
                    due_day=rule.start_date.day if rule.start_date else None,
                ))
            else:
                spending.append(SpendingState(
                    rule_id=rule.id,
                    label=rule.label,
                    planned=round_currency(planned),
                    spent=round_currency(posted),
                    remaining=round_currency(planned - posted),
                    transaction_count=len(rule_entries),
                ))

        total_actual_spent = sum(entry.amount for entry in entries)

        return MonthlyState(
            month_iso=month_iso,
            summary=MonthlyStateSummary(
                income=round_currency(income),
                total_planned_expenses=round_currency(total_planned_expenses),
                total_actual_spent=round_currency(total_actual_spent),
                safe_to_spend=round_currency(income - (total_actual_spent + unpaid_bills)),
            ),
            bills=bills,
            spending=spending,
        )

    async def list_categories(self, user_id: str) -> list[Category]:
        return await self._storage.list_categories(user_id)

    async def set_category_kind(
        self,
        user_id: str,
        name: str,
        kind: CategoryKind,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """Classify a category name as bill or spending for this user."""
        category = await self._storage.upsert_category(Category(user_id=user_id, name=name, kind=kind))
        if self._audit:
            await self._audit.log_category_updated(
                name=category.name,
                kind=category.kind.value,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return category
