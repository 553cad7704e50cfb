"""
Rule Versioning

Month-grain versioning of budget rules.

DESIGN DECISION: Editing a rule never rewrites a month the user has
already lived through. What an edit does depends on where the edited
version starts relative to the month being viewed:

- start_month == view month: immediate correction, updated in place.
  No other month depends on the old values.
- otherwise: split. The old version is closed at the month before the
  view month and a successor carrying the merged fields starts at the
  view month and ends where the old version ended.

Both writes of a split go through `split_rule`, which the storage layer
commits as one transaction. When the old version never went live it is
replaced, and its ledger postings move to the successor.

A version cannot be edited from a month after its end_month: that month
is governed by a later version, or by nothing.

Failure semantics: a missing rule raises NotFoundError, every other
storage failure propagates unchanged. Nothing is retried.
"""

from typing import Optional, Union
from uuid import UUID

import structlog

from budget_engine.audit import AuditLogger
from budget_engine.models.budget import BudgetRule, RuleDraft, RuleUpdate, new_id, utcnow
from budget_engine.services.storage import BudgetStorageInterface, NotFoundError
from budget_engine.utils.months import previous_month


logger = structlog.get_logger(__name__)

# The version range is owned by this module, never by an update payload
_RANGE_FIELDS = {"id", "lineage_id", "user_id", "profile_id", "start_month", "end_month", "created_at", "updated_at"}


class RuleVersioning:
    """
    State machine for temporal rule edits.

    Usage:
        versioning = RuleVersioning(storage, audit_logger)
        rule = await versioning.upsert_rule(rule_id, RuleUpdate(amount=6000), "2026-07", user_id)
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger

    async def _get_existing(self, rule_id: str, user_id: str) -> BudgetRule:
        rule = await self._storage.get_rule(rule_id, user_id)
        if rule is None:
            raise NotFoundError(f"Rule not found: {rule_id}")
        return rule

    @staticmethod
    def _changes(updates: Union[RuleUpdate, dict]) -> dict:
        if isinstance(updates, RuleUpdate):
            changes = updates.changes()
        else:
            changes = RuleUpdate(**updates).changes()
        return {k: v for k, v in changes.items() if k not in _RANGE_FIELDS}

    async def create_rule(
        self,
        draft: RuleDraft,
        profile_id: str,
        user_id: str,
        start_month: str,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetRule:
        """Insert the first, open-ended version of a new rule."""
        rule = BudgetRule(
            **draft.model_dump(),
            user_id=user_id,
            profile_id=profile_id,
            start_month=start_month,
        )
        stored = await self._storage.insert_rule(rule)

        if self._audit:
            await self._audit.log_rule_created(
                rule_id=stored.id,
                label=stored.label,
                start_month=stored.start_month,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return stored

    async def upsert_rule(
        self,
        rule_id: str,
        updates: Union[RuleUpdate, dict],
        current_view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetRule:
        """
        Apply an edit made while viewing `current_view_month`.

        Returns:
            The version that governs `current_view_month` after the edit

        Raises:
            NotFoundError: If the rule does not exist for this user
            ValueError: If the version ended before `current_view_month`
        """
        existing = await self._get_existing(rule_id, user_id)
        changes = self._changes(updates)

        if existing.end_month is not None and existing.end_month < current_view_month:
            raise ValueError(
                f"Rule {rule_id} ends {existing.end_month}, before the viewed month {current_view_month}"
            )

        if existing.start_month == current_view_month:
            return await self._update_in_place(existing, changes, current_view_month, correlation_id)
        return await self._split(existing, changes, current_view_month, correlation_id)

    async def _update_in_place(
        self,
        existing: BudgetRule,
        changes: dict,
        view_month: str,
        correlation_id: Optional[UUID],
    ) -> BudgetRule:
        updated = BudgetRule.model_validate({
            **existing.model_dump(),
            **changes,
            "updated_at": utcnow(),
        })
        stored = await self._storage.update_rule(updated)

        logger.debug("rule_corrected", rule_id=existing.id, fields=sorted(changes))
        if self._audit:
            await self._audit.log_rule_corrected(
                rule_id=existing.id,
                changed_fields=sorted(changes),
                view_month=view_month,
                user_id=existing.user_id,
                correlation_id=correlation_id,
            )
        return stored

    async def _split(
        self,
        existing: BudgetRule,
        changes: dict,
        view_month: str,
        correlation_id: Optional[UUID],
    ) -> BudgetRule:
        close_at: Optional[str] = previous_month(view_month)
        if existing.end_month is not None and existing.end_month < close_at:
            close_at = existing.end_month
        if close_at < existing.start_month:
            # Edited from a month before the version starts: it never went
            # live, so it is replaced rather than closed to an empty range
            close_at = None

        timestamp = utcnow()
        successor = BudgetRule.model_validate({
            **existing.model_dump(),
            **changes,
            "id": new_id(),
            "lineage_id": existing.lineage_id,
            "start_month": view_month,
            "end_month": existing.end_month,
            "created_at": timestamp,
            "updated_at": timestamp,
        })
        stored = await self._storage.split_rule(existing.id, existing.user_id, close_at, successor)

        logger.debug(
            "rule_split",
            old_rule_id=existing.id,
            new_rule_id=stored.id,
            closed_at=close_at,
        )
        if self._audit:
            await self._audit.log_rule_split(
                old_rule_id=existing.id,
                new_rule_id=stored.id,
                closed_at=close_at,
                view_month=view_month,
                user_id=existing.user_id,
                correlation_id=correlation_id,
            )
        return stored

    async def soft_delete_rule(
        self,
        rule_id: str,
        current_view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Stop a rule from `current_view_month` onward.

        Months before the view month keep the rule. A version that has not
        started by the view month has no such months and is removed along
        with its ledger postings, exactly as hard_delete_rule would: every
        month they were posted in is one the rule no longer plans.

        Raises:
            NotFoundError: If the rule does not exist for this user
        """
        existing = await self._get_existing(rule_id, user_id)
        end_month: Optional[str] = previous_month(current_view_month)

        if end_month < existing.start_month:
            await self._storage.delete_rule(rule_id, user_id)
            end_month = None
        else:
            if existing.end_month is not None and existing.end_month < end_month:
                end_month = existing.end_month
            closed = existing.model_copy(update={"end_month": end_month, "updated_at": utcnow()})
            await self._storage.update_rule(closed)

        if self._audit:
            await self._audit.log_rule_soft_deleted(
                rule_id=rule_id,
                end_month=end_month,
                user_id=user_id,
                correlation_id=correlation_id,
            )

    async def hard_delete_rule(
        self,
        rule_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Physically remove one version and its ledger entries.

        Safe to call for a rule that no longer exists.

        Returns:
            True if a version was removed
        """
        deleted = await self._storage.delete_rule(rule_id, user_id)
        if deleted and self._audit:
            await self._audit.log_rule_hard_deleted(
                rule_id=rule_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def get_rule_history(self, rule_id: str, user_id: str) -> list[BudgetRule]:
        """Every version sharing the rule's lineage, ordered by start_month."""
        existing = await self._get_existing(rule_id, user_id)
        return await self._storage.list_rule_versions(existing.lineage_id, user_id)
