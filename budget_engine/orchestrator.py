"""
Main Orchestrator for the Budget Engine

This module ties together all the components and defines the
end-to-end rule editing flow:

    payload → validate → version (create / correct / split / stop) → audit

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches RuleVersioning without passing validation
- Every change is audited with one correlation id per user action
- Store failures are recorded, then propagated unchanged

The store is constructed and initialized explicitly here; no module of
the engine holds a global database handle.
"""

from typing import Optional, Union
from uuid import UUID

from budget_engine.audit import AuditLogger, create_correlation_id
from budget_engine.config import EngineSettings, Settings, get_settings
from budget_engine.engine import LedgerManager, MonthlyStateResolver, RuleVersioning
from budget_engine.models.budget import BudgetRule, RuleDraft, RuleUpdate, ValidationResult
from budget_engine.services.storage import (
    BudgetStorageInterface,
    NotFoundError,
    SqlAuditStorage,
    SqlBudgetStorage,
    SqlClient,
    StorageError,
)
from budget_engine.validation import RuleValidator


class RuleValidationError(ValueError):
    """A rule payload failed validation; carries the full result."""

    def __init__(self, result: ValidationResult, message: Optional[str] = None):
        self.result = result
        super().__init__(message or f"Rule validation failed with {result.error_count} errors")


class RuleEditFlow:
    """
    Orchestrates rule creation and edits.

    Flow:
    1. Validate → Two-stage validation of the resulting rule
    2. Version → In-place correction or split, decided by the view month
    3. Audit → Every write recorded under one correlation id
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        versioning: Optional[RuleVersioning] = None,
        validator: Optional[RuleValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._versioning = versioning or RuleVersioning(storage, audit_logger)
        self._validator = validator or RuleValidator(storage)
        self._settings = settings or get_settings().engine

    async def _reject(
        self,
        result: ValidationResult,
        entity_id: Optional[str],
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                entity_id=entity_id,
                issues=issues,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        raise RuleValidationError(result, self._validator.get_summary(result))

    async def _record_failure(self, operation: str, error: StorageError, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation},
                correlation_id=correlation_id,
            )

    async def create_rule(
        self,
        draft: RuleDraft,
        profile_id: str,
        user_id: str,
        start_month: str,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetRule:
        """
        Validate and insert a new rule.

        Raises:
            RuleValidationError: If the draft has error-level issues
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate_draft(draft, profile_id, start_month)
        if result.has_errors:
            await self._reject(result, None, user_id, correlation_id)

        try:
            if self._settings.seed_default_categories:
                await self._storage.seed_default_categories(user_id)
            return await self._versioning.create_rule(
                draft, profile_id, user_id, start_month, correlation_id
            )
        except StorageError as e:
            await self._record_failure("create_rule", e, correlation_id)
            raise

    async def edit_rule(
        self,
        rule_id: str,
        updates: Union[RuleUpdate, dict],
        current_view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetRule:
        """
        Validate and apply an edit made while viewing `current_view_month`.

        Returns:
            The version governing `current_view_month`

        Raises:
            NotFoundError: If the rule does not exist for this user
            RuleValidationError: If the edited rule would be invalid
        """
        correlation_id = correlation_id or create_correlation_id()

        existing = await self._storage.get_rule(rule_id, user_id)
        if existing is None:
            raise NotFoundError(f"Rule not found: {rule_id}")

        result = await self._validator.validate_update(existing, updates, current_view_month)
        if result.has_errors:
            await self._reject(result, rule_id, user_id, correlation_id)

        try:
            return await self._versioning.upsert_rule(
                rule_id, updates, current_view_month, user_id, correlation_id
            )
        except NotFoundError:
            raise
        except StorageError as e:
            await self._record_failure("edit_rule", e, correlation_id)
            raise

    async def stop_rule(
        self,
        rule_id: str,
        current_view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Stop a rule from the view month onward (history is kept)."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._versioning.soft_delete_rule(rule_id, current_view_month, user_id, correlation_id)
        except NotFoundError:
            raise
        except StorageError as e:
            await self._record_failure("stop_rule", e, correlation_id)
            raise

    async def remove_rule(
        self,
        rule_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Physically remove a version. Used for cleanup, not normal deletion."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            return await self._versioning.hard_delete_rule(rule_id, user_id, correlation_id)
        except StorageError as e:
            await self._record_failure("remove_rule", e, correlation_id)
            raise

    async def get_history(self, rule_id: str, user_id: str) -> list[BudgetRule]:
        return await self._versioning.get_rule_history(rule_id, user_id)


def create_app_components(
    settings: Optional[Settings] = None,
    client: Optional[SqlClient] = None,
) -> tuple[RuleEditFlow, LedgerManager, MonthlyStateResolver, SqlBudgetStorage, SqlClient]:
    """
    Factory function to create all application components.

    Connects to the configured database and creates missing tables.

    Args:
        settings: Settings to build from, defaults to get_settings()
        client: An already constructed client (tests pass an in-memory one)

    Returns:
        (rule_edit_flow, ledger_manager, monthly_state_resolver, storage, sql_client)

    Raises:
        ConnectionError: If the database cannot be reached after retries
    """
    settings = settings or get_settings()
    engine_settings = settings.engine

    client = client or SqlClient(settings.database)
    client.initialize()

    storage = SqlBudgetStorage(client)
    audit_logger = AuditLogger(SqlAuditStorage(client))

    rule_edit_flow = RuleEditFlow(
        storage=storage,
        audit_logger=audit_logger,
        settings=engine_settings,
    )
    ledger_manager = LedgerManager(storage, audit_logger)
    monthly_state = MonthlyStateResolver(storage, engine_settings, audit_logger)

    return rule_edit_flow, ledger_manager, monthly_state, storage, client
