"""
Audit Logger

DESIGN DECISION: Every change to a rule's version chain, the ledger and the
category lookup is logged. This provides:
1. A readable history of how a rule came to look the way it does
2. Debugging capability when a month's totals look wrong
3. Correlation of the several writes one edit can cause

The audit logger:
- Is async so it composes with the async storage layer
- Gracefully handles failures (a failed audit write never fails the edit)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_engine.models.audit import AuditEvent, AuditEventBuilder
from budget_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit table (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budget_engine.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_rule_created(
        self,
        rule_id: str,
        label: str,
        start_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_created(
            rule_id=rule_id,
            label=label,
            start_month=start_month,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_rule_corrected(
        self,
        rule_id: str,
        changed_fields: list[str],
        view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_corrected(
            rule_id=rule_id,
            changed_fields=changed_fields,
            view_month=view_month,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_rule_split(
        self,
        old_rule_id: str,
        new_rule_id: str,
        closed_at: Optional[str],
        view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a split: old version closed (or dropped), successor inserted."""
        await self.log(AuditEventBuilder.rule_split(
            old_rule_id=old_rule_id,
            new_rule_id=new_rule_id,
            closed_at=closed_at,
            view_month=view_month,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_rule_soft_deleted(
        self,
        rule_id: str,
        end_month: Optional[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_soft_deleted(
            rule_id=rule_id,
            end_month=end_month,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_rule_hard_deleted(
        self,
        rule_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rule_hard_deleted(
            rule_id=rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_entry_recorded(
        self,
        entry_id: str,
        rule_id: str,
        month_iso: str,
        amount: float,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_entry_recorded(
            entry_id=entry_id,
            rule_id=rule_id,
            month_iso=month_iso,
            amount=amount,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_ledger_entry_deleted(
        self,
        entry_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_entry_deleted(
            entry_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_category_updated(
        self,
        name: str,
        kind: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_updated(
            name=name,
            kind=kind,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_id: Optional[str],
        issues: list[dict],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            entity_id=entity_id,
            issues=issues,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., one rule edit).
    Pass it through all subsequent operations.
    """
    return uuid4()
