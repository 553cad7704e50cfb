"""
Audit Models for Budget Engine

Every change to rules, ledger entries and categories is recorded.
This provides:
1. Traceability of how a rule's version chain came to be
2. Debugging information when a month's numbers look wrong
3. Ability to reconstruct who changed what and from which month

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from budget_engine.models.budget import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Rule versioning
    RULE_CREATED = "rule_created"
    RULE_CORRECTED = "rule_corrected"
    RULE_SPLIT = "rule_split"
    RULE_SOFT_DELETED = "rule_soft_deleted"
    RULE_HARD_DELETED = "rule_hard_deleted"

    # Ledger
    LEDGER_ENTRY_RECORDED = "ledger_entry_recorded"
    LEDGER_ENTRY_DELETED = "ledger_entry_deleted"

    # Categories
    CATEGORY_UPDATED = "category_updated"

    # Boundary
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every state change creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'rule', 'ledger_entry', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="User whose data was touched"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one rule edit request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.rule_split(old_rule, new_rule, "2026-03")
        event = AuditEventBuilder.ledger_entry_recorded(entry)
    """

    @staticmethod
    def rule_created(
        rule_id: str,
        label: str,
        start_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_CREATED,
            entity_type="rule",
            entity_id=rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Rule created: {label} from {start_month}",
            details={
                "label": label,
                "start_month": start_month,
            },
        )

    @staticmethod
    def rule_corrected(
        rule_id: str,
        changed_fields: list[str],
        view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_CORRECTED,
            entity_type="rule",
            entity_id=rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Rule corrected in place for {view_month}",
            details={
                "changed_fields": changed_fields,
                "view_month": view_month,
            },
        )

    @staticmethod
    def rule_split(
        old_rule_id: str,
        new_rule_id: str,
        closed_at: Optional[str],
        view_month: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_SPLIT,
            entity_type="rule",
            entity_id=new_rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Rule split: new version from {view_month}",
            details={
                "previous_version_id": old_rule_id,
                "previous_version_closed_at": closed_at,
                "view_month": view_month,
            },
        )

    @staticmethod
    def rule_soft_deleted(
        rule_id: str,
        end_month: Optional[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_SOFT_DELETED,
            entity_type="rule",
            entity_id=rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Rule stopped after {end_month}" if end_month else "Rule removed before going live",
            details={
                "end_month": end_month,
            },
        )

    @staticmethod
    def rule_hard_deleted(
        rule_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RULE_HARD_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="rule",
            entity_id=rule_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Rule physically removed with its ledger entries",
        )

    @staticmethod
    def ledger_entry_recorded(
        entry_id: str,
        rule_id: str,
        month_iso: str,
        amount: float,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ENTRY_RECORDED,
            entity_type="ledger_entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Ledger entry recorded for {month_iso}: {amount:.2f}",
            details={
                "rule_id": rule_id,
                "month_iso": month_iso,
                "amount": amount,
            },
        )

    @staticmethod
    def ledger_entry_deleted(
        entry_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ENTRY_DELETED,
            entity_type="ledger_entry",
            entity_id=entry_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Ledger entry deleted",
        )

    @staticmethod
    def category_updated(
        name: str,
        kind: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=name,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Category {name} classified as {kind}",
            details={
                "kind": kind,
            },
        )

    @staticmethod
    def validation_failed(
        entity_id: Optional[str],
        issues: list[dict],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="rule",
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Rule validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
