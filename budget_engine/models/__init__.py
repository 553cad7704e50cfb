"""
Data Models Package

This package contains all Pydantic models used by the budget engine.
All data flowing through the engine must conform to these schemas.
"""

from budget_engine.models.budget import (
    ASSET_ACCOUNT_TYPES,
    DEFAULT_CATEGORIES,
    LIABILITY_ACCOUNT_TYPES,
    Account,
    AccountsWithProjections,
    AccountType,
    AccountWithProjection,
    BillState,
    BudgetRule,
    Category,
    CategoryKind,
    Frequency,
    LedgerEntry,
    MonthlyState,
    MonthlyStateSummary,
    MonthSummary,
    NetWorthAnalysis,
    Profile,
    ProfileSummary,
    ProjectionResult,
    RuleDraft,
    RuleSummary,
    RuleType,
    RuleUpdate,
    SpendingState,
    ValidationIssue,
    ValidationResult,
)
from budget_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Budget models
    "ASSET_ACCOUNT_TYPES",
    "DEFAULT_CATEGORIES",
    "LIABILITY_ACCOUNT_TYPES",
    "Account",
    "AccountsWithProjections",
    "AccountType",
    "AccountWithProjection",
    "BillState",
    "BudgetRule",
    "Category",
    "CategoryKind",
    "Frequency",
    "LedgerEntry",
    "MonthlyState",
    "MonthlyStateSummary",
    "MonthSummary",
    "NetWorthAnalysis",
    "Profile",
    "ProfileSummary",
    "ProjectionResult",
    "RuleDraft",
    "RuleSummary",
    "RuleType",
    "RuleUpdate",
    "SpendingState",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
