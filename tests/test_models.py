"""
Tests for Budget Engine models

Test strategy:
1. Unit tests for individual components (models, calculations, validators)
2. Store-backed tests against in-memory SQLite (see conftest.py)
3. No network access in tests
"""

import pytest
from uuid import uuid4

from budget_engine.models.budget import (
    Account,
    AccountType,
    BudgetRule,
    CategoryKind,
    DEFAULT_CATEGORIES,
    Frequency,
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

from conftest import make_rule


class TestBudgetRule:
    """Tests for the versioned rule model."""

    def test_new_rule_is_its_own_lineage(self):
        """A rule without a lineage starts one with its own id."""
        rule = make_rule()
        assert rule.lineage_id == rule.id

    def test_explicit_lineage_is_kept(self):
        rule = make_rule(lineage_id="lineage-1")
        assert rule.lineage_id == "lineage-1"

    def test_end_before_start_rejected(self):
        """Version ranges can never be empty."""
        with pytest.raises(ValueError, match="end_month cannot be before start_month"):
            make_rule(start_month="2026-05", end_month="2026-04")

    def test_single_month_range_allowed(self):
        rule = make_rule(start_month="2026-05", end_month="2026-05")
        assert rule.is_active_in("2026-05")

    def test_month_format_enforced(self):
        """Months must be zero-padded YYYY-MM."""
        with pytest.raises(ValueError):
            make_rule(start_month="2026-5")
        with pytest.raises(ValueError):
            make_rule(start_month="2026-13")

    def test_is_active_in(self):
        rule = make_rule(start_month="2026-03", end_month="2026-06")
        assert not rule.is_active_in("2026-02")
        assert rule.is_active_in("2026-03")
        assert rule.is_active_in("2026-06")
        assert not rule.is_active_in("2026-07")

    def test_open_ended_rule_active_forever(self):
        rule = make_rule(start_month="2026-03")
        assert rule.is_active_in("2099-12")

    def test_frequency_values(self):
        """Frequencies serialize the way they are stored."""
        assert Frequency.BI_WEEKLY.value == "bi-weekly"
        assert make_rule(frequency="bi-weekly").frequency == Frequency.BI_WEEKLY

    def test_label_whitespace_stripped(self):
        assert make_rule(label="  Rent  ").label == "Rent"


class TestRuleUpdate:
    """Tests for partial updates."""

    def test_only_set_fields_are_changes(self):
        update = RuleUpdate(amount=6000)
        assert update.changes() == {"amount": 6000}

    def test_explicit_none_is_a_change(self):
        """Passing None clears a field, omitting it keeps it."""
        update = RuleUpdate(account_id=None)
        assert update.changes() == {"account_id": None}

    def test_empty_update(self):
        assert RuleUpdate().changes() == {}


class TestAccountsAndStates:

    def test_asset_classification(self):
        checking = Account(user_id="u", profile_id="p", name="Checking",
                           type=AccountType.CHECKING, starting_balance=100)
        loan = Account(user_id="u", profile_id="p", name="Loan",
                       type=AccountType.LOAN, starting_balance=-100)
        assert checking.is_asset
        assert not loan.is_asset

    def test_spending_over_budget(self):
        state = SpendingState(rule_id="r", label="Groceries", planned=400,
                              spent=450, remaining=-50, transaction_count=3)
        assert state.is_over_budget

    def test_default_categories(self):
        """Default lookup splits fixed bills from variable spending."""
        kinds = dict(DEFAULT_CATEGORIES)
        assert kinds["Rent"] == CategoryKind.BILL
        assert kinds["Groceries"] == CategoryKind.SPENDING
        assert len(kinds) == 12


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RULE_CREATED,
            description="Rule created",
        )
        assert event.event_type == AuditEventType.RULE_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.RULE_SPLIT,
            entity_id="rule-2",
            correlation_id=correlation_id,
            description="Rule split",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "rule_split"
        assert log_dict["entity_id"] == "rule-2"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_builder_rule_split(self):
        """The split event points at the successor and remembers the old version."""
        event = AuditEventBuilder.rule_split(
            old_rule_id="rule-1",
            new_rule_id="rule-2",
            closed_at="2026-06",
            view_month="2026-07",
            user_id="user-1",
        )
        assert event.entity_id == "rule-2"
        assert event.details["previous_version_id"] == "rule-1"
        assert event.details["previous_version_closed_at"] == "2026-06"

    def test_builder_hard_delete_is_warning(self):
        event = AuditEventBuilder.rule_hard_deleted(rule_id="rule-1", user_id="user-1")
        assert event.severity == AuditSeverity.WARNING


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing",
                                message="Amount is required", severity="error"),
                ValidationIssue(field="frequency", issue_type="missing",
                                message="No frequency", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(field="amount", issue_type="suspicious_value",
                                message="Amount is zero", severity="warning"),
            ],
        )
        assert not result.has_errors
        assert result.error_count == 0

    def test_issue_severity_restricted(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
