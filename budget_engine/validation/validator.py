"""
Two-Stage Rule Validation

DESIGN DECISION: The engine itself trusts its inputs. Well-formed months
and sane amounts are checked here, at the boundary, before anything
reaches RuleVersioning.

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- "YYYY-MM" month format, and the month inside the edited version's range
- Amount sign
- Frequency / recurrence consistency

STAGE 2 - SEMANTIC VALIDATION:
- Referenced accounts exist in the profile
- Transfers do not point back at their own source
- Fields the engine would silently ignore

Stage 2 needs storage and is skipped when stage 1 fails.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the caller decides.
"""

from typing import Optional, Union

from budget_engine.models.budget import (
    BudgetRule,
    Frequency,
    RuleDraft,
    RuleType,
    RuleUpdate,
    ValidationIssue,
    ValidationResult,
)
from budget_engine.services.storage import BudgetStorageInterface
from budget_engine.utils.months import is_valid_month_format, month_of


class RuleValidator:
    """
    Validates rule payloads through a two-stage pipeline.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (looks accounts up in storage)
    """

    def __init__(self, storage: BudgetStorageInterface):
        self._storage = storage

    def _validate_schema(self, fields: dict, month: str) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not is_valid_month_format(month):
            issues.append(ValidationIssue(
                field="month",
                issue_type="invalid_format",
                message=f"Month must be in YYYY-MM format, got {month!r}",
                severity="error",
            ))
        elif fields.get("end_month") is not None and fields["end_month"] < month:
            issues.append(ValidationIssue(
                field="month",
                issue_type="out_of_range",
                message=f"Rule ended {fields['end_month']}, it cannot be edited from {month}",
                severity="error",
            ))

        if not (fields.get("label") or "").strip():
            issues.append(ValidationIssue(
                field="label",
                issue_type="missing",
                message="Label is required",
                severity="error",
            ))

        if not (fields.get("category") or "").strip():
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))

        amount = fields.get("amount")
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative, use the rule type for direction",
                severity="error",
            ))
        elif amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        frequency = fields.get("frequency")
        if fields.get("is_recurring") and frequency is None:
            issues.append(ValidationIssue(
                field="frequency",
                issue_type="missing",
                message="Recurring rule has no frequency and will be treated as monthly",
                severity="warning",
            ))
        if not fields.get("is_recurring") and frequency is not None:
            issues.append(ValidationIssue(
                field="frequency",
                issue_type="ignored",
                message="Frequency is ignored for one-time rules",
                severity="info",
            ))

        if (
            fields.get("is_recurring")
            and frequency in (Frequency.WEEKLY, Frequency.BI_WEEKLY)
            and fields.get("start_date") is None
        ):
            issues.append(ValidationIssue(
                field="start_date",
                issue_type="missing",
                message="No anchor date, occurrences will be counted from the first of the start month",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _validate_semantic(
        self,
        fields: dict,
        month: str,
        profile_id: str,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        account_id = fields.get("account_id")
        to_account_id = fields.get("to_account_id")

        for field_name, ref in (("account_id", account_id), ("to_account_id", to_account_id)):
            if ref is not None and await self._storage.get_account(ref, profile_id) is None:
                issues.append(ValidationIssue(
                    field=field_name,
                    issue_type="unknown_account",
                    message=f"Account {ref} does not exist in this profile",
                    severity="error",
                ))

        if account_id is not None and account_id == to_account_id:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="inconsistent",
                message="A transfer cannot go to its own source account",
                severity="error",
            ))

        if to_account_id is not None and fields.get("type") == RuleType.INCOME:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="ignored",
                message="Destination account is only used by expense rules",
                severity="warning",
            ))

        start_date = fields.get("start_date")
        if start_date is not None and is_valid_month_format(month) and month_of(start_date) > month:
            issues.append(ValidationIssue(
                field="start_date",
                issue_type="inconsistent",
                message=f"Anchor date {start_date} is after {month}",
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _run(self, fields: dict, month: str, profile_id: str) -> ValidationResult:
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(fields, month)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = await self._validate_semantic(fields, month, profile_id)
            all_issues.extend(semantic_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
        )

    async def validate_draft(
        self,
        draft: RuleDraft,
        profile_id: str,
        start_month: str,
    ) -> ValidationResult:
        """Validate a new rule starting at `start_month`."""
        return await self._run(draft.model_dump(), start_month, profile_id)

    async def validate_update(
        self,
        existing: BudgetRule,
        updates: Union[RuleUpdate, dict],
        current_view_month: str,
    ) -> ValidationResult:
        """Validate the rule as it would look after applying `updates`."""
        if not isinstance(updates, RuleUpdate):
            updates = RuleUpdate(**updates)
        fields = {**existing.model_dump(), **updates.changes()}
        return await self._run(fields, current_view_month, existing.profile_id)

    def get_summary(self, result: ValidationResult) -> Optional[str]:
        """One line per error/warning, or None when there is nothing to report."""
        lines = [
            f"{issue.severity}: {issue.field}: {issue.message}"
            for issue in result.issues
            if issue.severity in ("error", "warning")
        ]
        return "\n".join(lines) if lines else None
