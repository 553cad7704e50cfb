"""
Core Data Models for Budget Engine

These models define the schemas for all data flowing through the engine.
They are designed to:
1. Enforce type safety at runtime
2. Carry month-grain version ranges explicitly
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are plain floats with cents-scale rounding applied
to displayed totals. Liabilities are stored as NEGATIVE balances so that
all signed arithmetic composes without special-casing.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from budget_engine.utils.months import MONTH_PATTERN


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Supported account types."""
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    LOAN = "loan"
    INVESTMENT = "investment"


ASSET_ACCOUNT_TYPES = frozenset({
    AccountType.CHECKING,
    AccountType.SAVINGS,
    AccountType.INVESTMENT,
})

LIABILITY_ACCOUNT_TYPES = frozenset({
    AccountType.CREDIT_CARD,
    AccountType.LOAN,
})


class RuleType(str, Enum):
    """Direction of money for a budget rule."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    Recurrence frequency.

    Weekly and bi-weekly rules are counted against the calendar,
    anchored on the rule's start date.
    """
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CategoryKind(str, Enum):
    """
    How an expense shows up in the monthly view.

    BILL: fixed commitment, paid or unpaid
    SPENDING: variable envelope, spent vs. remaining
    """
    BILL = "bill"
    SPENDING = "spending"


# =============================================================================
# PROFILES AND ACCOUNTS
# =============================================================================

class Profile(BaseModel):
    """A named budget owned by a user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=200)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Account(BaseModel):
    """
    An asset or liability account.

    `starting_balance` is a base value, not a ledger-derived figure.
    Liabilities carry negative balances.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    profile_id: str
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    starting_balance: float = Field(
        ...,
        description="Opening balance (negative for liabilities)"
    )
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_asset(self) -> bool:
        return self.type in ASSET_ACCOUNT_TYPES


# =============================================================================
# BUDGET RULES (VERSIONED)
# =============================================================================

class BudgetRule(BaseModel):
    """
    One version of a budget rule.

    A logical rule ("my rent") is a chain of versions sharing a
    `lineage_id` whose month ranges partition time contiguously.
    A version is active in month M iff
    start_month <= M and (end_month is None or end_month >= M).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(default_factory=new_id)
    lineage_id: Optional[str] = Field(
        default=None,
        description="Stable id shared by every version of one logical rule"
    )
    user_id: str
    profile_id: str

    # What
    label: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., description="Amount per occurrence")
    type: RuleType
    account_id: Optional[str] = Field(
        default=None,
        description="Source account (expenses) or receiving account (income)"
    )
    to_account_id: Optional[str] = Field(
        default=None,
        description="Destination account for transfers and debt paydown"
    )
    category: str = Field(..., min_length=1, max_length=100)
    category_kind: Optional[CategoryKind] = None
    notes: str = ""

    # When
    is_recurring: bool = False
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = Field(
        default=None,
        description="Calendar anchor for weekly/bi-weekly/yearly recurrence"
    )
    start_month: str = Field(..., pattern=MONTH_PATTERN)
    end_month: Optional[str] = Field(
        default=None,
        pattern=MONTH_PATTERN,
        description="Inclusive last month, None while still active"
    )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_range(self) -> 'BudgetRule':
        """Version ranges can never be empty."""
        if self.end_month is not None and self.end_month < self.start_month:
            raise ValueError("end_month cannot be before start_month")
        if self.lineage_id is None:
            self.lineage_id = self.id
        return self

    def is_active_in(self, month: str) -> bool:
        if self.start_month > month:
            return False
        if self.end_month is not None and self.end_month < month:
            return False
        return True


class RuleDraft(BaseModel):
    """Fields supplied when a rule is first created."""
    model_config = ConfigDict(str_strip_whitespace=True)

    label: str
    amount: float
    type: RuleType
    account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    category: str
    category_kind: Optional[CategoryKind] = None
    notes: str = ""
    is_recurring: bool = False
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None


class RuleUpdate(BaseModel):
    """
    Partial update for a rule.

    Only fields that were explicitly set are applied, so passing
    `account_id=None` clears the account while omitting it keeps it.
    The version range is owned by RuleVersioning and is not editable here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    label: Optional[str] = None
    amount: Optional[float] = None
    type: Optional[RuleType] = None
    account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    category: Optional[str] = None
    category_kind: Optional[CategoryKind] = None
    notes: Optional[str] = None
    is_recurring: Optional[bool] = None
    frequency: Optional[Frequency] = None
    start_date: Optional[date] = None

    def changes(self) -> dict:
        """The explicitly provided fields."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# LEDGER AND CATEGORIES
# =============================================================================

class LedgerEntry(BaseModel):
    """An actual posting against one rule version in one month."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    profile_id: str
    month_iso: str = Field(..., pattern=MONTH_PATTERN)
    rule_id: str
    amount: float
    entry_date: date = Field(..., description="Calendar date of the posting")
    notes: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class Category(BaseModel):
    """Per-user category name -> kind lookup."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str
    name: str = Field(..., min_length=1, max_length=100)
    kind: CategoryKind
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


DEFAULT_CATEGORIES: tuple[tuple[str, CategoryKind], ...] = (
    ("Rent", CategoryKind.BILL),
    ("Mortgage", CategoryKind.BILL),
    ("Utilities", CategoryKind.BILL),
    ("Internet", CategoryKind.BILL),
    ("Insurance", CategoryKind.BILL),
    ("Subscriptions", CategoryKind.BILL),
    ("Groceries", CategoryKind.SPENDING),
    ("Dining Out", CategoryKind.SPENDING),
    ("Gas", CategoryKind.SPENDING),
    ("Shopping", CategoryKind.SPENDING),
    ("Entertainment", CategoryKind.SPENDING),
    ("Medical", CategoryKind.SPENDING),
)


# =============================================================================
# COMPUTED RESULTS
# =============================================================================

class ProjectionResult(BaseModel):
    """Forward balance projection for one account."""

    account_id: str
    starting_balance: float
    monthly_income: float = Field(..., description="Income in the first projected month")
    monthly_expenses: float = Field(..., description="Expenses in the first projected month")
    monthly_net: float
    projected_balance: float = Field(..., description="Balance after the whole horizon")
    months: int = Field(ge=0)


class MonthSummary(BaseModel):
    """Exact planned totals plus actual expense postings for one month."""

    total_income: float
    total_planned_expense: float
    total_actual_expense: float


class RuleSummary(BaseModel):
    """Approximate monthly totals over the currently active rules."""

    total_income: float
    total_expenses: float
    amount_left_to_allocate: float
    income_rules: list[BudgetRule] = Field(default_factory=list)
    expense_rules: list[BudgetRule] = Field(default_factory=list)


class BillState(BaseModel):
    """A fixed bill in the monthly view."""

    rule_id: str
    label: str
    planned: float
    actual: Optional[float] = Field(
        default=None,
        description="Posted amount, None until anything is posted"
    )
    is_paid: bool
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month taken from the rule's anchor date"
    )


class SpendingState(BaseModel):
    """A variable spending envelope in the monthly view."""

    rule_id: str
    label: str
    planned: float
    spent: float
    remaining: float
    transaction_count: int = Field(ge=0)

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


class MonthlyStateSummary(BaseModel):
    income: float
    total_planned_expenses: float
    total_actual_spent: float
    safe_to_spend: float


class MonthlyState(BaseModel):
    """UI-ready reconciliation of planned rules against actual postings."""

    month_iso: str = Field(..., pattern=MONTH_PATTERN)
    summary: MonthlyStateSummary
    bills: list[BillState] = Field(default_factory=list)
    spending: list[SpendingState] = Field(default_factory=list)


class ProfileSummary(BaseModel):
    profile_id: str
    profile_name: str
    net_worth: float
    total_income: float
    total_expenses: float
    amount_left_to_allocate: float
    account_count: int
    rule_count: int


class NetWorthAnalysis(BaseModel):
    current_net_worth: float
    current_assets: float
    current_liabilities: float
    projected_net_worth: float
    projected_assets: float
    projected_liabilities: float
    projection_months: int


class AccountWithProjection(BaseModel):
    account: Account
    projection: ProjectionResult


class AccountsWithProjections(BaseModel):
    accounts: list[AccountWithProjection] = Field(default_factory=list)
    net_worth_analysis: NetWorthAnalysis
    budget_id: str
    budget_name: str


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'unknown_account')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage rule validation.

    Stage 1: Schema validation (types, required fields, formats)
    Stage 2: Semantic validation (references into the profile)
    """

    validated_at: datetime = Field(default_factory=utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
