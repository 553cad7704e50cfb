"""
SQL Storage Implementation

DESIGN DECISION: A relational store is used as the storage backend because:
1. The active-in-month predicate is a plain range query
2. Splitting a rule touches two rows that must commit together
3. SQLite works out of the box, PostgreSQL works by changing the URL

The implementation uses SQLAlchemy Core rather than the ORM: rows are
converted to and from our pydantic models explicitly, the same way every
other storage backend would have to.

TRADEOFFS:
- Engine calls are synchronous inside async methods (fine for one
  profile's worth of rows per request)
- Only connection establishment is retried; everything else fails fast
"""

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    func,
    insert,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from budget_engine.config import DatabaseSettings, get_settings
from budget_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budget_engine.models.budget import (
    DEFAULT_CATEGORIES,
    Account,
    AccountType,
    BudgetRule,
    Category,
    CategoryKind,
    Frequency,
    LedgerEntry,
    Profile,
    RuleType,
    utcnow,
)
from budget_engine.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)

metadata = MetaData()

profiles_table = Table(
    "profiles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

accounts_table = Table(
    "accounts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("profile_id", String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("type", String(20), nullable=False),
    Column("starting_balance", Float, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "type IN ('checking', 'savings', 'credit_card', 'loan', 'investment')",
        name="ck_accounts_type",
    ),
)

budget_rules_table = Table(
    "budget_rules",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("lineage_id", String(36), nullable=False, index=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("profile_id", String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
    Column("label", String(200), nullable=False),
    Column("amount", Float, nullable=False),
    Column("type", String(10), nullable=False),
    Column("account_id", String(36), ForeignKey("accounts.id", ondelete="SET NULL")),
    Column("to_account_id", String(36), ForeignKey("accounts.id", ondelete="SET NULL")),
    Column("category", String(100), nullable=False),
    Column("category_kind", String(10)),
    Column("notes", Text, nullable=False, default=""),
    Column("is_recurring", Boolean, nullable=False, default=False),
    Column("frequency", String(10)),
    Column("start_date", Date),
    Column("start_month", String(7), nullable=False),
    Column("end_month", String(7)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("type IN ('income', 'expense')", name="ck_budget_rules_type"),
    CheckConstraint(
        "end_month IS NULL OR start_month <= end_month",
        name="ck_budget_rules_month_range",
    ),
    Index("idx_budget_rules_month_range", "profile_id", "start_month", "end_month"),
)

ledger_entries_table = Table(
    "ledger_entries",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("profile_id", String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
    Column("month_iso", String(7), nullable=False),
    Column("rule_id", String(36), ForeignKey("budget_rules.id", ondelete="CASCADE"), nullable=False),
    Column("amount", Float, nullable=False),
    Column("date", Date, nullable=False),
    Column("notes", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_ledger_profile_month", "profile_id", "month_iso"),
    Index("idx_ledger_rule_month", "rule_id", "month_iso"),
)

categories_table = Table(
    "categories",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("kind", String(10), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
    CheckConstraint("kind IN ('bill', 'spending')", name="ck_categories_kind"),
)

audit_events_table = Table(
    "audit_events",
    metadata,
    Column("event_id", String(36), primary_key=True),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("event_type", String(40), nullable=False),
    Column("severity", String(10), nullable=False),
    Column("entity_type", String(40)),
    Column("entity_id", String(100)),
    Column("user_id", String(64)),
    Column("correlation_id", String(36)),
    Column("description", String(500), nullable=False),
    Column("details", JSON, nullable=False, default=dict),
    Column("error_message", Text),
    Index("idx_audit_entity", "entity_type", "entity_id"),
)


class SqlClient:
    """
    Low-level database client wrapper.

    Owns the SQLAlchemy engine. Nothing touches the database until
    `initialize()` (or `connect()`) is called explicitly.
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self._settings = settings or get_settings().database
        self._engine: Optional[Engine] = None

    def _create_engine(self) -> Engine:
        kwargs = {"echo": self._settings.echo, "future": True}
        if self._settings.is_in_memory:
            # One shared connection, otherwise every checkout sees a fresh empty database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(self._settings.url, **kwargs)

        if self._settings.is_sqlite:
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError as e:
            engine.dispose()
            raise ConnectionError(f"Failed to connect to database: {e}")

        return engine

    def connect(self) -> Engine:
        """
        Establish the database engine.

        Retries with exponential back-off, since a database container may
        still be starting when the application boots.
        """
        if self._engine is None:
            for attempt in Retrying(
                stop=stop_after_attempt(self._settings.connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception_type(ConnectionError),
                reraise=True,
            ):
                with attempt:
                    self._engine = self._create_engine()
        return self._engine

    def initialize(self) -> Engine:
        """Connect and create any missing tables."""
        engine = self.connect()
        metadata.create_all(engine)
        logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))
        return engine

    @property
    def engine(self) -> Engine:
        return self.connect()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


class SqlBudgetStorage(BudgetStorageInterface):
    """
    SQLAlchemy implementation of budget storage.

    Each public method runs in its own transaction; multi-row writes
    (split, cascade delete, category seeding) share one.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _profile_to_row(self, profile: Profile) -> dict:
        return profile.model_dump()

    def _row_to_profile(self, row) -> Profile:
        return Profile(**row._mapping)

    def _account_to_row(self, account: Account) -> dict:
        row = account.model_dump()
        row["type"] = account.type.value
        return row

    def _row_to_account(self, row) -> Account:
        data = dict(row._mapping)
        data["type"] = AccountType(data["type"])
        return Account(**data)

    def _rule_to_row(self, rule: BudgetRule) -> dict:
        return {
            "id": rule.id,
            "lineage_id": rule.lineage_id or rule.id,
            "user_id": rule.user_id,
            "profile_id": rule.profile_id,
            "label": rule.label,
            "amount": rule.amount,
            "type": rule.type.value,
            "account_id": rule.account_id,
            "to_account_id": rule.to_account_id,
            "category": rule.category,
            "category_kind": rule.category_kind.value if rule.category_kind else None,
            "notes": rule.notes,
            "is_recurring": rule.is_recurring,
            "frequency": rule.frequency.value if rule.frequency else None,
            "start_date": rule.start_date,
            "start_month": rule.start_month,
            "end_month": rule.end_month,
            "created_at": rule.created_at,
            "updated_at": rule.updated_at,
        }

    def _row_to_rule(self, row) -> BudgetRule:
        data = row._mapping
        return BudgetRule(
            id=data["id"],
            lineage_id=data["lineage_id"],
            user_id=data["user_id"],
            profile_id=data["profile_id"],
            label=data["label"],
            amount=data["amount"],
            type=RuleType(data["type"]),
            account_id=data["account_id"],
            to_account_id=data["to_account_id"],
            category=data["category"],
            category_kind=CategoryKind(data["category_kind"]) if data["category_kind"] else None,
            notes=data["notes"] or "",
            is_recurring=bool(data["is_recurring"]),
            frequency=Frequency(data["frequency"]) if data["frequency"] else None,
            start_date=data["start_date"],
            start_month=data["start_month"],
            end_month=data["end_month"],
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )

    def _entry_to_row(self, entry: LedgerEntry) -> dict:
        return {
            "id": entry.id,
            "user_id": entry.user_id,
            "profile_id": entry.profile_id,
            "month_iso": entry.month_iso,
            "rule_id": entry.rule_id,
            "amount": entry.amount,
            "date": entry.entry_date,
            "notes": entry.notes,
            "created_at": entry.created_at,
        }

    def _row_to_entry(self, row) -> LedgerEntry:
        data = row._mapping
        return LedgerEntry(
            id=data["id"],
            user_id=data["user_id"],
            profile_id=data["profile_id"],
            month_iso=data["month_iso"],
            rule_id=data["rule_id"],
            amount=data["amount"],
            entry_date=data["date"],
            notes=data["notes"] or "",
            created_at=data["created_at"],
        )

    def _row_to_category(self, row) -> Category:
        data = dict(row._mapping)
        data["kind"] = CategoryKind(data["kind"])
        return Category(**data)

    # -------------------------------------------------------------------------
    # Profiles and accounts
    # -------------------------------------------------------------------------

    async def save_profile(self, profile: Profile) -> Profile:
        try:
            with self._client.engine.begin() as conn:
                row = self._profile_to_row(profile)
                result = conn.execute(
                    update(profiles_table)
                    .where(profiles_table.c.id == profile.id)
                    .values(**row)
                )
                if result.rowcount == 0:
                    conn.execute(insert(profiles_table).values(**row))
            return profile
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save profile: {e}")

    async def get_profile(
        self,
        profile_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Profile]:
        stmt = select(profiles_table).where(profiles_table.c.id == profile_id)
        if user_id is not None:
            stmt = stmt.where(profiles_table.c.user_id == user_id)
        try:
            with self._client.engine.connect() as conn:
                row = conn.execute(stmt).first()
            return self._row_to_profile(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get profile: {e}")

    async def save_account(self, account: Account) -> Account:
        row = self._account_to_row(account)
        try:
            with self._client.engine.begin() as conn:
                result = conn.execute(
                    update(accounts_table)
                    .where(accounts_table.c.id == account.id)
                    .values(**row)
                )
                if result.rowcount == 0:
                    conn.execute(insert(accounts_table).values(**row))
            return account
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save account: {e}")

    async def get_account(self, account_id: str, profile_id: str) -> Optional[Account]:
        stmt = select(accounts_table).where(
            accounts_table.c.id == account_id,
            accounts_table.c.profile_id == profile_id,
        )
        try:
            with self._client.engine.connect() as conn:
                row = conn.execute(stmt).first()
            return self._row_to_account(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get account: {e}")

    async def list_accounts(self, profile_id: str) -> list[Account]:
        stmt = (
            select(accounts_table)
            .where(accounts_table.c.profile_id == profile_id)
            .order_by(accounts_table.c.created_at.asc())
        )
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_account(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list accounts: {e}")

    # -------------------------------------------------------------------------
    # Rule versions
    # -------------------------------------------------------------------------

    async def insert_rule(self, rule: BudgetRule) -> BudgetRule:
        try:
            with self._client.engine.begin() as conn:
                conn.execute(insert(budget_rules_table).values(**self._rule_to_row(rule)))
            return rule
        except IntegrityError as e:
            raise DuplicateError(f"Rule could not be inserted: {e}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert rule: {e}")

    async def get_rule(self, rule_id: str, user_id: str) -> Optional[BudgetRule]:
        stmt = select(budget_rules_table).where(
            budget_rules_table.c.id == rule_id,
            budget_rules_table.c.user_id == user_id,
        )
        try:
            with self._client.engine.connect() as conn:
                row = conn.execute(stmt).first()
            return self._row_to_rule(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get rule: {e}")

    async def update_rule(self, rule: BudgetRule) -> BudgetRule:
        row = self._rule_to_row(rule)
        row.pop("id")
        row.pop("created_at")
        try:
            with self._client.engine.begin() as conn:
                result = conn.execute(
                    update(budget_rules_table)
                    .where(
                        budget_rules_table.c.id == rule.id,
                        budget_rules_table.c.user_id == rule.user_id,
                    )
                    .values(**row)
                )
                if result.rowcount == 0:
                    raise NotFoundError(f"Rule not found: {rule.id}")
            return rule
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update rule: {e}")

    async def list_rules(
        self,
        profile_id: str,
        user_id: Optional[str] = None,
    ) -> list[BudgetRule]:
        stmt = select(budget_rules_table).where(budget_rules_table.c.profile_id == profile_id)
        if user_id is not None:
            stmt = stmt.where(budget_rules_table.c.user_id == user_id)
        stmt = stmt.order_by(budget_rules_table.c.created_at.asc())
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_rule(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list rules: {e}")

    async def list_rules_for_month(
        self,
        profile_id: str,
        month: str,
        user_id: Optional[str] = None,
    ) -> list[BudgetRule]:
        rules = budget_rules_table.c
        stmt = select(budget_rules_table).where(
            rules.profile_id == profile_id,
            rules.start_month <= month,
            or_(rules.end_month.is_(None), rules.end_month >= month),
        )
        if user_id is not None:
            stmt = stmt.where(rules.user_id == user_id)
        stmt = stmt.order_by(rules.created_at.asc())
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_rule(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list rules for {month}: {e}")

    async def list_rule_versions(self, lineage_id: str, user_id: str) -> list[BudgetRule]:
        stmt = (
            select(budget_rules_table)
            .where(
                budget_rules_table.c.lineage_id == lineage_id,
                budget_rules_table.c.user_id == user_id,
            )
            .order_by(budget_rules_table.c.start_month.asc())
        )
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_rule(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list rule versions: {e}")

    async def split_rule(
        self,
        rule_id: str,
        user_id: str,
        close_at: Optional[str],
        successor: BudgetRule,
    ) -> BudgetRule:
        rules = budget_rules_table.c
        try:
            with self._client.engine.begin() as conn:
                owned = conn.execute(
                    select(rules.id).where(rules.id == rule_id, rules.user_id == user_id)
                ).first()
                if owned is None:
                    raise NotFoundError(f"Rule not found: {rule_id}")

                if close_at is None:
                    # Entries move to the successor before the old row goes
                    conn.execute(insert(budget_rules_table).values(**self._rule_to_row(successor)))
                    conn.execute(
                        update(ledger_entries_table)
                        .where(ledger_entries_table.c.rule_id == rule_id)
                        .values(rule_id=successor.id)
                    )
                    conn.execute(delete(budget_rules_table).where(rules.id == rule_id))
                else:
                    conn.execute(
                        update(budget_rules_table)
                        .where(rules.id == rule_id)
                        .values(end_month=close_at, updated_at=utcnow())
                    )
                    conn.execute(insert(budget_rules_table).values(**self._rule_to_row(successor)))
            return successor
        except NotFoundError:
            raise
        except IntegrityError as e:
            raise DuplicateError(f"Successor version could not be inserted: {e}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to split rule: {e}")

    async def delete_rule(self, rule_id: str, user_id: str) -> bool:
        rules = budget_rules_table.c
        try:
            with self._client.engine.begin() as conn:
                owned = conn.execute(
                    select(rules.id).where(rules.id == rule_id, rules.user_id == user_id)
                ).first()
                if owned is None:
                    return False
                conn.execute(
                    delete(ledger_entries_table)
                    .where(ledger_entries_table.c.rule_id == rule_id)
                )
                conn.execute(delete(budget_rules_table).where(rules.id == rule_id))
            return True
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete rule: {e}")

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    async def insert_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        try:
            with self._client.engine.begin() as conn:
                conn.execute(insert(ledger_entries_table).values(**self._entry_to_row(entry)))
            return entry
        except IntegrityError as e:
            raise DuplicateError(f"Ledger entry could not be inserted: {e}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to insert ledger entry: {e}")

    async def update_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        row = self._entry_to_row(entry)
        row.pop("id")
        try:
            with self._client.engine.begin() as conn:
                result = conn.execute(
                    update(ledger_entries_table)
                    .where(
                        ledger_entries_table.c.id == entry.id,
                        ledger_entries_table.c.user_id == entry.user_id,
                    )
                    .values(**row)
                )
                if result.rowcount == 0:
                    raise NotFoundError(f"Ledger entry not found: {entry.id}")
            return entry
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update ledger entry: {e}")

    async def get_ledger_entry(self, entry_id: str, user_id: str) -> Optional[LedgerEntry]:
        stmt = select(ledger_entries_table).where(
            ledger_entries_table.c.id == entry_id,
            ledger_entries_table.c.user_id == user_id,
        )
        try:
            with self._client.engine.connect() as conn:
                row = conn.execute(stmt).first()
            return self._row_to_entry(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get ledger entry: {e}")

    async def find_ledger_entry(
        self,
        rule_id: str,
        month_iso: str,
        profile_id: str,
        user_id: str,
    ) -> Optional[LedgerEntry]:
        ledger = ledger_entries_table.c
        stmt = (
            select(ledger_entries_table)
            .where(
                ledger.rule_id == rule_id,
                ledger.month_iso == month_iso,
                ledger.profile_id == profile_id,
                ledger.user_id == user_id,
            )
            .order_by(ledger.date.asc(), ledger.created_at.asc())
        )
        try:
            with self._client.engine.connect() as conn:
                row = conn.execute(stmt).first()
            return self._row_to_entry(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to find ledger entry: {e}")

    async def list_ledger_entries(
        self,
        profile_id: str,
        month_iso: str,
        user_id: Optional[str] = None,
    ) -> list[LedgerEntry]:
        ledger = ledger_entries_table.c
        stmt = select(ledger_entries_table).where(
            ledger.profile_id == profile_id,
            ledger.month_iso == month_iso,
        )
        if user_id is not None:
            stmt = stmt.where(ledger.user_id == user_id)
        stmt = stmt.order_by(ledger.date.asc(), ledger.created_at.asc())
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_entry(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list ledger entries: {e}")

    async def delete_ledger_entry(self, entry_id: str, user_id: str) -> bool:
        try:
            with self._client.engine.begin() as conn:
                result = conn.execute(
                    delete(ledger_entries_table).where(
                        ledger_entries_table.c.id == entry_id,
                        ledger_entries_table.c.user_id == user_id,
                    )
                )
            return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete ledger entry: {e}")

    async def sum_ledger_amounts(
        self,
        profile_id: str,
        month_iso: str,
        rule_type: RuleType,
    ) -> float:
        ledger = ledger_entries_table.c
        rules = budget_rules_table.c
        stmt = (
            select(func.coalesce(func.sum(ledger.amount), 0.0))
            .select_from(
                ledger_entries_table.join(budget_rules_table, ledger.rule_id == rules.id)
            )
            .where(
                ledger.profile_id == profile_id,
                ledger.month_iso == month_iso,
                rules.profile_id == profile_id,
                rules.type == rule_type.value,
            )
        )
        try:
            with self._client.engine.connect() as conn:
                total = conn.execute(stmt).scalar_one()
            return float(total)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to sum ledger amounts: {e}")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def get_category_kinds(self, user_id: str) -> dict[str, CategoryKind]:
        return {
            category.name: category.kind
            for category in await self.list_categories(user_id)
        }

    async def list_categories(self, user_id: str) -> list[Category]:
        stmt = (
            select(categories_table)
            .where(categories_table.c.user_id == user_id)
            .order_by(categories_table.c.name.asc())
        )
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_category(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def upsert_category(self, category: Category) -> Category:
        categories = categories_table.c
        try:
            with self._client.engine.begin() as conn:
                existing = conn.execute(
                    select(categories_table).where(
                        categories.user_id == category.user_id,
                        categories.name == category.name,
                    )
                ).first()
                if existing is None:
                    conn.execute(
                        insert(categories_table).values(
                            id=category.id,
                            user_id=category.user_id,
                            name=category.name,
                            kind=category.kind.value,
                            created_at=category.created_at,
                            updated_at=category.updated_at,
                        )
                    )
                    return category
                updated_at = utcnow()
                conn.execute(
                    update(categories_table)
                    .where(categories.id == existing.id)
                    .values(kind=category.kind.value, updated_at=updated_at)
                )
            stored = self._row_to_category(existing)
            return stored.model_copy(update={"kind": category.kind, "updated_at": updated_at})
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save category: {e}")

    async def seed_default_categories(self, user_id: str) -> int:
        categories = categories_table.c
        try:
            with self._client.engine.begin() as conn:
                existing = set(
                    conn.execute(
                        select(categories.name).where(categories.user_id == user_id)
                    ).scalars()
                )
                added = 0
                for name, kind in DEFAULT_CATEGORIES:
                    if name in existing:
                        continue
                    category = Category(user_id=user_id, name=name, kind=kind)
                    conn.execute(
                        insert(categories_table).values(
                            id=category.id,
                            user_id=user_id,
                            name=name,
                            kind=kind.value,
                            created_at=category.created_at,
                            updated_at=category.updated_at,
                        )
                    )
                    added += 1
            return added
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to seed categories: {e}")


class SqlAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    def _event_to_row(self, event: AuditEvent) -> dict:
        return {
            "event_id": str(event.event_id),
            "timestamp": event.timestamp,
            "event_type": event.event_type.value,
            "severity": event.severity.value,
            "entity_type": event.entity_type,
            "entity_id": event.entity_id,
            "user_id": event.user_id,
            "correlation_id": str(event.correlation_id) if event.correlation_id else None,
            "description": event.description,
            "details": event.details,
            "error_message": event.error_message,
        }

    def _row_to_event(self, row) -> AuditEvent:
        data = row._mapping
        return AuditEvent(
            event_id=UUID(data["event_id"]),
            timestamp=data["timestamp"],
            event_type=AuditEventType(data["event_type"]),
            severity=AuditSeverity(data["severity"]),
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            user_id=data["user_id"],
            correlation_id=UUID(data["correlation_id"]) if data["correlation_id"] else None,
            description=data["description"],
            details=data["details"] or {},
            error_message=data["error_message"],
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            with self._client.engine.begin() as conn:
                conn.execute(insert(audit_events_table).values(**self._event_to_row(event)))
            return True
        except SQLAlchemyError as e:
            # Audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        stmt = (
            select(audit_events_table)
            .where(
                audit_events_table.c.entity_type == entity_type,
                audit_events_table.c.entity_id == entity_id,
            )
            .order_by(audit_events_table.c.timestamp.asc())
        )
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_event(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        stmt = (
            select(audit_events_table)
            .order_by(audit_events_table.c.timestamp.desc())
            .limit(limit)
        )
        try:
            with self._client.engine.connect() as conn:
                rows = conn.execute(stmt).all()
            return [self._row_to_event(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}")
