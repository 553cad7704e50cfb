"""
Shared fixtures.

Store-backed tests run against a real SQLAlchemy engine on in-memory
SQLite. Every test gets a fresh database.
"""

import pytest

from budget_engine.config import DatabaseSettings, EngineSettings
from budget_engine.models.budget import Account, AccountType, BudgetRule, Profile, RuleType
from budget_engine.services.storage import SqlAuditStorage, SqlBudgetStorage, SqlClient


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def make_rule(**overrides) -> BudgetRule:
    """A monthly income rule unless told otherwise."""
    fields = {
        "user_id": USER_ID,
        "profile_id": "profile-1",
        "label": "Test Rule",
        "amount": 100.0,
        "type": RuleType.INCOME,
        "account_id": "acc1",
        "category": "Test",
        "is_recurring": True,
        "frequency": "monthly",
        "start_month": "2023-01",
    }
    fields.update(overrides)
    return BudgetRule(**fields)


@pytest.fixture
def engine_settings():
    return EngineSettings(_env_file=None)


@pytest.fixture
def sql_client():
    client = SqlClient(DatabaseSettings(url="sqlite://", _env_file=None))
    client.initialize()
    yield client
    client.dispose()


@pytest.fixture
def storage(sql_client):
    return SqlBudgetStorage(sql_client)


@pytest.fixture
def audit_storage(sql_client):
    return SqlAuditStorage(sql_client)


@pytest.fixture
async def profile(storage):
    return await storage.save_profile(Profile(user_id=USER_ID, name="Household"))


@pytest.fixture
async def accounts(storage, profile):
    """Checking, savings and a loan in the test profile."""
    checking = await storage.save_account(Account(
        user_id=USER_ID,
        profile_id=profile.id,
        name="Checking",
        type=AccountType.CHECKING,
        starting_balance=1000.0,
    ))
    savings = await storage.save_account(Account(
        user_id=USER_ID,
        profile_id=profile.id,
        name="Savings",
        type=AccountType.SAVINGS,
        starting_balance=5000.0,
    ))
    loan = await storage.save_account(Account(
        user_id=USER_ID,
        profile_id=profile.id,
        name="Car Loan",
        type=AccountType.LOAN,
        starting_balance=-10000.0,
    ))
    return {"checking": checking, "savings": savings, "loan": loan}


@pytest.fixture
def rule_factory(profile, accounts):
    """make_rule bound to the stored profile and checking account."""
    def factory(**overrides) -> BudgetRule:
        fields = {
            "profile_id": profile.id,
            "account_id": accounts["checking"].id,
        }
        fields.update(overrides)
        return make_rule(**fields)
    return factory
