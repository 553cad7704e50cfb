"""Services package."""

from budget_engine.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    SqlAuditStorage,
    SqlBudgetStorage,
    SqlClient,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "SqlAuditStorage",
    "SqlBudgetStorage",
    "SqlClient",
    "StorageError",
]
