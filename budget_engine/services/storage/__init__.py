"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements SQL (via SQLAlchemy) as the backend, but designed to be swappable.
"""

from budget_engine.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from budget_engine.services.storage.sql import (
    SqlAuditStorage,
    SqlBudgetStorage,
    SqlClient,
    metadata,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # SQL implementation
    "SqlAuditStorage",
    "SqlBudgetStorage",
    "SqlClient",
    "metadata",
]
