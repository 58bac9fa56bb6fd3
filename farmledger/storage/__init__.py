"""
Storage Package

Provides abstract interfaces and concrete implementations for data storage.
Both backends (in-memory and SQLite) share one document-backed repository
layer, so business logic never depends on which one is configured.
"""

from farmledger.storage.interface import (
    ActivityStorageInterface,
    AllowanceStorageInterface,
    ApprovalStorageInterface,
    BudgetThresholdStorageInterface,
    ChoreStorageInterface,
    DuplicateError,
    EntityStorageInterface,
    ExpenseStorageInterface,
    GoalStorageInterface,
    IncomeStorageInterface,
    LinkStorageInterface,
    NotFoundError,
    RestrictionStorageInterface,
    StorageError,
    UserStorageInterface,
)
from farmledger.storage.documents import (
    DocumentCollection,
    InMemoryCollection,
    SQLiteCollection,
)
from farmledger.storage.factory import (
    StorageBundle,
    create_memory_storage,
    create_sqlite_storage,
    create_storage,
)

__all__ = [
    # Interfaces
    "ActivityStorageInterface",
    "AllowanceStorageInterface",
    "ApprovalStorageInterface",
    "BudgetThresholdStorageInterface",
    "ChoreStorageInterface",
    "EntityStorageInterface",
    "ExpenseStorageInterface",
    "GoalStorageInterface",
    "IncomeStorageInterface",
    "LinkStorageInterface",
    "RestrictionStorageInterface",
    "UserStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Backends
    "DocumentCollection",
    "InMemoryCollection",
    "SQLiteCollection",
    "StorageBundle",
    "create_memory_storage",
    "create_sqlite_storage",
    "create_storage",
]
