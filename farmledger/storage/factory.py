"""
Storage Factory

Builds the full set of repositories for the configured backend.
"""

import datetime as dt
import sqlite3
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from farmledger.config import StorageSettings, get_settings
from farmledger.storage.documents import (
    DocumentCollection,
    InMemoryCollection,
    SQLiteCollection,
)
from farmledger.storage.interface import StorageError
from farmledger.storage.repositories import (
    DocumentActivityStorage,
    DocumentAllowanceStorage,
    DocumentApprovalStorage,
    DocumentBudgetThresholdStorage,
    DocumentChoreStorage,
    DocumentExpenseStorage,
    DocumentGoalStorage,
    DocumentIncomeStorage,
    DocumentLinkStorage,
    DocumentRestrictionStorage,
    DocumentUserStorage,
)


logger = structlog.get_logger(__name__)


@dataclass
class StorageBundle:
    """One repository per entity, all on the same backend."""

    goals: DocumentGoalStorage
    expenses: DocumentExpenseStorage
    income: DocumentIncomeStorage
    budget_thresholds: DocumentBudgetThresholdStorage
    users: DocumentUserStorage
    links: DocumentLinkStorage
    restrictions: DocumentRestrictionStorage
    approvals: DocumentApprovalStorage
    allowances: DocumentAllowanceStorage
    chores: DocumentChoreStorage
    activities: DocumentActivityStorage
    connection: Optional[sqlite3.Connection] = None

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None


def _bundle(
    collection: Callable[[str], DocumentCollection],
    clock: Optional[Callable[[], dt.datetime]],
    connection: Optional[sqlite3.Connection] = None,
) -> StorageBundle:
    return StorageBundle(
        goals=DocumentGoalStorage(collection("savings_goals"), clock),
        expenses=DocumentExpenseStorage(collection("expenses"), clock),
        income=DocumentIncomeStorage(collection("income"), clock),
        budget_thresholds=DocumentBudgetThresholdStorage(collection("budget_thresholds")),
        users=DocumentUserStorage(collection("users"), clock),
        links=DocumentLinkStorage(collection("parent_child_links"), clock),
        restrictions=DocumentRestrictionStorage(collection("restrictions"), clock),
        approvals=DocumentApprovalStorage(collection("approval_requests"), clock),
        allowances=DocumentAllowanceStorage(collection("allowances"), clock),
        chores=DocumentChoreStorage(collection("chores"), clock),
        activities=DocumentActivityStorage(collection("child_activities"), clock),
        connection=connection,
    )


def create_memory_storage(
    clock: Optional[Callable[[], dt.datetime]] = None,
) -> StorageBundle:
    """Fresh, empty in-memory storage. Used by default and in tests."""
    return _bundle(InMemoryCollection, clock)


def create_sqlite_storage(
    path: str,
    timeout_seconds: float = 5.0,
    clock: Optional[Callable[[], dt.datetime]] = None,
) -> StorageBundle:
    """SQLite storage in `path`; tables are created on first use."""
    try:
        connection = sqlite3.connect(path, timeout=timeout_seconds, check_same_thread=False)
    except sqlite3.Error as e:
        raise StorageError(f"Failed to open database {path}: {e}") from e

    return _bundle(
        lambda table: SQLiteCollection(connection, table),
        clock,
        connection=connection,
    )


def create_storage(
    settings: Optional[StorageSettings] = None,
    clock: Optional[Callable[[], dt.datetime]] = None,
) -> StorageBundle:
    """
    Create storage for the configured backend.

    Args:
        settings: Storage settings; read from the environment if None
        clock: Timestamp source for updated_at bookkeeping
    """
    settings = settings or get_settings().storage

    if settings.backend == "sqlite":
        logger.info("storage_initialized", backend="sqlite", path=settings.sqlite_path)
        return create_sqlite_storage(
            settings.sqlite_path,
            timeout_seconds=settings.sqlite_timeout_seconds,
            clock=clock,
        )

    logger.info("storage_initialized", backend="memory")
    return create_memory_storage(clock)
