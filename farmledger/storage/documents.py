"""
Document Collections

DESIGN DECISION: Every entity is stored as a JSON document keyed by its id.
Repositories filter in Python, the same way for every backend, so the two
backends only have to agree on a handful of primitive operations:

    get / all / insert / replace / remove
    replace_if - replace only when a field still holds an expected value

replace_if is the one atomic primitive. Approvals, chore claims and
allowance payments are built on it.

TRADEOFFS:
- Not suitable for large data sets (fine for one household's ledger)
- Queries scan the whole collection
"""

import copy
import json
import re
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from farmledger.storage.interface import DuplicateError, StorageError


logger = structlog.get_logger(__name__)

_TABLE_NAME = re.compile(r"^[a-z_][a-z0-9_]*$")


class DocumentCollection(ABC):
    """A named set of JSON documents keyed by string id."""

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[dict[str, Any]]:
        pass

    @abstractmethod
    async def all(self) -> list[dict[str, Any]]:
        """Every document, in insertion order."""
        pass

    @abstractmethod
    async def insert(self, doc_id: str, document: dict[str, Any]) -> None:
        """Add a document. Raises DuplicateError if the id is taken."""
        pass

    @abstractmethod
    async def replace(self, doc_id: str, document: dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def remove(self, doc_id: str) -> bool:
        pass

    @abstractmethod
    async def replace_if(
        self,
        doc_id: str,
        document: dict[str, Any],
        field: str,
        expected: Any,
    ) -> bool:
        """
        Atomically replace a document if `field` still equals `expected`.

        Returns:
            True if the document was replaced
        """
        pass


class InMemoryCollection(DocumentCollection):
    """
    Process-local collection.

    Each operation completes without yielding to the event loop, so
    replace_if is atomic with respect to other coroutines.
    """

    def __init__(self, name: str = "documents"):
        self.name = name
        self._documents: dict[str, dict[str, Any]] = {}

    async def get(self, doc_id: str) -> Optional[dict[str, Any]]:
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def all(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._documents.values()]

    async def insert(self, doc_id: str, document: dict[str, Any]) -> None:
        if doc_id in self._documents:
            raise DuplicateError(f"{self.name} already contains {doc_id}")
        self._documents[doc_id] = copy.deepcopy(document)

    async def replace(self, doc_id: str, document: dict[str, Any]) -> bool:
        if doc_id not in self._documents:
            return False
        self._documents[doc_id] = copy.deepcopy(document)
        return True

    async def remove(self, doc_id: str) -> bool:
        return self._documents.pop(doc_id, None) is not None

    async def replace_if(
        self,
        doc_id: str,
        document: dict[str, Any],
        field: str,
        expected: Any,
    ) -> bool:
        current = self._documents.get(doc_id)
        if current is None or current.get(field) != expected:
            return False
        self._documents[doc_id] = copy.deepcopy(document)
        return True


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


class SQLiteCollection(DocumentCollection):
    """
    SQLite-backed collection: one table per entity, one row per document.

    Conditional replacement is a single UPDATE guarded by json_extract, so
    it stays atomic across connections and processes.
    """

    def __init__(self, connection: sqlite3.Connection, table: str):
        if not _TABLE_NAME.match(table):
            raise StorageError(f"Invalid table name: {table}")
        self._conn = connection
        self._table = table
        self._execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "id TEXT PRIMARY KEY, document TEXT NOT NULL)"
        )

    @retry(
        retry=retry_if_exception(_is_locked),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        cursor = self._conn.execute(sql, params)
        self._conn.commit()
        return cursor

    def _run(self, operation: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise DuplicateError(f"{self._table}: duplicate document") from e
        except sqlite3.Error as e:
            logger.error(
                "sqlite_operation_failed",
                table=self._table,
                operation=operation,
                error=str(e),
            )
            raise StorageError(f"Failed to {operation} in {self._table}: {e}") from e

    async def get(self, doc_id: str) -> Optional[dict[str, Any]]:
        row = self._run(
            "get document",
            f"SELECT document FROM {self._table} WHERE id = ?",
            (doc_id,),
        ).fetchone()
        return json.loads(row[0]) if row else None

    async def all(self) -> list[dict[str, Any]]:
        rows = self._run(
            "list documents",
            f"SELECT document FROM {self._table} ORDER BY rowid",
        ).fetchall()
        return [json.loads(row[0]) for row in rows]

    async def insert(self, doc_id: str, document: dict[str, Any]) -> None:
        self._run(
            "insert document",
            f"INSERT INTO {self._table} (id, document) VALUES (?, ?)",
            (doc_id, json.dumps(document)),
        )

    async def replace(self, doc_id: str, document: dict[str, Any]) -> bool:
        cursor = self._run(
            "replace document",
            f"UPDATE {self._table} SET document = ? WHERE id = ?",
            (json.dumps(document), doc_id),
        )
        return cursor.rowcount > 0

    async def remove(self, doc_id: str) -> bool:
        cursor = self._run(
            "remove document",
            f"DELETE FROM {self._table} WHERE id = ?",
            (doc_id,),
        )
        return cursor.rowcount > 0

    async def replace_if(
        self,
        doc_id: str,
        document: dict[str, Any],
        field: str,
        expected: Any,
    ) -> bool:
        cursor = self._run(
            "conditionally replace document",
            f"UPDATE {self._table} SET document = ? "
            "WHERE id = ? AND json_extract(document, ?) = ?",
            (json.dumps(document), doc_id, f"$.{field}", expected),
        )
        return cursor.rowcount > 0
