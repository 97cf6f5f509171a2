"""
Generic structured-table access on top of the shared SQLite connection.

Callers describe tables with :class:`TableColumn` and address rows with
plain column/value mappings; no SQL leaks out of this module. Identifiers
are validated before being spliced into statements and every value is
bound as a parameter.

Every database error is re-raised as :class:`StorageFailure` so callers can
tell a storage problem apart from their own bugs.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple

import aiosqlite

from verifystate.database.db_connection import ConnectionManager, db_connection
from verifystate.datatypes.verification_datatypes import TableColumn
from verifystate.util.logger import get_logger

logger = get_logger("table_store")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StorageFailure(Exception):
    """The database rejected a create/read/write/delete."""

    def __init__(self, operation: str, table: str, cause: BaseException) -> None:
        super().__init__(f"{operation} on table '{table}' failed: {cause}")
        self.operation = operation
        self.table = table
        self.cause = cause


def _identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid table or column name: {name!r}")
    return name


def _where(filters: Mapping[str, Any]) -> Tuple[str, Tuple[Any, ...]]:
    """Build an ``AND``-joined equality clause and its parameters."""
    if not filters:
        return "", ()
    clause = " AND ".join(f"{_identifier(column)} = ?" for column in filters)
    return f" WHERE {clause}", tuple(filters.values())


class TableStore:
    """Create, query, write and delete rows of named tables."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    @contextmanager
    def _storage_errors(self, operation: str, table: str) -> Iterator[None]:
        try:
            yield
        except aiosqlite.Error as exc:
            logger.error("[TABLE STORE] %s on %s failed: %s", operation, table, exc)
            raise StorageFailure(operation, table, exc) from exc

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def has_table(self, name: str) -> bool:
        """Return True if a table called ``name`` exists."""
        _identifier(name)
        with self._storage_errors("has_table", name):
            async with self._connection.read() as conn:
                async with conn.execute(
                    "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ? LIMIT 1",
                    (name,),
                ) as cursor:
                    return await cursor.fetchone() is not None

    async def create_table(
        self,
        name: str,
        columns: Sequence[TableColumn],
        unique: Sequence[str] = (),
    ) -> None:
        """
        Create ``name`` unless it already exists.

        Args:
            name: Table name.
            columns: Column definitions, in order.
            unique: Columns that together must be unique, if any.
        """
        if not columns:
            raise ValueError("A table needs at least one column")

        definitions = []
        for column in columns:
            _identifier(column.name)
            definitions.append(column.to_sql())
        if unique:
            definitions.append(f"UNIQUE ({', '.join(_identifier(c) for c in unique)})")

        statement = f"CREATE TABLE IF NOT EXISTS {_identifier(name)} ({', '.join(definitions)})"
        with self._storage_errors("create_table", name):
            async with self._connection.transaction() as conn:
                await conn.execute(statement)
        logger.debug("[TABLE STORE] Ensured table %s", name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def query_first(self, name: str, filters: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first row matching ``filters`` as a dict, or None."""
        where, params = _where(filters)
        statement = f"SELECT * FROM {_identifier(name)}{where} LIMIT 1"
        with self._storage_errors("query_first", name):
            async with self._connection.read() as conn:
                async with conn.execute(statement, params) as cursor:
                    row = await cursor.fetchone()
        if row is None:
            return None
        return {key: row[key] for key in row.keys()}

    async def count(self, name: str, filters: Mapping[str, Any]) -> int:
        """Return the number of rows matching ``filters``."""
        where, params = _where(filters)
        statement = f"SELECT COUNT(*) FROM {_identifier(name)}{where}"
        with self._storage_errors("count", name):
            async with self._connection.read() as conn:
                async with conn.execute(statement, params) as cursor:
                    row = await cursor.fetchone()
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, name: str, row: Mapping[str, Any]) -> None:
        """Insert a single row unconditionally."""
        if not row:
            raise ValueError("Cannot insert an empty row")
        columns = ", ".join(_identifier(column) for column in row)
        placeholders = ", ".join("?" for _ in row)
        statement = f"INSERT INTO {_identifier(name)} ({columns}) VALUES ({placeholders})"
        with self._storage_errors("insert", name):
            async with self._connection.transaction() as conn:
                await conn.execute(statement, tuple(row.values()))

    async def upsert(self, name: str, key: Mapping[str, Any], row: Mapping[str, Any]) -> None:
        """
        Make ``row`` the only row matching ``key``.

        Deletes every row matching ``key`` and inserts ``row`` in the same
        transaction, so tables created without a uniqueness constraint also
        end up with a single row per key.
        """
        if not key:
            raise ValueError("upsert needs a non-empty key")
        if not row:
            raise ValueError("Cannot upsert an empty row")
        where, params = _where(key)
        columns = ", ".join(_identifier(column) for column in row)
        placeholders = ", ".join("?" for _ in row)
        table = _identifier(name)
        with self._storage_errors("upsert", name):
            async with self._connection.transaction() as conn:
                await conn.execute(f"DELETE FROM {table}{where}", params)
                await conn.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                    tuple(row.values()),
                )

    async def delete(self, name: str, filters: Mapping[str, Any]) -> int:
        """Delete every row matching ``filters`` and return how many went."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        where, params = _where(filters)
        statement = f"DELETE FROM {_identifier(name)}{where}"
        with self._storage_errors("delete", name):
            async with self._connection.transaction() as conn:
                cursor = await conn.execute(statement, params)
                deleted = cursor.rowcount
        return max(deleted, 0)
