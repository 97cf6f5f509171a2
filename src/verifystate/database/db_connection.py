"""
The one aiosqlite connection verifystate talks to.

The connection is opened at startup and kept until shutdown. The database
runs in WAL mode so readers never wait for the writer, and writers queue on
an ``asyncio.Semaphore`` instead of spinning on SQLite's busy timeout.

    manager = ConnectionManager()
    await manager.open(Path("data/verify.db"))

    async with manager.read() as conn:
        ...                                 # plain reads

    async with manager.transaction() as conn:
        ...                                 # committed together or not at all

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Sequence

import aiosqlite

from verifystate.util.logger import get_logger

logger = get_logger("database_connection")

DEFAULT_BUSY_TIMEOUT_MS = 5000


def _pragmas(busy_timeout_ms: int) -> Sequence[str]:
    return (
        "PRAGMA journal_mode = WAL",
        "PRAGMA synchronous = NORMAL",
        "PRAGMA temp_store = MEMORY",
        f"PRAGMA busy_timeout = {int(busy_timeout_ms)}",
    )


class ConnectionManager:
    """
    Owner of a single long-lived aiosqlite connection.

    Reads go through :meth:`read` and share the connection freely.
    Writes go through :meth:`transaction`, one at a time.
    """

    def __init__(self, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._path: Path | None = None
        self._writer = asyncio.Semaphore(1)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        """Database file of the open (or last opened) connection."""
        return self._path

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: If :meth:`open` has not been awaited yet.
        """
        if self._conn is None:
            raise RuntimeError("Database connection is not open; await open(path) during startup")
        return self._conn

    async def open(self, path: Path) -> None:
        """
        Connect to ``path``, creating missing parent directories.

        A second call while a connection is open logs a warning and keeps
        the existing connection.
        """
        if self._conn is not None:
            logger.warning(
                "[DB CONNECTION] Already connected to %s, not opening %s", self._path, path
            )
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        try:
            for pragma in _pragmas(self._busy_timeout_ms):
                await conn.execute(pragma)
            await conn.commit()
        except BaseException:
            await conn.close()
            raise

        self._conn = conn
        self._path = path
        logger.info("[DB CONNECTION] Connected to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL into the main file and disconnect. Does nothing if closed."""
        conn, self._conn = self._conn, None
        if conn is None:
            return

        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint before close failed")
        finally:
            await conn.close()
        logger.info("[DB CONNECTION] Disconnected from %s", self._path)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow the connection for reads. Never blocks on writers."""
        yield self.connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the body as one write transaction.

        The body's statements are committed when it finishes and rolled back
        when it raises, including on cancellation. The exception is re-raised.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection
        async with self._writer:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()


db_connection = ConnectionManager()
