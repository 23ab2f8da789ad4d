"""SQLite database client wrapper built on aiosqlite."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import aiosqlite

from personnel_ledger.config import settings

logger = logging.getLogger(__name__)

Statement = str | tuple[str, Sequence[Any]]


@dataclass
class ResultSet:
    """Rows and write metadata returned by a statement."""

    rows: list[aiosqlite.Row]
    rows_affected: int
    last_insert_rowid: int | None = None


async def _run(
    conn: aiosqlite.Connection,
    sql: str,
    params: Sequence[Any] | None,
) -> ResultSet:
    cursor = await conn.execute(sql, list(params or []))
    try:
        rows = list(await cursor.fetchall())
        return ResultSet(
            rows=rows,
            rows_affected=cursor.rowcount,
            last_insert_rowid=cursor.lastrowid,
        )
    finally:
        await cursor.close()


class Transaction:
    """Handle for statements executed inside Database.transaction()."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> ResultSet:
        """Execute a statement as part of the open transaction."""
        return await _run(self._conn, sql, params)


class Database:
    """Wrapper for an aiosqlite connection.

    One connection is shared by every component. Statements are serialized
    with an asyncio lock so that a coroutine inside transaction() never has
    another coroutine's statement land in the middle of it.
    """

    def __init__(self, url: str | None = None):
        """Initialize client with connection parameters.

        Args:
            url: Database URL ("file:path.db" or ":memory:").
                Defaults to settings.
        """
        self.url = url or settings.database_url
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        """Filesystem path (or :memory:) for the configured URL."""
        if self.url.startswith("file:"):
            return self.url.removeprefix("file:")
        return self.url

    async def connect(self) -> None:
        """Establish database connection."""
        if self._conn is not None:
            return

        # Autocommit mode; transactions are opened explicitly.
        self._conn = await aiosqlite.connect(self.path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.execute("PRAGMA busy_timeout = 5000")

        logger.info(f"Connected to database: {self.url}")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._conn

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> ResultSet:
        """Execute a single SQL statement in its own implicit transaction.

        Args:
            sql: SQL query with ? placeholders
            params: Query parameters

        Returns:
            ResultSet with rows and metadata
        """
        conn = self._require_conn()
        async with self._lock:
            return await _run(conn, sql, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Run statements atomically.

        Opens with BEGIN IMMEDIATE so the write lock is taken up front.
        Commits on normal exit and rolls back on any exception.
        """
        conn = self._require_conn()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield Transaction(conn)
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            else:
                await conn.execute("COMMIT")

    async def execute_batch(self, statements: list[Statement]) -> None:
        """Execute multiple SQL statements atomically.

        Args:
            statements: SQL strings or (sql, params) tuples
        """
        async with self.transaction() as tx:
            for statement in statements:
                if isinstance(statement, str):
                    await tx.execute(statement)
                else:
                    sql, params = statement
                    await tx.execute(sql, params)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("Database connection closed")

    async def is_healthy(self) -> bool:
        """Check if database connection is healthy."""
        try:
            if not self._conn:
                return False
            result = await self.execute("SELECT 1")
            return len(result.rows) == 1
        except Exception:
            return False
