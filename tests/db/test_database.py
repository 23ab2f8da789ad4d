"""Tests for the aiosqlite Database wrapper."""

from pathlib import Path

import pytest

from personnel_ledger.db.database import Database


@pytest.fixture
async def table(db: Database) -> Database:
    await db.execute("CREATE TABLE items (id TEXT PRIMARY KEY, value INTEGER)")
    return db


class TestDatabase:
    def test_path_strips_file_prefix(self):
        assert Database(url="file:/tmp/ledger.db").path == "/tmp/ledger.db"
        assert Database(url=":memory:").path == ":memory:"

    @pytest.mark.asyncio
    async def test_execute_before_connect_raises(self, tmp_path: Path):
        db = Database(url=f"file:{tmp_path / 'unused.db'}")

        with pytest.raises(RuntimeError, match="Not connected"):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_execute_returns_rows_and_rowcount(self, table: Database):
        insert = await table.execute("INSERT INTO items VALUES (?, ?)", ["a", 1])
        result = await table.execute("SELECT id, value FROM items")

        assert insert.rows_affected == 1
        assert len(result.rows) == 1
        assert result.rows[0]["id"] == "a"
        assert result.rows[0][1] == 1

    @pytest.mark.asyncio
    async def test_transaction_commits(self, table: Database):
        async with table.transaction() as tx:
            await tx.execute("INSERT INTO items VALUES (?, ?)", ["a", 1])
            await tx.execute("INSERT INTO items VALUES (?, ?)", ["b", 2])

        result = await table.execute("SELECT COUNT(*) FROM items")
        assert result.rows[0][0] == 2

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, table: Database):
        with pytest.raises(ValueError):
            async with table.transaction() as tx:
                await tx.execute("INSERT INTO items VALUES (?, ?)", ["a", 1])
                raise ValueError("abort")

        result = await table.execute("SELECT COUNT(*) FROM items")
        assert result.rows[0][0] == 0

    @pytest.mark.asyncio
    async def test_execute_batch_is_atomic(self, table: Database):
        """A failing statement undoes the statements before it."""
        with pytest.raises(Exception):
            await table.execute_batch(
                [
                    ("INSERT INTO items VALUES (?, ?)", ["a", 1]),
                    ("INSERT INTO items VALUES (?, ?)", ["a", 2]),
                ]
            )

        result = await table.execute("SELECT COUNT(*) FROM items")
        assert result.rows[0][0] == 0

    @pytest.mark.asyncio
    async def test_is_healthy(self, db: Database, tmp_path: Path):
        assert await db.is_healthy() is True
        assert await Database(url=f"file:{tmp_path / 'closed.db'}").is_healthy() is False
