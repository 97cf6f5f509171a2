"""
Pytest configuration and fixtures for verifystate tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple

import pytest
import pytest_asyncio

# Add src directory to path so imports work without installing the package
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from verifystate.database.db_connection import ConnectionManager  # noqa: E402
from verifystate.database.table_store import TableStore  # noqa: E402


class RecordingTableStore(TableStore):
    """TableStore that remembers every call made to it."""

    def __init__(self, connection: ConnectionManager) -> None:
        super().__init__(connection)
        self.calls: List[Tuple[str, str]] = []

    async def has_table(self, name):
        self.calls.append(("has_table", name))
        return await super().has_table(name)

    async def create_table(self, name, columns, unique=()):
        self.calls.append(("create_table", name))
        return await super().create_table(name, columns, unique)

    async def query_first(self, name, filters):
        self.calls.append(("query_first", name))
        return await super().query_first(name, filters)

    async def insert(self, name, row):
        self.calls.append(("insert", name))
        return await super().insert(name, row)

    async def upsert(self, name, key, row):
        self.calls.append(("upsert", name))
        return await super().upsert(name, key, row)

    async def delete(self, name, filters):
        self.calls.append(("delete", name))
        return await super().delete(name, filters)

    def names(self) -> List[str]:
        return [call for call, _ in self.calls]


def _make_member(
    member_id: int = 222,
    guild_id: int = 111,
    verification_level: Any = 2,
    role_count: int = 1,
    bot: bool = False,
) -> SimpleNamespace:
    """Fake guild member; ``role_count`` includes the implicit @everyone role."""
    guild = SimpleNamespace(id=guild_id, verification_level=verification_level)
    roles = [SimpleNamespace(id=guild_id + index) for index in range(role_count)]
    return SimpleNamespace(id=member_id, guild=guild, roles=roles, bot=bot)


@pytest.fixture
def make_member():
    return _make_member


@pytest_asyncio.fixture
async def connection(tmp_path: Path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "verify.db")
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def table_store(connection: ConnectionManager) -> RecordingTableStore:
    return RecordingTableStore(connection)


@pytest.fixture
def fetch_rows(connection: ConnectionManager):
    """Return a coroutine function listing every row of a table."""

    async def _fetch(table: str = "verify") -> List[Dict[str, Any]]:
        async with connection.read() as conn:
            async with conn.execute(f"SELECT guildId, memberId, level FROM {table}") as cursor:
                rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    return _fetch
