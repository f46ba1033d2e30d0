"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from schemas.export_config import ExportConfig


USERS_DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT,
    score REAL,
    active BOOLEAN,
    created_at TIMESTAMP,
    balance NUMERIC(10, 2),
    avatar BLOB
)
"""


@pytest.fixture
def mock_user_rows():
    """Nine users, ids 1..9"""
    return [
        {
            "id": i,
            "name": f"user_{i}",
            "score": i * 1.5,
            "active": i % 2 == 0,
            "created_at": f"2024-01-{i:02d} 10:00:00",
            "balance": i * 10.25,
            "avatar": bytes([i, i + 1]),
        }
        for i in range(1, 10)
    ]


@pytest_asyncio.fixture(scope="function")
async def source_db_url(tmp_path, mock_user_rows):
    """SQLite source database with a populated `users` table and an empty table"""
    url = f"sqlite+aiosqlite:///{tmp_path / 'source.db'}"
    engine = create_async_engine(url, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.execute(text(USERS_DDL))
        await conn.execute(
            text(
                "INSERT INTO users (id, name, score, active, created_at, balance, avatar) "
                "VALUES (:id, :name, :score, :active, :created_at, :balance, :avatar)"
            ),
            mock_user_rows
        )
        await conn.execute(text("CREATE TABLE empty_table (id INTEGER, label TEXT)"))

    await engine.dispose()
    return url


@pytest.fixture
def make_config(source_db_url, tmp_path):
    """Factory for export configs against the test database"""
    def _make(**overrides):
        values = {
            "connection_url": source_db_url,
            "table_name": "users",
            "output": str(tmp_path / "export"),
            "fetch_size": 4,
            "avro_codec": "deflate6",
        }
        values.update(overrides)
        return ExportConfig(**values)

    return _make
