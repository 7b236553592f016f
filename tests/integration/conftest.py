"""Pytest fixtures for PostgreSQL integration tests.

These run the real SQL against the schema in `db/migrations`. Set
`TEST_DATABASE_URL` to a disposable database to enable them; the tables are
dropped and recreated around every test.
"""

import os
from pathlib import Path

import asyncpg
import pytest
import pytest_asyncio

from core.db import Database, _sanitize_database_url
from identity.repository import IdentityRepository
from roster.repository import AssociationRepository
from roster.service import RelationshipService

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "db" / "migrations"


def _migration_sections() -> tuple[list[str], list[str]]:
    """Split every migration into its `migrate:up` and `migrate:down` SQL."""
    ups: list[str] = []
    downs: list[str] = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        text = path.read_text(encoding="utf-8")
        up, _, down = text.partition("-- migrate:down")
        ups.append(up.replace("-- migrate:up", "", 1))
        downs.append(down)
    # Undo in reverse order.
    return ups, list(reversed(downs))


@pytest.fixture(scope="session")
def test_db_url() -> str:
    url = os.environ.get("TEST_DATABASE_URL", "").strip()
    if not url:
        pytest.skip("TEST_DATABASE_URL is not set")
    return _sanitize_database_url(url.replace("postgresql+asyncpg://", "postgresql://", 1))


@pytest_asyncio.fixture(scope="function")
async def pg_pool(test_db_url: str):
    """Pool on a freshly migrated schema."""
    ups, downs = _migration_sections()
    pool = await asyncpg.create_pool(dsn=test_db_url, min_size=1, max_size=4)

    async with pool.acquire() as conn:
        for sql in downs:
            await conn.execute(sql)
        for sql in ups:
            await conn.execute(sql)

    yield pool

    async with pool.acquire() as conn:
        for sql in downs:
            await conn.execute(sql)

    await pool.close()


@pytest.fixture
def database(pg_pool) -> Database:
    return Database(pg_pool)


@pytest.fixture
def identities(database) -> IdentityRepository:
    return IdentityRepository(database)


@pytest.fixture
def associations(database) -> AssociationRepository:
    return AssociationRepository(database)


@pytest.fixture
def roster(identities, associations) -> RelationshipService:
    return RelationshipService(identities, associations)
