"""Pytest configuration and shared fixtures.

The in-memory repositories mirror the asyncpg repositories' interface so the
service can be exercised without a database. Intersection and union are
computed directly on per-teacher student-id sets.
"""

import itertools
from datetime import datetime, timezone
from typing import Iterable
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.db import Database
from identity.repository import normalize_email
from roster.service import RelationshipService


class InMemoryIdentityRepository:
    def __init__(self) -> None:
        self.rows: dict[str, dict[str, dict]] = {"teacher": {}, "student": {}}
        self._ids = itertools.count(1)

    async def find_by_key(self, kind: str, email: str) -> dict | None:
        return self.rows[kind].get(normalize_email(email))

    async def find_by_keys(self, kind: str, emails: Iterable[str]) -> list[dict]:
        keys = {normalize_email(e) for e in emails}
        return [row for key, row in self.rows[kind].items() if key in keys]

    async def create(self, kind: str, email: str) -> dict:
        key = normalize_email(email)
        row = {"id": next(self._ids), "email": key, "created_at": datetime.now(timezone.utc)}
        if kind == "student":
            row["is_suspended"] = False
        self.rows[kind][key] = row
        return row

    async def find_or_create(self, kind: str, email: str) -> dict:
        return await self.find_by_key(kind, email) or await self.create(kind, email)

    def student_by_id(self, student_id: int) -> dict:
        return next(row for row in self.rows["student"].values() if row["id"] == student_id)


class InMemoryAssociationRepository:
    def __init__(self, identities: InMemoryIdentityRepository) -> None:
        self.identities = identities
        self.links: set[tuple[int, int]] = set()

    def _students_of(self, teacher_id: int) -> set[int]:
        return {sid for (tid, sid) in self.links if tid == teacher_id}

    async def link(self, teacher_id: int, student_ids: Iterable[int]) -> int:
        new = {(teacher_id, sid) for sid in student_ids} - self.links
        self.links |= new
        return len(new)

    async def common_students(self, teacher_ids: Iterable[int]) -> list[dict]:
        groups = [self._students_of(tid) for tid in set(teacher_ids)]
        if not groups:
            return []
        common = set.intersection(*groups)
        rows = [self.identities.student_by_id(sid) for sid in common]
        return sorted(rows, key=lambda row: row["email"])

    async def notification_recipients(self, teacher_id: int, mentioned_ids: Iterable[int]) -> list[str]:
        candidates = self._students_of(teacher_id) | set(mentioned_ids)
        rows = [self.identities.student_by_id(sid) for sid in candidates]
        return sorted(row["email"] for row in rows if not row["is_suspended"])

    async def suspend(self, student_id: int) -> bool:
        self.identities.student_by_id(student_id)["is_suspended"] = True
        return True

    async def counts(self) -> dict[str, int]:
        students = self.identities.rows["student"].values()
        return {
            "teachers": len(self.identities.rows["teacher"]),
            "students": len(students),
            "suspended_students": sum(1 for s in students if s["is_suspended"]),
            "links": len(self.links),
        }


@pytest.fixture
def identities():
    return InMemoryIdentityRepository()


@pytest.fixture
def associations(identities):
    return InMemoryAssociationRepository(identities)


@pytest.fixture
def roster(identities, associations):
    """Relationship service backed by in-memory repositories."""
    return RelationshipService(identities, associations)


@pytest.fixture
def mock_pool():
    """asyncpg pool double whose acquire()/transaction() yield `mock_pool.conn`."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock()
    conn.executemany = AsyncMock()
    conn.transaction.return_value.__aenter__.return_value = None
    conn.transaction.return_value.__aexit__.return_value = False

    pool = MagicMock()
    pool.fetch = AsyncMock(return_value=[])
    pool.fetchrow = AsyncMock(return_value=None)
    pool.execute = AsyncMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = False
    pool.conn = conn
    return pool


@pytest.fixture
def database(mock_pool):
    return Database(mock_pool)
