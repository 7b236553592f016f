"""
Teacher and student identity persistence.

Both identity kinds are keyed by normalized email. Emails are stored in
normalized form and compared with `lower(email)`, which is also what the
unique indexes are built on.
"""

from __future__ import annotations

from typing import Iterable, Literal

import asyncpg

from core.db import Database

IdentityKind = Literal["teacher", "student"]

_TABLES = {
    "teacher": "teachers",
    "student": "students",
}

_COLUMNS = {
    "teacher": "id, email, created_at",
    "student": "id, email, is_suspended, created_at",
}


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _table(kind: str) -> tuple[str, str]:
    try:
        return _TABLES[kind], _COLUMNS[kind]
    except KeyError:
        raise ValueError(f"Unknown identity kind: {kind!r}") from None


class IdentityRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def find_by_key(self, kind: IdentityKind, email: str) -> dict | None:
        table, columns = _table(kind)
        return await self._db.fetch_one(
            f"""
            SELECT {columns}
            FROM {table}
            WHERE lower(email) = $1
            """,
            normalize_email(email),
        )

    async def find_by_keys(self, kind: IdentityKind, emails: Iterable[str]) -> list[dict]:
        """
        Return the identities that exist among `emails`. Order is not significant.
        """
        table, columns = _table(kind)
        keys = list(dict.fromkeys(normalize_email(e) for e in emails))
        if not keys:
            return []
        return await self._db.fetch_all(
            f"""
            SELECT {columns}
            FROM {table}
            WHERE lower(email) = ANY($1::text[])
            """,
            keys,
        )

    async def create(self, kind: IdentityKind, email: str) -> dict:
        table, columns = _table(kind)
        row = await self._db.fetch_one(
            f"""
            INSERT INTO {table} (email)
            VALUES ($1)
            RETURNING {columns}
            """,
            normalize_email(email),
        )
        if row is None:
            raise RuntimeError(f"Failed to create {kind}.")
        return row

    async def find_or_create(self, kind: IdentityKind, email: str) -> dict:
        """
        Return the identity for `email`, creating it on first reference.

        Two callers racing on the same key both end up with the same row: the
        loser's INSERT hits the unique index and falls back to the lookup.
        """
        row = await self.find_by_key(kind, email)
        if row is not None:
            return row

        try:
            return await self.create(kind, email)
        except asyncpg.UniqueViolationError:
            row = await self.find_by_key(kind, email)
            if row is None:
                raise
            return row

    async def list_all(self, kind: IdentityKind) -> list[dict]:
        table, columns = _table(kind)
        return await self._db.fetch_all(
            f"""
            SELECT {columns}
            FROM {table}
            ORDER BY email COLLATE "C"
            """
        )

    async def delete_by_key(self, kind: IdentityKind, email: str) -> bool:
        table, _ = _table(kind)
        row = await self._db.fetch_one(
            f"""
            DELETE FROM {table}
            WHERE lower(email) = $1
            RETURNING id
            """,
            normalize_email(email),
        )
        return row is not None
