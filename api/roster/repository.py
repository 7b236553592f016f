"""
Roster persistence: teacher-student links and the student suspension flag.
"""

from __future__ import annotations

from typing import Iterable

from core.db import Database


def _distinct_ids(ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(int(i) for i in ids))


class AssociationRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def link(self, teacher_id: int, student_ids: Iterable[int]) -> int:
        """
        Link students to a teacher in a single transaction.

        Only pairs that are not already present are written, so calling this
        again with an overlapping set is a no-op for the existing pairs.
        Returns the number of newly created links.
        """
        targets = _distinct_ids(student_ids)
        if not targets:
            return 0

        async with self._db.transaction() as conn:
            # Serializes concurrent links for the same teacher.
            locked = await conn.fetchval(
                "SELECT id FROM teachers WHERE id = $1 FOR UPDATE",
                teacher_id,
            )
            if locked is None:
                raise RuntimeError(f"Teacher {teacher_id} does not exist.")

            rows = await conn.fetch(
                """
                SELECT student_id
                FROM teacher_students
                WHERE teacher_id = $1
                  AND student_id = ANY($2::bigint[])
                """,
                teacher_id,
                targets,
            )
            existing = {int(r["student_id"]) for r in rows}
            missing = [sid for sid in targets if sid not in existing]
            if missing:
                await conn.executemany(
                    "INSERT INTO teacher_students (teacher_id, student_id) VALUES ($1, $2)",
                    [(teacher_id, sid) for sid in missing],
                )

        return len(missing)

    async def unlink(self, teacher_id: int, student_id: int) -> bool:
        row = await self._db.fetch_one(
            """
            DELETE FROM teacher_students
            WHERE teacher_id = $1
              AND student_id = $2
            RETURNING teacher_id
            """,
            teacher_id,
            student_id,
        )
        return row is not None

    async def is_linked(self, teacher_id: int, student_id: int) -> bool:
        row = await self._db.fetch_one(
            """
            SELECT 1 AS ok
            FROM teacher_students
            WHERE teacher_id = $1
              AND student_id = $2
            LIMIT 1
            """,
            teacher_id,
            student_id,
        )
        return row is not None

    async def students_of(self, teacher_id: int) -> list[dict]:
        return await self._db.fetch_all(
            """
            SELECT s.id, s.email, s.is_suspended, s.created_at
            FROM students s
            JOIN teacher_students ts ON ts.student_id = s.id
            WHERE ts.teacher_id = $1
            ORDER BY s.email COLLATE "C"
            """,
            teacher_id,
        )

    async def teachers_of(self, student_id: int) -> list[dict]:
        return await self._db.fetch_all(
            """
            SELECT t.id, t.email, t.created_at
            FROM teachers t
            JOIN teacher_students ts ON ts.teacher_id = t.id
            WHERE ts.student_id = $1
            ORDER BY t.email COLLATE "C"
            """,
            student_id,
        )

    async def common_students(self, teacher_ids: Iterable[int]) -> list[dict]:
        """
        Students linked to every one of `teacher_ids`, ordered by email.

        A student qualifies when the number of distinct requested teachers it
        is linked to equals the number of requested teachers.
        """
        ids = _distinct_ids(teacher_ids)
        if not ids:
            return []

        return await self._db.fetch_all(
            """
            SELECT s.id, s.email, s.is_suspended, s.created_at
            FROM students s
            JOIN teacher_students ts ON ts.student_id = s.id
            WHERE ts.teacher_id = ANY($1::bigint[])
            GROUP BY s.id, s.email, s.is_suspended, s.created_at
            HAVING count(DISTINCT ts.teacher_id) = $2
            ORDER BY s.email COLLATE "C"
            """,
            ids,
            len(ids),
        )

    async def notification_recipients(self, teacher_id: int, mentioned_ids: Iterable[int]) -> list[str]:
        """
        Emails of non-suspended students that are linked to the teacher or mentioned.
        """
        rows = await self._db.fetch_all(
            """
            SELECT s.email
            FROM students s
            WHERE s.is_suspended = false
              AND (
                EXISTS (
                  SELECT 1
                  FROM teacher_students ts
                  WHERE ts.student_id = s.id
                    AND ts.teacher_id = $1
                )
                OR s.id = ANY($2::bigint[])
              )
            ORDER BY s.email COLLATE "C"
            """,
            teacher_id,
            _distinct_ids(mentioned_ids),
        )
        return [str(r["email"]) for r in rows]

    async def _set_suspended(self, student_id: int, suspended: bool) -> bool:
        row = await self._db.fetch_one(
            """
            UPDATE students
            SET is_suspended = $2
            WHERE id = $1
            RETURNING id
            """,
            student_id,
            suspended,
        )
        return row is not None

    async def suspend(self, student_id: int) -> bool:
        # Matches the row whatever its previous value was.
        return await self._set_suspended(student_id, True)

    async def unsuspend(self, student_id: int) -> bool:
        return await self._set_suspended(student_id, False)

    async def counts(self) -> dict[str, int]:
        row = await self._db.fetch_one(
            """
            SELECT
              (SELECT count(*) FROM teachers) AS teachers,
              (SELECT count(*) FROM students) AS students,
              (SELECT count(*) FROM students WHERE is_suspended) AS suspended_students,
              (SELECT count(*) FROM teacher_students) AS links
            """
        )
        row = row or {}
        return {
            "teachers": int(row.get("teachers", 0)),
            "students": int(row.get("students", 0)),
            "suspended_students": int(row.get("suspended_students", 0)),
            "links": int(row.get("links", 0)),
        }
