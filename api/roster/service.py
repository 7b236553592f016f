"""
Roster business logic.

Scope:
- register students to a teacher (creates identities on first reference)
- common students of one or more teachers
- suspend a student
- notification recipients (registered + mentioned, minus suspended)

Errors raised here are business-rule failures. Storage errors from asyncpg
are not caught and reach the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from identity.repository import IdentityRepository, normalize_email

from .mentions import extract_mentions
from .repository import AssociationRepository

logger = logging.getLogger(__name__)


class RosterError(RuntimeError):
    pass


class TeachersNotFoundError(RosterError):
    def __init__(self, emails: Sequence[str]) -> None:
        self.emails = list(emails)
        super().__init__(f"Teachers not found: {', '.join(self.emails)}")


class StudentNotFoundError(RosterError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Student not found: {email}")


def normalize_emails(emails: str | Iterable[str]) -> list[str]:
    """
    Normalize one email or many, dropping duplicates (first occurrence wins).
    """
    if isinstance(emails, str):
        emails = [emails]
    return list(dict.fromkeys(normalize_email(e) for e in emails))


class RelationshipService:
    def __init__(self, identities: IdentityRepository, associations: AssociationRepository) -> None:
        self._identities = identities
        self._associations = associations

    async def register(self, teacher_email: str, student_emails: Sequence[str]) -> None:
        teacher = await self._identities.find_or_create("teacher", teacher_email)
        wanted = normalize_emails(student_emails)

        found = await self._identities.find_by_keys("student", wanted)
        student_ids = {str(row["email"]): int(row["id"]) for row in found}
        for email in wanted:
            if email not in student_ids:
                row = await self._identities.find_or_create("student", email)
                student_ids[email] = int(row["id"])

        created = await self._associations.link(int(teacher["id"]), student_ids.values())
        logger.info(
            "students_registered teacher=%s students=%s new_links=%s",
            teacher["email"],
            len(student_ids),
            created,
        )

    async def common_students(self, teacher_emails: str | Sequence[str]) -> list[str]:
        wanted = normalize_emails(teacher_emails)
        teachers = await self._identities.find_by_keys("teacher", wanted)

        found = {str(row["email"]) for row in teachers}
        missing = [email for email in wanted if email not in found]
        if missing:
            raise TeachersNotFoundError(missing)

        rows = await self._associations.common_students(int(row["id"]) for row in teachers)
        return [str(row["email"]) for row in rows]

    async def suspend(self, student_email: str) -> bool:
        email = normalize_email(student_email)
        student = await self._identities.find_by_key("student", email)
        if student is None:
            raise StudentNotFoundError(email)

        changed = await self._associations.suspend(int(student["id"]))
        logger.info("student_suspended student=%s changed=%s", email, changed)
        return changed

    async def notification_recipients(self, teacher_email: str, notification: str | None) -> list[str]:
        mentioned = normalize_emails(extract_mentions(notification))
        teacher = await self._identities.find_by_key("teacher", teacher_email)

        if teacher is None:
            # An unknown teacher can still reach explicitly mentioned students.
            if not mentioned:
                return []
            students = await self._identities.find_by_keys("student", mentioned)
            return sorted({str(s["email"]) for s in students if not s["is_suspended"]})

        mentioned_ids = []
        if mentioned:
            students = await self._identities.find_by_keys("student", mentioned)
            mentioned_ids = [int(s["id"]) for s in students]

        recipients = await self._associations.notification_recipients(int(teacher["id"]), mentioned_ids)
        return list(dict.fromkeys(recipients))

    async def statistics(self) -> dict[str, int]:
        counts = await self._associations.counts()
        return {
            "total_teachers": counts["teachers"],
            "total_students": counts["students"],
            "suspended_students": counts["suspended_students"],
            "active_students": counts["students"] - counts["suspended_students"],
            "total_relationships": counts["links"],
        }
