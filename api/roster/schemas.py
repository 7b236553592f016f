"""
Roster API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

Email = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=320, pattern=EMAIL_PATTERN),
]


class RegisterRequest(BaseModel):
    teacher: Email
    students: list[Email] = Field(..., min_length=1)


class CommonStudentsQuery(BaseModel):
    teacher: list[Email] = Field(..., min_length=1)


class SuspendRequest(BaseModel):
    student: Email


class NotificationRequest(BaseModel):
    teacher: Email
    notification: str = Field(..., min_length=1, max_length=10_000)


class CommonStudentsResponse(BaseModel):
    students: list[str]


class RecipientsResponse(BaseModel):
    recipients: list[str]


class Statistics(BaseModel):
    total_teachers: int
    total_students: int
    suspended_students: int
    active_students: int
    total_relationships: int


class StatisticsResponse(BaseModel):
    statistics: Statistics
    timestamp: datetime
