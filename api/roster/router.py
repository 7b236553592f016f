"""
Roster API endpoints.

`RosterError`s raised by the service are answered by the app-level handler
in `main.py` (404 with a `message` body).
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from . import schemas
from .dependencies import get_service
from .service import RelationshipService

router = APIRouter(prefix="/api")


@router.post("/register", status_code=status.HTTP_204_NO_CONTENT)
async def register(
    request: schemas.RegisterRequest,
    roster: RelationshipService = Depends(get_service),
) -> Response:
    await roster.register(request.teacher, request.students)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/commonstudents")
async def common_students(
    teacher: list[str] = Query(...),
    roster: RelationshipService = Depends(get_service),
) -> schemas.CommonStudentsResponse:
    try:
        query = schemas.CommonStudentsQuery(teacher=teacher)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    students = await roster.common_students(query.teacher)
    return schemas.CommonStudentsResponse(students=students)


@router.post("/suspend", status_code=status.HTTP_204_NO_CONTENT)
async def suspend(
    request: schemas.SuspendRequest,
    roster: RelationshipService = Depends(get_service),
) -> Response:
    await roster.suspend(request.student)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/retrievefornotifications")
async def retrieve_for_notifications(
    request: schemas.NotificationRequest,
    roster: RelationshipService = Depends(get_service),
) -> schemas.RecipientsResponse:
    recipients = await roster.notification_recipients(request.teacher, request.notification)
    return schemas.RecipientsResponse(recipients=recipients)


@router.get("/stats")
async def statistics(
    roster: RelationshipService = Depends(get_service),
) -> schemas.StatisticsResponse:
    stats = await roster.statistics()
    return schemas.StatisticsResponse(
        statistics=schemas.Statistics(**stats),
        timestamp=datetime.now(timezone.utc),
    )
