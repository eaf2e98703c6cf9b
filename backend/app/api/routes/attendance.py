"""Attendance API routes."""
from typing import List
from fastapi import APIRouter, Depends, Response, status

from app.dependencies import get_current_active_user
from app.api.exceptions import service_error
from app.api.utils.dependencies import get_attendance_service, get_event_service
from app.exceptions import CertificateError
from app.models.user import User
from app.schemas.attendance import AttendanceResponse
from app.services.attendance_service import AttendanceService
from app.services.event_service import EventService

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


@router.post("/{event_id}", response_model=AttendanceResponse)
async def mark_attendance(
    event_id: int,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Mark the current user present.

    Returns 201 for a new record and 200 when attendance was already marked.
    """
    try:
        attendance, created = await service.mark_attendance(event_id, current_user)
    except CertificateError as e:
        raise service_error(e) from e

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return AttendanceResponse.from_record(attendance, current_user)


@router.get("/{event_id}", response_model=List[AttendanceResponse])
async def list_attendance(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    events: EventService = Depends(get_event_service),
    service: AttendanceService = Depends(get_attendance_service)
):
    """Attendance of an event (event managers only)."""
    try:
        await events.require_manageable_event(event_id, current_user)
    except CertificateError as e:
        raise service_error(e) from e

    records = await service.list_attendance(event_id)
    return [AttendanceResponse.from_record(record) for record in records]
