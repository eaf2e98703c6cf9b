"""Attendance service for marking and listing event attendance."""
import logging
from typing import List, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.attendance import Attendance, AttendanceStatus
from app.models.event import Event, EventPermission
from app.models.user import User
from app.models.user_history import HistoryAction
from app.services.history_service import HistoryService
from app.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)


class AttendanceService:
    """Service for event attendance."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def mark_attendance(self, event_id: int, user: User) -> Tuple[Attendance, bool]:
        """
        Mark the user present at an event.

        The user must be the creator, a co-admin or a participant, and the
        event must be active and not past its expiry date. Marking twice is
        not an error; the existing record is returned.

        Returns:
            Tuple of (attendance, created)
        """
        event = await self.session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")

        if not event.is_active:
            raise ValidationError("This event is no longer active.")

        if event.expiry_date and as_utc(event.expiry_date) < utcnow():
            raise ValidationError("This event has ended. Attendance can no longer be marked.")

        if event.get_user_permission(user.id) == EventPermission.NONE:
            raise PermissionDeniedError("You are not joined in this event.")

        result = await self.session.execute(
            select(Attendance).where(
                Attendance.event_id == event_id,
                Attendance.user_id == user.id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing, False

        attendance = Attendance(
            event_id=event_id,
            user_id=user.id,
            status=AttendanceStatus.PRESENT.value,
        )
        self.session.add(attendance)
        await self.session.commit()
        await self.session.refresh(attendance)
        logger.info(f"User {user.id} marked present at event {event_id}")

        await HistoryService(self.session).log(
            HistoryAction.MARKED_ATTENDANCE,
            user_id=user.id,
            related_event_id=event_id,
            description=f"Marked attendance for: {event.title}",
        )
        return attendance, True

    async def list_attendance(self, event_id: int) -> List[Attendance]:
        """All attendance records of an event in marking order."""
        result = await self.session.execute(
            select(Attendance)
            .where(Attendance.event_id == event_id)
            .order_by(Attendance.marked_at, Attendance.id)
        )
        return list(result.scalars().all())
