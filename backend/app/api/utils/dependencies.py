"""Common dependency injection utilities."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.event_service import EventService
from app.services.attendance_service import AttendanceService


async def get_event_service(
    db: AsyncSession = Depends(get_db)
) -> EventService:
    """
    Get EventService instance.

    Args:
        db: Database session from dependency injection

    Returns:
        Initialized EventService
    """
    return EventService(db)


async def get_attendance_service(
    db: AsyncSession = Depends(get_db)
) -> AttendanceService:
    """Get AttendanceService instance."""
    return AttendanceService(db)
