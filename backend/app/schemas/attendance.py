"""Pydantic schemas for attendance."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class AttendanceResponse(BaseModel):
    """One attendance record with a summary of the user."""
    id: int
    event_id: int
    user_id: int
    status: str
    marked_at: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    model_config = {
        "from_attributes": True
    }

    @classmethod
    def from_record(cls, attendance, user=None) -> "AttendanceResponse":
        user = user or attendance.user
        return cls(
            id=attendance.id,
            event_id=attendance.event_id,
            user_id=attendance.user_id,
            status=attendance.status,
            marked_at=attendance.marked_at,
            user_name=user.full_name if user else None,
            user_email=user.email if user else None,
        )
