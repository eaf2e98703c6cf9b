"""Attendance tracking model."""
import enum
from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, Index, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, backref
from app.database import Base


class AttendanceStatus(str, enum.Enum):
    """How a user attended an event."""
    PRESENT = "present"
    LATE = "late"
    EXCUSED = "excused"


class Attendance(Base):
    """One attendance mark per (event, user)."""
    __tablename__ = "attendances"

    id = Column(Integer, primary_key=True, index=True)

    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    status = Column(String(20), default=AttendanceStatus.PRESENT.value, nullable=False)
    marked_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", lazy="joined")
    event = relationship(
        "Event",
        backref=backref("attendances", cascade="all", passive_deletes=True),
    )

    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_attendance_event_user'),
        Index('idx_attendance_event_status', 'event_id', 'status'),
    )

    @property
    def is_present(self) -> bool:
        return self.status == AttendanceStatus.PRESENT.value

    def __repr__(self):
        return f"<Attendance(event_id={self.event_id}, user_id={self.user_id}, status={self.status})>"
