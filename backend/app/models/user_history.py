"""Append-only user activity history."""
import enum
from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, Text, JSON, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


class HistoryAction(str, enum.Enum):
    """Kinds of actions recorded in a user's history."""
    # Event actions
    CREATED_EVENT = "created_event"
    UPDATED_EVENT = "updated_event"
    JOINED_EVENT = "joined_event"
    LEFT_EVENT = "left_event"

    # Sub-admin actions
    ADDED_SUB_ADMIN = "added_sub_admin"
    REMOVED_SUB_ADMIN = "removed_sub_admin"

    # Attendance
    MARKED_ATTENDANCE = "marked_attendance"

    # Certificates
    GENERATED_CERTIFICATES = "generated_certificates"
    RESENT_CERTIFICATE = "resent_certificate"
    UPDATED_CERTIFICATE_SETTINGS = "updated_certificate_settings"

    # Auth actions
    REGISTERED = "registered"
    CHANGED_PASSWORD = "changed_password"
    LOGGED_IN = "logged_in"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"

    OTHER = "other"


class UserHistory(Base):
    """One history entry. Rows are only ever inserted."""

    __tablename__ = "user_history"

    id = Column(Integer, primary_key=True, index=True)

    # Actor; null for system jobs and anonymous failures
    user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    action = Column(String(50), nullable=False)
    related_event_id = Column(Integer, ForeignKey('events.id', ondelete='SET NULL'), nullable=True)
    related_user_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    description = Column(String(500), nullable=True)
    details = Column("metadata", JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index('idx_user_history_user_created', 'user_id', 'created_at'),
        Index('idx_user_history_action', 'action'),
        Index('idx_user_history_event', 'related_event_id'),
    )

    def __repr__(self):
        return f"<UserHistory(id={self.id}, action={self.action}, user_id={self.user_id})>"
