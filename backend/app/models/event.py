"""Event model and per-event permission rules."""
import enum
from sqlalchemy import (
    Column, Integer, String, Boolean, TIMESTAMP, Table,
    ForeignKey, Index, Text
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base


MAX_CO_ADMINS = 3


class EventPrivacy(str, enum.Enum):
    """Who can discover and join an event."""
    PUBLIC = "public"
    PRIVATE = "private"


class EventPermission(str, enum.Enum):
    """A user's level of access to one event."""
    MAIN_ADMIN = "main_admin"
    SUB_ADMIN = "sub_admin"
    PARTICIPANT = "participant"
    NONE = "none"


event_co_admins = Table(
    "event_co_admins",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

event_participants = Table(
    "event_participants",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class EventMembershipError(ValueError):
    """Raised when a co-admin or participant change breaks an event invariant."""


class Event(Base):
    """
    An event run by one creator with up to three co-administrators.

    The creator is never listed as a co-administrator or participant.
    Certificate auto-send state (auto_send_after_event_end, certificates_sent)
    is the single source of truth for the hourly certificate job.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)

    # Details
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    venue = Column(String(255), nullable=False)
    department = Column(String(255), nullable=True)
    organiser_name = Column(String(255), nullable=False)
    chief_guest = Column(String(255), nullable=True)

    # Dates
    event_date = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    expiry_date = Column(TIMESTAMP(timezone=True), nullable=True)

    # Status
    privacy = Column(String(20), default=EventPrivacy.PUBLIC.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    event_code = Column(String(6), unique=True, nullable=True, index=True)  # Shared to let users join private events

    # Ownership
    created_by_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    # Certificate auto-send
    auto_send_after_event_end = Column(Boolean, default=False, nullable=False)
    certificates_sent = Column(Boolean, default=False, nullable=False)
    certificates_sent_at = Column(TIMESTAMP(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    created_by = relationship("User", foreign_keys=[created_by_id], lazy="selectin")
    co_admins = relationship("User", secondary=event_co_admins, lazy="selectin")
    participants = relationship("User", secondary=event_participants, lazy="selectin")

    __table_args__ = (
        Index('idx_events_autosend', 'auto_send_after_event_end', 'certificates_sent'),
        Index('idx_events_privacy_active', 'privacy', 'is_active'),
    )

    # ---- permission helpers ----

    def is_main_admin(self, user_id: int) -> bool:
        return self.created_by_id == user_id

    def is_sub_admin(self, user_id: int) -> bool:
        return any(admin.id == user_id for admin in self.co_admins)

    def is_participant(self, user_id: int) -> bool:
        return any(participant.id == user_id for participant in self.participants)

    def get_user_permission(self, user_id: int) -> EventPermission:
        """Resolve the strongest permission a user holds on this event."""
        if self.is_main_admin(user_id):
            return EventPermission.MAIN_ADMIN
        if self.is_sub_admin(user_id):
            return EventPermission.SUB_ADMIN
        if self.is_participant(user_id):
            return EventPermission.PARTICIPANT
        return EventPermission.NONE

    def can_edit(self, user_id: int) -> bool:
        return self.is_main_admin(user_id) or self.is_sub_admin(user_id)

    def can_delete(self, user_id: int) -> bool:
        return self.is_main_admin(user_id)

    # ---- membership mutations ----

    def add_co_admin(self, user) -> None:
        """Add a co-administrator, enforcing the three-admin cap."""
        if len(self.co_admins) >= MAX_CO_ADMINS:
            raise EventMembershipError(f"Maximum {MAX_CO_ADMINS} sub-admins allowed per event")
        if self.is_main_admin(user.id):
            raise EventMembershipError("Main admin cannot be added as sub-admin")
        if self.is_sub_admin(user.id):
            raise EventMembershipError("User is already a sub-admin")
        # A promoted participant stops being a plain participant
        if self.is_participant(user.id):
            self.participants.remove(next(p for p in self.participants if p.id == user.id))
        self.co_admins.append(user)

    def remove_co_admin(self, user_id: int) -> None:
        admin = next((a for a in self.co_admins if a.id == user_id), None)
        if admin is None:
            raise EventMembershipError("User is not a sub-admin")
        self.co_admins.remove(admin)

    def add_participant(self, user) -> None:
        if self.is_main_admin(user.id):
            raise EventMembershipError("Event creator cannot join as a participant")
        if self.is_participant(user.id):
            raise EventMembershipError("User is already a participant")
        self.participants.append(user)

    def remove_participant(self, user_id: int) -> None:
        participant = next((p for p in self.participants if p.id == user_id), None)
        if participant is None:
            raise EventMembershipError("User is not a participant")
        self.participants.remove(participant)

    def __repr__(self):
        return (
            f"<Event(id={self.id}, title={self.title}, event_date={self.event_date}, "
            f"certificates_sent={self.certificates_sent})>"
        )
