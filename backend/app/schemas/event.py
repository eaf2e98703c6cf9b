"""Pydantic schemas for events and membership."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from app.models.event import EventPrivacy


class EventBase(BaseModel):
    """Base event schema."""
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    venue: str = Field(..., min_length=1, max_length=255)
    department: Optional[str] = Field(None, max_length=255)
    organiser_name: str = Field(..., min_length=1, max_length=255)
    chief_guest: Optional[str] = Field(None, max_length=255)
    event_date: datetime
    expiry_date: Optional[datetime] = None


class EventCreate(EventBase):
    """Schema for creating an event."""
    privacy: EventPrivacy = EventPrivacy.PUBLIC
    auto_send_after_event_end: bool = False


class EventUpdate(BaseModel):
    """Schema for updating an event. Only fields that are sent are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    venue: Optional[str] = Field(None, min_length=1, max_length=255)
    department: Optional[str] = Field(None, max_length=255)
    organiser_name: Optional[str] = Field(None, min_length=1, max_length=255)
    chief_guest: Optional[str] = Field(None, max_length=255)
    event_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    privacy: Optional[EventPrivacy] = None
    is_active: Optional[bool] = None
    auto_send_after_event_end: Optional[bool] = None


class EventMember(BaseModel):
    """A user listed on an event."""
    id: int
    full_name: str
    email: str

    model_config = {
        "from_attributes": True
    }


class EventResponse(BaseModel):
    """Event response schema."""
    id: int
    title: str
    description: Optional[str] = None
    venue: str
    department: Optional[str] = None
    organiser_name: str
    chief_guest: Optional[str] = None
    event_date: datetime
    expiry_date: Optional[datetime] = None
    privacy: str
    is_active: bool
    created_by_id: int
    # Only shown to the people who manage the event
    event_code: Optional[str] = None
    auto_send_after_event_end: bool
    certificates_sent: bool
    certificates_sent_at: Optional[datetime] = None
    co_admins: List[EventMember] = []
    participant_count: int = 0

    # Caller's role on this event
    permission: str = "none"

    model_config = {
        "from_attributes": True
    }


class CoAdminRequest(BaseModel):
    """Add a co-administrator."""
    user_id: int = Field(..., ge=1)


class JoinEventRequest(BaseModel):
    """Join an event; private events need their join code."""
    event_code: Optional[str] = Field(None, max_length=16)
