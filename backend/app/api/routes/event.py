"""Event API routes for event and membership management."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, status

from app.dependencies import get_current_active_user
from app.api.exceptions import service_error
from app.api.utils.dependencies import get_event_service
from app.exceptions import CertificateError
from app.models.event import Event
from app.models.user import User
from app.services.event_service import EventService
from app.schemas.event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    CoAdminRequest,
    JoinEventRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/events", tags=["Events"])


def build_event_response(event: Event, user: User) -> EventResponse:
    """Event response including the caller's permission on it."""
    response = EventResponse.model_validate(event)
    response.participant_count = len(event.participants)
    response.permission = event.get_user_permission(user.id).value
    if not (user.is_admin_role or event.can_edit(user.id)):
        response.event_code = None
    return response


# ============== Events ==============

@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Create an event owned by the current user."""
    fields = data.model_dump()
    fields["privacy"] = data.privacy.value
    try:
        event = await service.create_event(current_user, **fields)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.get("", response_model=List[EventResponse])
async def list_events(
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """List events the current user can see."""
    events = await service.list_events_for_user(current_user)
    return [build_event_response(event, current_user) for event in events]


@router.get("/code/{code}", response_model=EventResponse)
async def get_event_by_code(
    code: str,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Find an event by its join code."""
    try:
        event = await service.get_event_by_code(code)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Get a specific event by ID."""
    try:
        event = await service.require_event(event_id)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    data: EventUpdate,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Update an event (creator or co-admin)."""
    updates = data.model_dump(exclude_unset=True)
    if updates.get("privacy") is not None:
        updates["privacy"] = data.privacy.value
    try:
        event = await service.update_event(event_id, current_user, updates)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Delete an event (creator only)."""
    try:
        await service.delete_event(event_id, current_user)
    except CertificateError as e:
        raise service_error(e) from e
    return {"success": True, "message": "Event deleted successfully"}


# ============== Membership ==============

@router.post("/{event_id}/co-admins", response_model=EventResponse)
async def add_co_admin(
    event_id: int,
    data: CoAdminRequest,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Add a co-administrator (creator only, at most three)."""
    try:
        event = await service.add_co_admin(event_id, current_user, data.user_id)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.delete("/{event_id}/co-admins/{user_id}", response_model=EventResponse)
async def remove_co_admin(
    event_id: int,
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Remove a co-administrator (creator only)."""
    try:
        event = await service.remove_co_admin(event_id, current_user, user_id)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.post("/{event_id}/join", response_model=EventResponse)
async def join_event(
    event_id: int,
    data: Optional[JoinEventRequest] = None,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Join an event as a participant. Private events need the join code."""
    event_code = data.event_code if data else None
    try:
        event = await service.join_event(event_id, current_user, event_code=event_code)
    except CertificateError as e:
        raise service_error(e) from e
    return build_event_response(event, current_user)


@router.post("/{event_id}/leave")
async def leave_event(
    event_id: int,
    current_user: User = Depends(get_current_active_user),
    service: EventService = Depends(get_event_service)
):
    """Leave an event as a co-admin or participant."""
    try:
        await service.leave_event(event_id, current_user)
    except CertificateError as e:
        raise service_error(e) from e
    return {"success": True, "message": "Left event successfully"}
