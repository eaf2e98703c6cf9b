"""Event service for managing events, co-administrators and participants."""
import logging
import secrets
import string
from typing import Optional, List, Any, Dict
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.models.user import User
from app.models.event import (
    Event, EventPrivacy, EventMembershipError, event_co_admins, event_participants,
)
from app.models.user_history import HistoryAction
from app.services.certificate_settings import get_settings_doc
from app.services.history_service import HistoryService

logger = logging.getLogger(__name__)

# Fields an event manager may change through update_event
EDITABLE_FIELDS = {
    "title",
    "description",
    "venue",
    "department",
    "organiser_name",
    "chief_guest",
    "event_date",
    "expiry_date",
    "privacy",
    "is_active",
    "auto_send_after_event_end",
}


EVENT_CODE_ALPHABET = string.ascii_uppercase + string.digits
EVENT_CODE_LENGTH = 6


def generate_event_code() -> str:
    """Six character join code, e.g. "K7Q2ZD"."""
    return "".join(secrets.choice(EVENT_CODE_ALPHABET) for _ in range(EVENT_CODE_LENGTH))


def can_manage_event(event: Event, user: User) -> bool:
    """Creator, co-administrator or platform admin."""
    return user.is_admin_role or event.can_edit(user.id)


class EventService:
    """Service for managing events and their membership."""

    def __init__(self, session: AsyncSession):
        """Initialize event service."""
        self.session = session
        self.history = HistoryService(session)

    async def get_event(self, event_id: int) -> Optional[Event]:
        """Get an event by ID."""
        return await self.session.get(Event, event_id)

    async def require_event(self, event_id: int) -> Event:
        event = await self.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def require_manageable_event(self, event_id: int, user: User) -> Event:
        """Load an event the user may manage, or raise NotFoundError / PermissionDeniedError."""
        event = await self.require_event(event_id)
        if not can_manage_event(event, user):
            raise PermissionDeniedError("You don't have permission to manage this event")
        return event

    async def create_event(self, creator: User, **fields) -> Event:
        """Create an event owned by creator."""
        privacy = fields.get("privacy") or EventPrivacy.PUBLIC.value
        if privacy not in {p.value for p in EventPrivacy}:
            raise ValidationError(f"Invalid privacy: {privacy}")

        event = Event(
            created_by_id=creator.id,
            event_code=await self._unused_event_code(),
            **{**fields, "privacy": privacy},
        )
        self.session.add(event)
        await self.session.commit()
        await self.session.refresh(event)
        logger.info(f"Event {event.id} created by user {creator.id}")

        await self.history.log(
            HistoryAction.CREATED_EVENT,
            user_id=creator.id,
            related_event_id=event.id,
            description=f"Created event: {event.title}",
        )
        return event

    async def _unused_event_code(self) -> str:
        while True:
            code = generate_event_code()
            result = await self.session.execute(select(Event.id).where(Event.event_code == code))
            if result.first() is None:
                return code

    async def get_event_by_code(self, code: str) -> Event:
        """Look an event up by its join code (case-insensitive)."""
        result = await self.session.execute(
            select(Event).where(Event.event_code == code.strip().upper())
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def list_events_for_user(self, user: User) -> List[Event]:
        """
        Events the user can see, newest event date first.

        That is every event they created, co-administer or joined, plus all
        public active events. Platform admins see everything.
        """
        query = select(Event).order_by(Event.event_date.desc())

        if not user.is_admin_role:
            co_admin_ids = select(event_co_admins.c.event_id).where(event_co_admins.c.user_id == user.id)
            participant_ids = select(event_participants.c.event_id).where(
                event_participants.c.user_id == user.id
            )
            query = query.where(or_(
                Event.created_by_id == user.id,
                Event.id.in_(co_admin_ids),
                Event.id.in_(participant_ids),
                (Event.privacy == EventPrivacy.PUBLIC.value) & (Event.is_active == True),
            ))

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update_event(self, event_id: int, user: User, updates: Dict[str, Any]) -> Event:
        """
        Update the editable fields of an event.

        Raises:
            NotFoundError: Unknown event
            PermissionDeniedError: user is not the creator or a co-admin
            ValidationError: Unknown privacy value
        """
        event = await self.require_manageable_event(event_id, user)

        if "privacy" in updates and updates["privacy"] not in {p.value for p in EventPrivacy}:
            raise ValidationError(f"Invalid privacy: {updates['privacy']}")

        changed = {}
        for key, value in updates.items():
            if key in EDITABLE_FIELDS:
                setattr(event, key, value)
                changed[key] = str(value)

        # The stored certificate settings carry the same auto-send flag
        if updates.get("auto_send_after_event_end") is not None:
            doc = await get_settings_doc(self.session, event_id)
            if doc is not None:
                doc.auto_send_after_event_end = updates["auto_send_after_event_end"]

        await self.session.commit()
        await self.session.refresh(event)

        await self.history.log(
            HistoryAction.UPDATED_EVENT,
            user_id=user.id,
            related_event_id=event.id,
            description=f"Updated event: {event.title}",
            details={"changes": changed},
        )
        return event

    async def delete_event(self, event_id: int, user: User) -> None:
        """Delete an event. Only its creator (or a platform admin) may do this."""
        event = await self.require_event(event_id)
        if not (user.is_admin_role or event.can_delete(user.id)):
            raise PermissionDeniedError("Only the event creator can delete this event")

        await self.session.delete(event)
        await self.session.commit()
        logger.info(f"Event {event_id} deleted by user {user.id}")

    async def add_co_admin(self, event_id: int, actor: User, user_id: int) -> Event:
        """
        Add a co-administrator. Only the creator may do this.

        Raises:
            ValidationError: Cap of three reached, creator or duplicate
        """
        event = await self.require_event(event_id)
        if not (actor.is_admin_role or event.is_main_admin(actor.id)):
            raise PermissionDeniedError("Only the event creator can add sub-admins")

        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        try:
            event.add_co_admin(user)
        except EventMembershipError as e:
            raise ValidationError(str(e)) from e
        await self.session.commit()

        await self.history.log(
            HistoryAction.ADDED_SUB_ADMIN,
            user_id=actor.id,
            related_event_id=event.id,
            related_user_id=user.id,
            description=f"Added {user.full_name} as sub-admin",
        )
        return event

    async def remove_co_admin(self, event_id: int, actor: User, user_id: int) -> Event:
        event = await self.require_event(event_id)
        if not (actor.is_admin_role or event.is_main_admin(actor.id)):
            raise PermissionDeniedError("Only the event creator can remove sub-admins")

        try:
            event.remove_co_admin(user_id)
        except EventMembershipError as e:
            raise ValidationError(str(e)) from e
        await self.session.commit()

        await self.history.log(
            HistoryAction.REMOVED_SUB_ADMIN,
            user_id=actor.id,
            related_event_id=event.id,
            related_user_id=user_id,
        )
        return event

    async def join_event(self, event_id: int, user: User, event_code: Optional[str] = None) -> Event:
        """
        Join an event as a participant.

        Private events require the event's join code, which the creator or a
        co-admin shares with the people they invite.
        """
        event = await self.require_event(event_id)
        if not event.is_active:
            raise ValidationError("This event is no longer active")
        if event.privacy == EventPrivacy.PRIVATE.value:
            supplied = (event_code or "").strip().upper()
            if not supplied or supplied != event.event_code:
                raise PermissionDeniedError("Invalid event code for private event")
        if event.can_edit(user.id) or event.is_participant(user.id):
            raise ValidationError("You're already part of this event")

        event.add_participant(user)
        await self.session.commit()

        await self.history.log(
            HistoryAction.JOINED_EVENT,
            user_id=user.id,
            related_event_id=event.id,
            description=f"Joined event: {event.title}",
        )
        return event

    async def leave_event(self, event_id: int, user: User) -> None:
        """Leave an event as a co-admin or participant. The creator cannot leave."""
        event = await self.require_event(event_id)
        if event.is_main_admin(user.id):
            raise ValidationError("Event creator cannot leave. Delete the event instead.")

        if event.is_sub_admin(user.id):
            event.remove_co_admin(user.id)
        elif event.is_participant(user.id):
            event.remove_participant(user.id)
        else:
            raise ValidationError("You're not part of this event")
        await self.session.commit()

        await self.history.log(
            HistoryAction.LEFT_EVENT,
            user_id=user.id,
            related_event_id=event.id,
            description=f"Left event: {event.title}",
        )
