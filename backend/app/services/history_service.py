"""User history service for recording user and event actions."""
from typing import Optional, Dict, Any, List
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.user_history import UserHistory, HistoryAction

MAX_DESCRIPTION_LENGTH = 500


class HistoryService:
    """Service for appending user history entries."""

    def __init__(self, session: AsyncSession):
        """Initialize history service."""
        self.session = session

    async def log(
        self,
        action: HistoryAction,
        user_id: Optional[int] = None,
        related_event_id: Optional[int] = None,
        related_user_id: Optional[int] = None,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> UserHistory:
        """
        Append a history entry and commit it.

        Args:
            action: Kind of action performed
            user_id: Acting user; None for the scheduler and anonymous attempts
            related_event_id: Event the action concerns
            related_user_id: Other user the action concerns (e.g. a new sub-admin)
            description: Human readable summary, truncated to 500 characters
            details: Additional details stored as JSON
            ip_address: IP address of the request
            user_agent: User agent string

        Returns:
            Created UserHistory entry
        """
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            description = description[:MAX_DESCRIPTION_LENGTH]

        entry = UserHistory(
            user_id=user_id,
            action=action.value if isinstance(action, HistoryAction) else action,
            related_event_id=related_event_id,
            related_user_id=related_user_id,
            description=description,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent
        )

        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)

        return entry

    async def log_login(
        self,
        user_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserHistory:
        """Log a successful login."""
        return await self.log(
            HistoryAction.LOGGED_IN,
            user_id=user_id,
            description="Logged in",
            ip_address=ip_address,
            user_agent=user_agent
        )

    async def log_login_failed(
        self,
        email: str,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> UserHistory:
        """Log a failed login attempt."""
        return await self.log(
            HistoryAction.LOGIN_FAILED,
            user_id=user_id,
            description="Failed login attempt",
            details={"email": email},
            ip_address=ip_address,
            user_agent=user_agent
        )

    async def log_logout(
        self,
        user_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> UserHistory:
        """Log a logout event."""
        return await self.log(
            HistoryAction.LOGGED_OUT,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent
        )

    async def log_certificates_generated(
        self,
        event_id: int,
        summary: Dict[str, Any],
        user_id: Optional[int] = None,
    ) -> UserHistory:
        """Log a bulk generation run. user_id is None when the scheduler ran it."""
        actor = "Scheduler" if user_id is None else "Admin"
        return await self.log(
            HistoryAction.GENERATED_CERTIFICATES,
            user_id=user_id,
            related_event_id=event_id,
            description=(
                f"{actor} generated certificates for event {event_id}: "
                f"{summary.get('success', 0)} sent, {summary.get('failed', 0)} failed, "
                f"{summary.get('skipped', 0)} skipped"
            ),
            details=summary
        )

    async def log_certificate_resent(
        self,
        event_id: int,
        recipient_id: Optional[int] = None,
        user_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> UserHistory:
        """Log a single or failed-batch resend."""
        return await self.log(
            HistoryAction.RESENT_CERTIFICATE,
            user_id=user_id,
            related_event_id=event_id,
            related_user_id=recipient_id,
            description=f"Resent certificates for event {event_id}",
            details=details
        )

    async def log_settings_updated(
        self,
        event_id: int,
        user_id: int,
        changes: Dict[str, Any]
    ) -> UserHistory:
        """Log an update to an event's certificate settings."""
        return await self.log(
            HistoryAction.UPDATED_CERTIFICATE_SETTINGS,
            user_id=user_id,
            related_event_id=event_id,
            description=f"Updated certificate settings for event {event_id}",
            details={"changes": changes}
        )

    async def get_user_history(self, user_id: int, limit: int = 50) -> List[UserHistory]:
        """Most recent history entries for a user, newest first."""
        result = await self.session.execute(
            select(UserHistory)
            .where(UserHistory.user_id == user_id)
            .order_by(desc(UserHistory.created_at), desc(UserHistory.id))
            .limit(limit)
        )
        return list(result.scalars().all())
