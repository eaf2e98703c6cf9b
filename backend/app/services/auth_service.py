"""Authentication service: registration, password login and server-side sessions."""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.utils.validation import normalize_email
from app.exceptions import ValidationError
from app.models.user import User, UserRole
from app.models.session import Session
from app.utils.security import hash_password, verify_password, generate_session_token, hash_token
from app.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)


class AuthService:
    """Log users in and resolve session tokens back to users."""

    def __init__(self, session: AsyncSession, session_expiry_hours: int = 24):
        self.session = session
        self.session_expiry_hours = session_expiry_hours

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email_normalized == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Check an email/password pair.

        Inactive accounts and accounts without a password never authenticate.
        """
        user = await self.get_user_by_email(email)
        if user is None or not user.is_active:
            return None
        return user if verify_password(password, user.password_hash) else None

    async def register_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        department: Optional[str] = None,
    ) -> User:
        """
        Create a regular user account.

        Raises:
            ValidationError: The email is already registered
        """
        if await self.get_user_by_email(email) is not None:
            raise ValidationError("Email is already in use, please login.")

        user = User(
            email=email.strip(),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            department=department,
            role=UserRole.USER.value,
            is_active=True,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"User {user.id} registered")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        """Replace the user's password. Returns False if current_password is wrong."""
        if not verify_password(current_password, user.password_hash):
            return False
        user.password_hash = hash_password(new_password)
        await self.session.commit()
        return True

    async def _find_session(self, token: str, active_only: bool = True) -> Optional[Session]:
        query = select(Session).where(Session.token_hash == hash_token(token))
        if active_only:
            query = query.where(Session.is_active == True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create_session(
        self,
        user_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Tuple[str, datetime]:
        """
        Open a session and return (token, expires_at).

        The raw token goes back to the client once; only its SHA-256 hash is stored.
        """
        token = generate_session_token()
        now = utcnow()
        expires_at = now + timedelta(hours=self.session_expiry_hours)

        self.session.add(Session(
            token_hash=hash_token(token),
            user_id=user_id,
            expires_at=expires_at,
            last_seen_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        ))
        await self.session.commit()
        return token, expires_at

    async def validate_session(self, token: str) -> Optional[User]:
        """Resolve a token to its active user. Expired sessions are deactivated on sight."""
        record = await self._find_session(token)
        if record is None:
            return None

        now = utcnow()
        if as_utc(record.expires_at) < now:
            record.is_active = False
            await self.session.commit()
            return None

        user = await self.session.get(User, record.user_id)
        if user is None or not user.is_active:
            return None

        record.last_seen_at = now
        await self.session.commit()
        return user

    async def invalidate_session(self, token: str) -> bool:
        """Log a session out. False when the token is unknown."""
        record = await self._find_session(token, active_only=False)
        if record is None:
            return False
        record.is_active = False
        await self.session.commit()
        return True
