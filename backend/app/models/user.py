"""User account model."""
from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, Index
from sqlalchemy.sql import func
import enum
from app.database import Base


class UserRole(str, enum.Enum):
    """User role enumeration."""
    ADMIN = "admin"  # Platform administrator - can manage every event
    USER = "user"  # Regular account - creates, joins and attends events


class User(Base):
    """
    Registered user account.

    Event-level rights (creator, co-administrator, participant) live on the
    Event model; the role here only distinguishes platform administrators.
    """

    __tablename__ = "users"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Basic Information
    email = Column(String(255), nullable=False)  # Original email for sending
    email_normalized = Column(String(255), unique=True, nullable=False, index=True)  # Normalized for lookups
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False, default="")
    department = Column(String(255), nullable=True)

    # Role and status
    role = Column(String(20), default=UserRole.USER.value, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Credentials
    password_hash = Column(String(255), nullable=True)  # bcrypt

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_users_role', 'role'),
    )

    @property
    def is_admin_role(self) -> bool:
        """Check if user has the platform admin role."""
        return self.role == UserRole.ADMIN.value

    @property
    def full_name(self) -> str:
        """Get user's full name."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


# Event listener to automatically set email_normalized from email
from sqlalchemy import event


@event.listens_for(User, 'before_insert')
@event.listens_for(User, 'before_update')
def normalize_user_email(mapper, connection, target):
    """
    Automatically normalize email when User is created or updated.

    This ensures email_normalized is always set correctly, even when
    tests or code create User objects without explicitly setting it.
    """
    if target.email:
        from app.api.utils.validation import normalize_email
        target.email_normalized = normalize_email(target.email)
