"""SQLAlchemy models."""
from app.models.user import User, UserRole
from app.models.session import Session
from app.models.event import Event, EventPermission, EventPrivacy, EventMembershipError
from app.models.attendance import Attendance, AttendanceStatus
from app.models.certificate import Certificate, CertificateSettings, CertificateStatus, DeliveryStatus
from app.models.user_history import UserHistory, HistoryAction

__all__ = [
    "User",
    "UserRole",
    "Session",
    "Event",
    "EventPermission",
    "EventPrivacy",
    "EventMembershipError",
    "Attendance",
    "AttendanceStatus",
    "Certificate",
    "CertificateSettings",
    "CertificateStatus",
    "DeliveryStatus",
    "UserHistory",
    "HistoryAction",
]
