"""Service layer."""
from app.services.auth_service import AuthService
from app.services.event_service import EventService
from app.services.attendance_service import AttendanceService
from app.services.certificate_service import CertificateService
from app.services.history_service import HistoryService

__all__ = [
    "AuthService",
    "EventService",
    "AttendanceService",
    "CertificateService",
    "HistoryService",
]
