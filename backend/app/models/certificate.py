"""Certificate and per-event certificate settings models."""
import enum
from sqlalchemy import (
    Column, Integer, String, Boolean, TIMESTAMP, Text, JSON,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, backref
from app.database import Base


class CertificateStatus(str, enum.Enum):
    """Lifecycle of the certificate document itself."""
    GENERATED = "generated"
    SENT = "sent"
    FAILED = "failed"


class DeliveryStatus(str, enum.Enum):
    """Lifecycle of emailing a generated certificate."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Certificate(Base):
    """
    A participation certificate issued to one user for one event.

    Rows are created on first generation and updated on regeneration or
    resend; the certificate pipeline never deletes them.
    """
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)

    # Human-readable identifier, e.g. "CERT-20240212-07-4882"
    certificate_id = Column(String(50), unique=True, nullable=False, index=True)

    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    template_id = Column(Integer, default=1, nullable=False)
    issued_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    pdf_path = Column(String(500), default="", nullable=False)
    custom_fields = Column(JSON, default=dict, nullable=False)

    # Generation / delivery state
    status = Column(String(20), default=CertificateStatus.GENERATED.value, nullable=False)
    delivery_status = Column(String(20), default=DeliveryStatus.PENDING.value, nullable=False, index=True)
    email_sent = Column(Boolean, default=False, nullable=False)
    email_sent_at = Column(TIMESTAMP(timezone=True), nullable=True)
    failure_reason = Column(Text, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    last_attempt_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", lazy="joined")
    event = relationship(
        "Event", lazy="joined",
        backref=backref("certificates", cascade="all", passive_deletes=True),
    )

    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_certificate_event_user'),
        CheckConstraint('template_id >= 1 AND template_id <= 7', name='ck_certificate_template_id'),
        Index('idx_certificates_event_delivery', 'event_id', 'delivery_status'),
    )

    def __repr__(self):
        return (
            f"<Certificate(certificate_id={self.certificate_id}, event_id={self.event_id}, "
            f"user_id={self.user_id}, delivery_status={self.delivery_status})>"
        )


class CertificateSettings(Base):
    """
    Per-event certificate configuration.

    Any field left empty falls back to the system defaults from Settings.
    `signatures` is a list of up to four {name, title, image_url} objects
    applied positionally to signature slots 1-4.
    """
    __tablename__ = "certificate_settings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), unique=True, nullable=False)

    template_id = Column(Integer, default=1, nullable=True)
    logo_left = Column(String(500), nullable=True)
    logo_right = Column(String(500), nullable=True)
    signatures = Column(JSON, default=list, nullable=False)
    custom_fields = Column(JSON, default=dict, nullable=False)
    auto_send_after_event_end = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    event = relationship(
        "Event",
        backref=backref("certificate_settings", uselist=False, cascade="all", passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "templateId": self.template_id,
            "logoLeft": self.logo_left,
            "logoRight": self.logo_right,
            "signatures": list(self.signatures or []),
            "customFields": dict(self.custom_fields or {}),
            "autoSendAfterEventEnd": self.auto_send_after_event_end,
        }

    def __repr__(self):
        return f"<CertificateSettings(event_id={self.event_id}, template_id={self.template_id})>"
