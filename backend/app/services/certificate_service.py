"""
Certificate generation, delivery and verification.

Bulk runs walk the present attendees of one event in order. Each attendee is
handled in its own try block and committed on its own, so one bad record
never stops the batch. Delivery state lives on the Certificate row
(delivery_status, retry_count, failure_reason) and the event's
certificates_sent flag; nothing is tracked in memory between runs.
"""
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NamedTuple, Optional

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.exceptions import (
    CertificateError, DeliveryError, NotFoundError, ValidationError,
)
from app.models.attendance import Attendance, AttendanceStatus
from app.models.certificate import (
    Certificate, CertificateSettings, CertificateStatus, DeliveryStatus,
)
from app.models.event import Event
from app.models.user import User
from app.services.certificate_email_service import CertificateMailer
from app.services.certificate_settings import (
    default_layer, get_settings_doc, merge_layers, request_layer,
    resolve_effective_settings,
)
from app.services.history_service import HistoryService
from app.services.pdf_service import PdfRenderer
from app.utils.certificate_id import allocate_certificate_id
from app.utils.certificate_templates import load_template, validate_template_id
from app.utils.placeholders import fill_placeholders, signature_display_flags

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d %B %Y"
MAX_SIGNATURES = 4

DUMMY_EVENT = {
    "title": "AI Innovation Summit 2026",
    "venue": "Main Auditorium",
    "organiser_name": "Tech Committee",
    "department": "Computer Science",
    "chief_guest": "Dr. A.P.J. Abdul Kalam (Tribute)",
}

DUMMY_PARTICIPANT = {
    "full_name": "John Doe",
    "first_name": "John",
    "last_name": "Doe",
    "department": "B.Tech CSE",
}


class RenderedCertificate(NamedTuple):
    html: str
    certificate_id: str
    template_id: int
    settings: dict


def format_date(value: Optional[datetime]) -> str:
    """Format a date as "DD Month YYYY", or "" when missing."""
    if not value:
        return ""
    return value.strftime(DATE_FORMAT)


def event_info(event: Event) -> dict:
    return {
        "title": event.title,
        "event_date": event.event_date,
        "venue": event.venue,
        "organiser_name": event.organiser_name,
        "department": event.department,
        "chief_guest": event.chief_guest,
    }


def participant_info(user: User) -> dict:
    return {
        "full_name": user.full_name,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "department": user.department,
    }


def participant_name(info: dict) -> str:
    """Full name, else first + last, else "Participant"."""
    name = info.get("full_name") or f"{info.get('first_name') or ''} {info.get('last_name') or ''}".strip()
    return name or "Participant"


def build_placeholder_data(
    settings: dict,
    event: dict,
    participant: dict,
    certificate_id: str,
    issued_date: Optional[str] = None,
) -> dict:
    """
    Assemble the {{token}} values for one certificate.

    Later keys win: effective settings, then event and participant fields,
    then the custom fields already merged into settings["customFields"].
    """
    data: dict[str, Any] = {k: v for k, v in settings.items() if k != "customFields"}
    data.update({
        "eventTitle": event.get("title") or "",
        "organiserName": event.get("organiser_name") or settings.get("sig4Name"),
        "department": participant.get("department") or event.get("department") or "",
        "venue": event.get("venue") or "",
        "eventDate": format_date(event.get("event_date")),
        "chiefGuest": event.get("chief_guest") or "",
        "participantName": participant_name(participant),
        "certificateId": certificate_id,
        "issuedDate": issued_date or format_date(datetime.now(timezone.utc)),
    })
    data.update(settings.get("customFields") or {})
    data.update(signature_display_flags(data))
    return data


class CertificateService:
    """Service for certificate generation, delivery and lookup."""

    def __init__(
        self,
        session: AsyncSession,
        renderer: Optional[PdfRenderer] = None,
        mailer: Optional[CertificateMailer] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.renderer = renderer or PdfRenderer(self.settings)
        self._mailer = mailer

    @property
    def mailer(self) -> CertificateMailer:
        if self._mailer is None:
            self._mailer = CertificateMailer(self.settings)
        return self._mailer

    # =========================================================================
    # Rendering
    # =========================================================================

    async def render_html(
        self,
        event_id: Optional[int],
        event: dict,
        participant: dict,
        custom_fields: Optional[dict] = None,
        template_id: Optional[int] = None,
        certificate_id: Optional[str] = None,
    ) -> RenderedCertificate:
        """
        Resolve settings, load the template and fill it for one participant.

        A certificate id is allocated unless one is given. event_id may be
        None for previews, in which case only system defaults apply.
        """
        if event_id is None:
            effective = merge_layers(default_layer(self.settings), request_layer(custom_fields, template_id))
        else:
            effective = await resolve_effective_settings(
                self.session, event_id, custom_fields=custom_fields, template_id=template_id,
                settings=self.settings,
            )

        resolved_template_id = validate_template_id(effective["templateId"])
        raw_html = load_template(resolved_template_id, self.settings.CERTIFICATE_TEMPLATE_DIR)

        if certificate_id is None:
            certificate_id = await allocate_certificate_id(
                self._certificate_id_exists,
                event_date=event.get("event_date"),
                strict=self.settings.CERTIFICATE_ID_STRICT,
            )

        data = build_placeholder_data(effective, event, participant, certificate_id)
        return RenderedCertificate(
            html=fill_placeholders(raw_html, data),
            certificate_id=certificate_id,
            template_id=resolved_template_id,
            settings=effective,
        )

    def pdf_path_for(self, event_id: int, certificate_id: str) -> Path:
        return Path(self.settings.CERTIFICATE_OUTPUT_DIR) / str(event_id) / f"{certificate_id}.pdf"

    # =========================================================================
    # Bulk generation
    # =========================================================================

    async def generate_for_event(
        self,
        event_id: int,
        send_email: bool = True,
        save_pdf: bool = True,
        force_regenerate: bool = False,
        actor_id: Optional[int] = None,
    ) -> dict:
        """
        Generate, store and email certificates for every present attendee.

        Attendees whose certificate was already delivered are skipped unless
        force_regenerate is set. Per-attendee failures are reported in the
        results and do not stop the batch. The event is marked as sent once
        the batch finishes, whatever the individual outcomes.

        Returns:
            {"success", "total", "results"}; success is False only when the
            event has no present attendees

        Raises:
            NotFoundError: Unknown event
        """
        event = await self._get_event(event_id)

        result = await self.session.execute(
            select(Attendance.user_id)
            .where(
                Attendance.event_id == event_id,
                Attendance.status == AttendanceStatus.PRESENT.value,
            )
            .order_by(Attendance.id)
        )
        user_ids = list(result.scalars().all())

        if not user_ids:
            logger.info(f"No present attendees for event {event_id}; nothing to generate")
            return {"success": False, "message": "No present attendees found", "total": 0, "results": []}

        logger.info(
            f"Generating certificates for event {event_id} ({event.title}): "
            f"{len(user_ids)} attendees, send_email={send_email}, force={force_regenerate}"
        )

        results = []
        for user_id in user_ids:
            try:
                item = await self._issue_for_attendee(
                    event_id, user_id, send_email, save_pdf, force_regenerate
                )
            except Exception as e:
                logger.error(f"Certificate generation failed for user {user_id} in event {event_id}: {e}")
                await self.session.rollback()
                item = {"userId": user_id, "status": "failed", "reason": str(e)}
            results.append(item)

        event = await self._get_event(event_id)
        event.certificates_sent = True
        event.certificates_sent_at = datetime.now(timezone.utc)
        await self.session.commit()

        summary = {
            "total": len(user_ids),
            "success": sum(1 for r in results if r["status"] == "success"),
            "failed": sum(1 for r in results if r["status"] == "failed"),
            "skipped": sum(1 for r in results if r["status"] == "skipped"),
            "generated": sum(1 for r in results if r["status"] == "generated"),
        }
        logger.info(
            f"Certificate run for event {event_id} complete: {summary['success']} sent, "
            f"{summary['failed']} failed, {summary['skipped']} skipped, "
            f"{summary['generated']} generated without email"
        )
        await HistoryService(self.session).log_certificates_generated(event_id, summary, user_id=actor_id)

        return {"success": True, "total": len(user_ids), "results": results}

    async def _issue_for_attendee(
        self,
        event_id: int,
        user_id: int,
        send_email: bool,
        save_pdf: bool,
        force_regenerate: bool,
    ) -> dict:
        # Re-fetched per attendee: a rollback in a previous iteration expires loaded objects
        event = await self.session.get(Event, event_id)
        user = await self.session.get(User, user_id)
        if user is None:
            logger.warning(f"User {user_id} marked present at event {event_id} no longer exists")
            return {"userId": user_id, "status": "failed", "reason": "User not found"}

        cert = await self._get_certificate(event_id, user_id)
        if cert and cert.delivery_status == DeliveryStatus.SENT.value and not force_regenerate:
            return {"userId": user_id, "status": "skipped", "reason": "Already sent"}

        participant = participant_info(user)
        name = participant_name(participant)

        rendered = await self.render_html(
            event_id,
            event_info(event),
            participant,
            custom_fields=cert.custom_fields if cert else None,
            certificate_id=cert.certificate_id if cert else None,
        )

        pdf_path = ""
        if save_pdf:
            pdf_path = str(self.pdf_path_for(event_id, rendered.certificate_id))
            pdf_bytes = await self.renderer.render(rendered.html, output_path=pdf_path)
        else:
            pdf_bytes = await self.renderer.render(rendered.html)

        if cert is None:
            cert = Certificate(
                certificate_id=rendered.certificate_id,
                event_id=event_id,
                user_id=user_id,
                template_id=rendered.template_id,
                pdf_path=pdf_path,
                custom_fields={},
                status=CertificateStatus.GENERATED.value,
                delivery_status=DeliveryStatus.PENDING.value,
                retry_count=0,
            )
            self.session.add(cert)
        else:
            cert.template_id = rendered.template_id
            cert.pdf_path = pdf_path
            cert.status = CertificateStatus.GENERATED.value
            cert.delivery_status = DeliveryStatus.PENDING.value
        await self.session.commit()

        item = {
            "userId": user_id,
            "participantName": name,
            "certificateId": rendered.certificate_id,
            "status": "generated",
            "deliveryStatus": DeliveryStatus.PENDING.value,
        }

        if send_email and user.email:
            try:
                await self.mailer.send_certificate(
                    to=user.email,
                    participant_name=name,
                    event_name=event.title,
                    certificate_id=rendered.certificate_id,
                    pdf_bytes=pdf_bytes,
                    pdf_path=pdf_path or None,
                    college_name=rendered.settings.get("collegeName"),
                )
                self._mark_delivered(cert)
                item.update(status="success", deliveryStatus=DeliveryStatus.SENT.value)
            except DeliveryError as e:
                logger.warning(f"Certificate {rendered.certificate_id} delivery failed: {e}")
                self._mark_delivery_failed(cert, str(e))
                item.update(status="failed", deliveryStatus=DeliveryStatus.FAILED.value, reason=str(e))
            await self.session.commit()

        return item

    # =========================================================================
    # Resend
    # =========================================================================

    async def resend_single(self, event_id: int, user_id: int, actor_id: Optional[int] = None) -> Certificate:
        """
        Re-deliver one certificate, regenerating the PDF if its file is gone.

        Raises:
            NotFoundError: No certificate, user or event
            ValidationError: The user has no email address
            DeliveryError: Sending failed (failure is recorded first)
            RenderError: Regenerating the missing PDF failed (failure is recorded first)
        """
        cert = await self._get_certificate(event_id, user_id)
        if cert is None:
            raise NotFoundError("Certificate not found. Please generate first.")

        event = await self.session.get(Event, event_id)
        user = await self.session.get(User, user_id)
        if event is None or user is None:
            raise NotFoundError("User or event missing")
        if not user.email:
            raise ValidationError("User has no email address")

        try:
            await self._deliver(cert, event, user)
        except CertificateError as e:
            self._mark_delivery_failed(cert, str(e))
            await self.session.commit()
            raise

        self._mark_delivered(cert)
        await self.session.commit()
        logger.info(f"Resent certificate {cert.certificate_id} for event {event_id} to user {user_id}")

        await HistoryService(self.session).log_certificate_resent(
            event_id, recipient_id=user_id, user_id=actor_id,
            details={"certificateId": cert.certificate_id},
        )
        return cert

    async def resend_failed(self, event_id: int, actor_id: Optional[int] = None) -> dict:
        """
        Retry every failed delivery below the retry ceiling.

        Certificates with retry_count >= CERTIFICATE_MAX_RETRIES are left
        untouched.

        Returns:
            {"success", "total", "sent", "results"} where success and sent are
            both the number of certificates delivered on this pass
        """
        event = await self._get_event(event_id)

        result = await self.session.execute(
            select(Certificate)
            .where(
                Certificate.event_id == event_id,
                Certificate.delivery_status == DeliveryStatus.FAILED.value,
                Certificate.retry_count < self.settings.CERTIFICATE_MAX_RETRIES,
            )
            .order_by(Certificate.id)
        )
        certificates = list(result.scalars().all())

        results = []
        for cert in certificates:
            user = cert.user
            try:
                if not user.email:
                    raise ValidationError("User has no email address")
                await self._deliver(cert, event, user)
                self._mark_delivered(cert)
                results.append({"userId": user.id, "certificateId": cert.certificate_id, "status": "success"})
            except Exception as e:
                logger.warning(f"Retry of certificate {cert.certificate_id} failed: {e}")
                self._mark_delivery_failed(cert, str(e))
                results.append({
                    "userId": user.id,
                    "certificateId": cert.certificate_id,
                    "status": "failed",
                    "reason": str(e),
                })
            await self.session.commit()

        sent = sum(1 for r in results if r["status"] == "success")
        logger.info(f"Resent failed certificates for event {event_id}: {sent}/{len(certificates)} delivered")

        if certificates:
            await HistoryService(self.session).log_certificate_resent(
                event_id, user_id=actor_id,
                details={"total": len(certificates), "sent": sent},
            )

        return {"success": sent, "total": len(certificates), "sent": sent, "results": results}

    async def _deliver(self, cert: Certificate, event: Event, user: User) -> None:
        """Email an existing certificate, re-rendering the PDF if the stored file is missing."""
        pdf_bytes = None
        pdf_path = cert.pdf_path
        if not pdf_path or not os.path.isfile(pdf_path):
            logger.info(f"PDF for certificate {cert.certificate_id} missing, regenerating")
            rendered = await self.render_html(
                event.id,
                event_info(event),
                participant_info(user),
                custom_fields=cert.custom_fields,
                certificate_id=cert.certificate_id,
            )
            pdf_path = str(self.pdf_path_for(event.id, cert.certificate_id))
            pdf_bytes = await self.renderer.render(rendered.html, output_path=pdf_path)
            cert.pdf_path = pdf_path
            cert.template_id = rendered.template_id

        effective = await resolve_effective_settings(self.session, event.id, settings=self.settings)
        await self.mailer.send_certificate(
            to=user.email,
            participant_name=participant_name(participant_info(user)),
            event_name=event.title,
            certificate_id=cert.certificate_id,
            pdf_bytes=pdf_bytes,
            pdf_path=pdf_path,
            college_name=effective.get("collegeName"),
        )

    @staticmethod
    def _mark_delivered(cert: Certificate) -> None:
        cert.delivery_status = DeliveryStatus.SENT.value
        cert.status = CertificateStatus.SENT.value
        cert.email_sent = True
        cert.email_sent_at = datetime.now(timezone.utc)

    @staticmethod
    def _mark_delivery_failed(cert: Certificate, reason: str) -> None:
        cert.delivery_status = DeliveryStatus.FAILED.value
        cert.failure_reason = reason
        cert.retry_count = (cert.retry_count or 0) + 1
        cert.last_attempt_at = datetime.now(timezone.utc)

    # =========================================================================
    # Preview, verification and listing
    # =========================================================================

    async def preview(
        self,
        event_id: Optional[int] = None,
        user_id: Optional[int] = None,
        template_id: Optional[int] = None,
        custom_fields: Optional[dict] = None,
        dummy: bool = False,
    ) -> dict:
        """
        Render certificate HTML without storing anything.

        With dummy=True sample event and participant data are used and no
        ids are needed.

        Raises:
            ValidationError: eventId or userId missing outside dummy mode
            NotFoundError: Unknown event or user
            RenderError: Bad template id or missing template file
        """
        if template_id is not None:
            template_id = validate_template_id(template_id)

        if dummy:
            event = {**DUMMY_EVENT, "event_date": datetime.now(timezone.utc)}
            rendered = await self.render_html(
                event_id, event, dict(DUMMY_PARTICIPANT),
                custom_fields=custom_fields, template_id=template_id,
            )
        else:
            if not event_id or not user_id:
                raise ValidationError("eventId and userId required (unless dummy=true)")
            event = await self.session.get(Event, event_id)
            if event is None:
                raise NotFoundError("Event not found")
            user = await self.session.get(User, user_id)
            if user is None:
                raise NotFoundError("User not found")
            rendered = await self.render_html(
                event_id, event_info(event), participant_info(user),
                custom_fields=custom_fields, template_id=template_id,
            )

        return {
            "html": rendered.html,
            "certificateId": rendered.certificate_id,
            "templateId": rendered.template_id,
        }

    async def verify(self, certificate_id: str) -> Optional[dict]:
        """Public verification payload for a certificate id, or None if unknown."""
        result = await self.session.execute(
            select(Certificate).where(Certificate.certificate_id == certificate_id)
        )
        cert = result.scalar_one_or_none()
        if cert is None:
            return None

        user = cert.user
        event = cert.event
        return {
            "certificateId": cert.certificate_id,
            "participantName": f"{user.first_name or ''} {user.last_name or ''}".strip(),
            "department": user.department,
            "eventTitle": event.title,
            "eventDate": format_date(event.event_date),
            "venue": event.venue,
            "issuedAt": format_date(cert.issued_at),
        }

    async def list_event_certificates(self, event_id: int, limit: int = 100) -> dict:
        """
        Delivery statistics and the most recently updated certificates of an event.

        "sent" counts certificates whose status is sent; "failed" and
        "pending" count delivery states.
        """
        async def count(*criteria) -> int:
            result = await self.session.execute(
                select(func.count(Certificate.id)).where(Certificate.event_id == event_id, *criteria)
            )
            return result.scalar_one()

        total = await count()
        sent = await count(Certificate.status == CertificateStatus.SENT.value)
        failed = await count(Certificate.delivery_status == DeliveryStatus.FAILED.value)
        pending = await count(Certificate.delivery_status == DeliveryStatus.PENDING.value)

        result = await self.session.execute(
            select(Certificate)
            .where(Certificate.event_id == event_id)
            .order_by(desc(Certificate.updated_at), desc(Certificate.id))
            .limit(limit)
        )

        return {
            "stats": {
                "total": total,
                "sent": sent,
                "failed": failed,
                "pending": pending,
                "successRate": (sent / total) * 100 if total else 0,
            },
            "data": list(result.scalars().all()),
        }

    # =========================================================================
    # Settings
    # =========================================================================

    async def get_settings(self, event_id: int) -> dict:
        """Stored settings document (empty when none) and the merged effective settings."""
        await self._get_event(event_id)
        doc = await get_settings_doc(self.session, event_id)
        return {
            "data": doc.to_dict() if doc else {},
            "effective": await resolve_effective_settings(self.session, event_id, settings=self.settings),
        }

    async def update_settings(self, event_id: int, updates: dict, actor_id: Optional[int] = None) -> dict:
        """
        Create or update the settings row for an event.

        Only keys present in updates are written. auto_send_after_event_end is
        mirrored onto the event, which is what the scheduler reads.

        Raises:
            NotFoundError: Unknown event
            ValidationError: Bad template id or more than four signatures
        """
        event = await self._get_event(event_id)

        if updates.get("template_id") is not None:
            try:
                updates["template_id"] = validate_template_id(updates["template_id"])
            except CertificateError as e:
                raise ValidationError(str(e)) from e
        if updates.get("signatures") is not None and len(updates["signatures"]) > MAX_SIGNATURES:
            raise ValidationError(f"At most {MAX_SIGNATURES} signatures are allowed")

        doc = await get_settings_doc(self.session, event_id)
        if doc is None:
            doc = CertificateSettings(event_id=event_id, template_id=1, signatures=[], custom_fields={})
            self.session.add(doc)

        for field in ("template_id", "logo_left", "logo_right", "signatures", "custom_fields",
                      "auto_send_after_event_end"):
            if field in updates:
                value = updates[field]
                if field == "signatures":
                    value = list(value or [])
                elif field == "custom_fields":
                    value = dict(value or {})
                setattr(doc, field, value)

        if updates.get("auto_send_after_event_end") is not None:
            event.auto_send_after_event_end = bool(updates["auto_send_after_event_end"])

        await self.session.commit()
        await self.session.refresh(doc)
        logger.info(f"Updated certificate settings for event {event_id}")

        if actor_id is not None:
            await HistoryService(self.session).log_settings_updated(
                event_id, actor_id, {k: v for k, v in updates.items() if k != "signatures"}
            )

        return {
            "data": doc.to_dict(),
            "effective": await resolve_effective_settings(self.session, event_id, settings=self.settings),
        }

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_event(self, event_id: int) -> Event:
        event = await self.session.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        return event

    async def _get_certificate(self, event_id: int, user_id: int) -> Optional[Certificate]:
        result = await self.session.execute(
            select(Certificate).where(
                Certificate.event_id == event_id,
                Certificate.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _certificate_id_exists(self, candidate: str) -> bool:
        result = await self.session.execute(
            select(Certificate.id).where(Certificate.certificate_id == candidate)
        )
        return result.scalar_one_or_none() is not None
