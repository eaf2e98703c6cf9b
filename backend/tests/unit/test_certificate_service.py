"""
Unit tests for CertificateService.

The PDF renderer and the mailer are replaced with mocks; templates,
settings resolution and the database are real.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DeliveryError, InvalidTemplateId, NotFoundError, RenderError, ValidationError,
)
from app.models.attendance import Attendance, AttendanceStatus
from app.models.certificate import Certificate, CertificateSettings, DeliveryStatus, CertificateStatus
from app.models.event import Event
from app.models.user import User
from app.models.user_history import UserHistory, HistoryAction
from app.services.certificate_service import CertificateService, build_placeholder_data
from tests.conftest import create_user, mark_present


PDF_BYTES = b"%PDF-1.4 test document"


def make_service(db_session, test_settings, render_side_effect=None, send_side_effect=None):
    renderer = MagicMock()
    renderer.render = AsyncMock(return_value=PDF_BYTES, side_effect=render_side_effect)
    mailer = MagicMock()
    mailer.send_certificate = AsyncMock(return_value="msg-id", side_effect=send_side_effect)
    service = CertificateService(db_session, renderer=renderer, mailer=mailer, settings=test_settings)
    return service, renderer, mailer


async def add_certificate(db_session, event_id, user_id, certificate_id, pdf_path="", **fields) -> Certificate:
    cert = Certificate(
        certificate_id=certificate_id,
        event_id=event_id,
        user_id=user_id,
        template_id=1,
        pdf_path=pdf_path,
        custom_fields={},
        **fields,
    )
    db_session.add(cert)
    await db_session.commit()
    return cert


@pytest.mark.unit
class TestPlaceholderData:
    """Test assembling token values."""

    def test_event_and_participant_fields(self):
        settings = {"collegeName": "College", "sig1Url": "https://example.com/1.png", "customFields": {}}
        data = build_placeholder_data(
            settings,
            {"title": "Hackathon", "venue": "Hall", "organiser_name": "Club"},
            {"full_name": "Priya Sharma", "department": "CSE"},
            "CERT-20240212-07-4882",
            issued_date="12 February 2024",
        )
        assert data["participantName"] == "Priya Sharma"
        assert data["eventTitle"] == "Hackathon"
        assert data["department"] == "CSE"
        assert data["collegeName"] == "College"
        assert data["issuedDate"] == "12 February 2024"
        assert data["sig1Display"] == "block"
        assert data["sig2Display"] == "none"
        assert "customFields" not in data

    def test_custom_fields_win(self):
        data = build_placeholder_data(
            {"customFields": {"eventTitle": "Renamed", "track": "AI"}},
            {"title": "Hackathon"},
            {"first_name": "Priya", "last_name": ""},
            "CERT-1",
        )
        assert data["eventTitle"] == "Renamed"
        assert data["track"] == "AI"
        assert data["participantName"] == "Priya"


@pytest.mark.unit
@pytest.mark.asyncio
class TestGenerateForEvent:
    """Test bulk generation over present attendees."""

    async def test_no_present_attendees(self, db_session: AsyncSession, active_event: Event, test_settings):
        service, renderer, _ = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id)

        assert result["success"] is False
        assert result["total"] == 0
        assert result["results"] == []
        renderer.render.assert_not_awaited()

    async def test_unknown_event(self, db_session: AsyncSession, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(NotFoundError):
            await service.generate_for_event(99999)

    async def test_already_sent_is_skipped_without_render(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await mark_present(db_session, active_event, participant_user)
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            delivery_status=DeliveryStatus.SENT.value, status=CertificateStatus.SENT.value,
        )
        service, renderer, mailer = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id)

        assert result["success"] is True
        assert result["results"] == [
            {"userId": participant_user.id, "status": "skipped", "reason": "Already sent"}
        ]
        renderer.render.assert_not_awaited()
        mailer.send_certificate.assert_not_awaited()

    async def test_force_regenerate_resends_sent(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await mark_present(db_session, active_event, participant_user)
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            delivery_status=DeliveryStatus.SENT.value,
        )
        service, renderer, mailer = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id, force_regenerate=True)

        assert result["results"][0]["status"] == "success"
        # The existing id is kept on regeneration
        assert result["results"][0]["certificateId"] == "CERT-20240212-01-1111"
        renderer.render.assert_awaited_once()
        mailer.send_certificate.assert_awaited_once()

    async def test_partial_failure(self, db_session: AsyncSession, active_event: Event, test_settings):
        event_id = active_event.id
        users = [
            await create_user(db_session, f"attendee{i}@test.com", f"Attendee{i}")
            for i in range(3)
        ]
        user_ids = [u.id for u in users]
        await mark_present(db_session, active_event, *users)

        service, renderer, mailer = make_service(
            db_session, test_settings,
            send_side_effect=["msg-1", DeliveryError("SendGrid returned status 500"), "msg-3"],
        )

        result = await service.generate_for_event(event_id)

        assert result["success"] is True
        assert result["total"] == 3
        assert [r["status"] for r in result["results"]] == ["success", "failed", "success"]
        assert result["results"][1]["reason"] == "SendGrid returned status 500"
        assert renderer.render.await_count == 3

        event = await db_session.get(Event, event_id)
        assert event.certificates_sent is True
        assert event.certificates_sent_at is not None

        rows = (await db_session.execute(
            select(Certificate).where(Certificate.event_id == event_id).order_by(Certificate.user_id)
        )).scalars().all()
        by_user = {c.user_id: c for c in rows}
        assert by_user[user_ids[0]].delivery_status == DeliveryStatus.SENT.value
        assert by_user[user_ids[0]].email_sent is True
        failed = by_user[user_ids[1]]
        assert failed.delivery_status == DeliveryStatus.FAILED.value
        assert failed.retry_count == 1
        assert failed.failure_reason == "SendGrid returned status 500"
        assert failed.last_attempt_at is not None

        history = (await db_session.execute(
            select(UserHistory).where(UserHistory.action == HistoryAction.GENERATED_CERTIFICATES.value)
        )).scalars().all()
        assert len(history) == 1
        assert history[0].details["success"] == 2
        assert history[0].details["failed"] == 1

    async def test_missing_user_reported_as_failed(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await mark_present(db_session, active_event, participant_user)
        db_session.add(Attendance(event_id=active_event.id, user_id=424242, status=AttendanceStatus.PRESENT.value))
        await db_session.commit()
        service, renderer, _ = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id)

        assert result["total"] == 2
        assert len(result["results"]) == 2
        assert result["results"][1] == {"userId": 424242, "status": "failed", "reason": "User not found"}
        renderer.render.assert_awaited_once()

    async def test_render_failure_does_not_stop_batch(
        self, db_session: AsyncSession, active_event: Event, test_settings
    ):
        event_id = active_event.id
        users = [
            await create_user(db_session, f"attendee{i}@test.com", f"Attendee{i}")
            for i in range(2)
        ]
        user_ids = [u.id for u in users]
        await mark_present(db_session, active_event, *users)

        service, _, mailer = make_service(
            db_session, test_settings,
            render_side_effect=[RenderError("PDF generation failed: Target closed"), PDF_BYTES],
        )

        result = await service.generate_for_event(event_id)

        assert result["results"][0] == {
            "userId": user_ids[0], "status": "failed", "reason": "PDF generation failed: Target closed",
        }
        assert result["results"][1]["status"] == "success"
        assert mailer.send_certificate.await_count == 1

        event = await db_session.get(Event, event_id)
        assert event.certificates_sent is True

    async def test_without_email(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await mark_present(db_session, active_event, participant_user)
        service, _, mailer = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id, send_email=False)

        item = result["results"][0]
        assert item["status"] == "generated"
        assert item["deliveryStatus"] == DeliveryStatus.PENDING.value
        mailer.send_certificate.assert_not_awaited()

    async def test_pdf_saved_under_event_directory(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await mark_present(db_session, active_event, participant_user)
        service, renderer, _ = make_service(db_session, test_settings)

        result = await service.generate_for_event(active_event.id)

        certificate_id = result["results"][0]["certificateId"]
        expected = service.pdf_path_for(active_event.id, certificate_id)
        assert renderer.render.await_args.kwargs["output_path"] == str(expected)
        assert str(expected).endswith(f"{active_event.id}/{certificate_id}.pdf")

    async def test_event_settings_used_for_render(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        db_session.add(CertificateSettings(
            event_id=active_event.id,
            template_id=3,
            signatures=[],
            custom_fields={},
        ))
        await db_session.commit()
        await mark_present(db_session, active_event, participant_user)
        service, renderer, _ = make_service(db_session, test_settings)

        await service.generate_for_event(active_event.id)

        html = renderer.render.await_args.args[0]
        assert "Priya Sharma" in html
        assert "AI Innovation Summit" in html
        assert "{{" not in html
        cert = (await db_session.execute(select(Certificate))).scalar_one()
        assert cert.template_id == 3


@pytest.mark.unit
@pytest.mark.asyncio
class TestResend:
    """Test resend paths and the retry ceiling."""

    async def test_resend_failed_respects_retry_ceiling(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        other = await create_user(db_session, "maxed@test.com", "Maxed")
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            delivery_status=DeliveryStatus.FAILED.value, retry_count=1,
        )
        await add_certificate(
            db_session, active_event.id, other.id, "CERT-20240212-02-2222",
            delivery_status=DeliveryStatus.FAILED.value, retry_count=test_settings.CERTIFICATE_MAX_RETRIES,
        )
        service, _, mailer = make_service(db_session, test_settings)

        result = await service.resend_failed(active_event.id)

        assert result["success"] == 1
        assert result["total"] == 1
        assert result["sent"] == 1
        assert result["results"][0]["certificateId"] == "CERT-20240212-01-1111"
        mailer.send_certificate.assert_awaited_once()

        maxed = (await db_session.execute(
            select(Certificate).where(Certificate.certificate_id == "CERT-20240212-02-2222")
        )).scalar_one()
        assert maxed.delivery_status == DeliveryStatus.FAILED.value
        assert maxed.retry_count == test_settings.CERTIFICATE_MAX_RETRIES

    async def test_resend_failed_records_new_failure(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            delivery_status=DeliveryStatus.FAILED.value, retry_count=1,
        )
        service, _, _ = make_service(db_session, test_settings, send_side_effect=DeliveryError("still down"))

        result = await service.resend_failed(active_event.id)

        assert result["success"] == 0
        assert result["sent"] == 0
        assert result["results"][0]["status"] == "failed"
        cert = (await db_session.execute(select(Certificate))).scalar_one()
        assert cert.retry_count == 2
        assert cert.failure_reason == "still down"

    async def test_resend_single_missing_certificate(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(NotFoundError):
            await service.resend_single(active_event.id, participant_user.id)

    async def test_resend_single_regenerates_missing_pdf(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            delivery_status=DeliveryStatus.FAILED.value, retry_count=1,
            pdf_path="/nonexistent/cert.pdf",
        )
        service, renderer, mailer = make_service(db_session, test_settings)

        cert = await service.resend_single(active_event.id, participant_user.id)

        renderer.render.assert_awaited_once()
        assert mailer.send_certificate.await_args.kwargs["pdf_bytes"] == PDF_BYTES
        assert mailer.send_certificate.await_args.kwargs["certificate_id"] == "CERT-20240212-01-1111"
        assert cert.delivery_status == DeliveryStatus.SENT.value
        assert cert.status == CertificateStatus.SENT.value
        assert cert.pdf_path == str(service.pdf_path_for(active_event.id, "CERT-20240212-01-1111"))

    async def test_resend_single_uses_stored_pdf(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings, tmp_path
    ):
        pdf_path = tmp_path / "stored.pdf"
        pdf_path.write_bytes(PDF_BYTES)
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            pdf_path=str(pdf_path),
        )
        service, renderer, mailer = make_service(db_session, test_settings)

        await service.resend_single(active_event.id, participant_user.id)

        renderer.render.assert_not_awaited()
        assert mailer.send_certificate.await_args.kwargs["pdf_path"] == str(pdf_path)

    async def test_resend_single_failure_recorded_and_raised(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings, tmp_path
    ):
        pdf_path = tmp_path / "stored.pdf"
        pdf_path.write_bytes(PDF_BYTES)
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111",
            pdf_path=str(pdf_path),
        )
        service, _, _ = make_service(db_session, test_settings, send_side_effect=DeliveryError("rejected"))

        with pytest.raises(DeliveryError):
            await service.resend_single(active_event.id, participant_user.id)

        cert = (await db_session.execute(select(Certificate))).scalar_one()
        assert cert.delivery_status == DeliveryStatus.FAILED.value
        assert cert.retry_count == 1
        assert cert.failure_reason == "rejected"


@pytest.mark.unit
@pytest.mark.asyncio
class TestPreviewVerifyList:
    """Test preview, public verification and listing."""

    async def test_dummy_preview(self, db_session: AsyncSession, test_settings):
        service, renderer, _ = make_service(db_session, test_settings)

        result = await service.preview(dummy=True, template_id=5, custom_fields={"eventTitle": "Custom Title"})

        assert result["templateId"] == 5
        assert "John Doe" in result["html"]
        assert "Custom Title" in result["html"]
        assert result["certificateId"].startswith("CERT-")
        renderer.render.assert_not_awaited()

    async def test_preview_for_participant(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        service, _, _ = make_service(db_session, test_settings)

        result = await service.preview(event_id=active_event.id, user_id=participant_user.id)

        assert "Priya Sharma" in result["html"]
        assert result["templateId"] == 1
        # Previews never store anything
        assert (await db_session.execute(select(Certificate))).first() is None

    async def test_preview_requires_ids(self, db_session: AsyncSession, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(ValidationError):
            await service.preview(event_id=None, user_id=None)

    async def test_preview_invalid_template(self, db_session: AsyncSession, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(InvalidTemplateId):
            await service.preview(dummy=True, template_id=9)

    async def test_verify_known_certificate(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        await add_certificate(db_session, active_event.id, participant_user.id, "CERT-20240212-01-1111")
        service, _, _ = make_service(db_session, test_settings)

        data = await service.verify("CERT-20240212-01-1111")

        assert data["certificateId"] == "CERT-20240212-01-1111"
        assert data["participantName"] == "Priya Sharma"
        assert data["department"] == "B.Tech CSE"
        assert data["eventTitle"] == "AI Innovation Summit"
        assert data["venue"] == "Main Auditorium"

    async def test_verify_unknown_certificate(self, db_session: AsyncSession, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        assert await service.verify("CERT-00000000-00-0000") is None

    async def test_list_stats(
        self, db_session: AsyncSession, active_event: Event, participant_user: User, test_settings
    ):
        users = [await create_user(db_session, f"u{i}@test.com", f"U{i}") for i in range(3)]
        await add_certificate(
            db_session, active_event.id, participant_user.id, "CERT-A",
            status=CertificateStatus.SENT.value, delivery_status=DeliveryStatus.SENT.value,
        )
        await add_certificate(
            db_session, active_event.id, users[0].id, "CERT-B",
            status=CertificateStatus.SENT.value, delivery_status=DeliveryStatus.SENT.value,
        )
        await add_certificate(
            db_session, active_event.id, users[1].id, "CERT-C",
            delivery_status=DeliveryStatus.FAILED.value,
        )
        await add_certificate(
            db_session, active_event.id, users[2].id, "CERT-D",
            delivery_status=DeliveryStatus.PENDING.value,
        )
        service, _, _ = make_service(db_session, test_settings)

        result = await service.list_event_certificates(active_event.id)

        assert result["stats"] == {
            "total": 4, "sent": 2, "failed": 1, "pending": 1, "successRate": 50.0,
        }
        assert len(result["data"]) == 4


@pytest.mark.unit
@pytest.mark.asyncio
class TestSettingsUpdate:
    """Test creating and updating per-event settings."""

    async def test_create_and_mirror_auto_send(
        self, db_session: AsyncSession, active_event: Event, organiser_user: User, test_settings
    ):
        service, _, _ = make_service(db_session, test_settings)

        result = await service.update_settings(
            active_event.id,
            {
                "template_id": 4,
                "signatures": [{"name": "Dr. One", "title": "Dean", "image_url": "https://example.com/1.png"}],
                "auto_send_after_event_end": True,
            },
            actor_id=organiser_user.id,
        )

        assert result["data"]["templateId"] == 4
        assert result["effective"]["templateId"] == 4
        assert result["effective"]["sig1Name"] == "Dr. One"
        assert result["effective"]["sig1Url"] == "https://example.com/1.png"
        event = await db_session.get(Event, active_event.id)
        assert event.auto_send_after_event_end is True

    async def test_only_sent_keys_change(self, db_session: AsyncSession, active_event: Event, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        await service.update_settings(active_event.id, {"template_id": 2, "logo_left": "left.png"})

        result = await service.update_settings(active_event.id, {"logo_right": "right.png"})

        assert result["data"]["templateId"] == 2
        assert result["data"]["logoLeft"] == "left.png"
        assert result["data"]["logoRight"] == "right.png"

    async def test_too_many_signatures(self, db_session: AsyncSession, active_event: Event, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(ValidationError):
            await service.update_settings(active_event.id, {"signatures": [{"name": str(i)} for i in range(5)]})

    async def test_invalid_template_id(self, db_session: AsyncSession, active_event: Event, test_settings):
        service, _, _ = make_service(db_session, test_settings)
        with pytest.raises(ValidationError):
            await service.update_settings(active_event.id, {"template_id": 8})
