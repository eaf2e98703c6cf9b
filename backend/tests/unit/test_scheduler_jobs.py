"""
Unit tests for the background jobs: certificate auto-send and session cleanup.
"""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock, MagicMock

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event
from app.models.session import Session
from app.models.user import User
from app.services.certificate_service import CertificateService
from app.tasks.certificate_autosend import (
    certificate_autosend_job,
    find_events_due,
    schedule_certificate_autosend_job,
)
from app.tasks.session_cleanup import session_cleanup_job, schedule_session_cleanup_job
from tests.conftest import mark_present


def make_event(creator: User, title: str, days_ago: int, auto_send: bool = True, sent: bool = False) -> Event:
    return Event(
        title=title,
        venue="Hall",
        organiser_name="Club",
        event_date=datetime.now(timezone.utc) - timedelta(days=days_ago),
        created_by_id=creator.id,
        auto_send_after_event_end=auto_send,
        certificates_sent=sent,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestCertificateAutoSend:
    """Test the hourly certificate auto-send job."""

    async def test_find_events_due(self, db_session: AsyncSession, organiser_user: User):
        due = make_event(organiser_user, "Ended", days_ago=1)
        db_session.add_all([
            due,
            make_event(organiser_user, "Upcoming", days_ago=-3),
            make_event(organiser_user, "Already sent", days_ago=2, sent=True),
            make_event(organiser_user, "Not opted in", days_ago=2, auto_send=False),
        ])
        await db_session.commit()

        events = await find_events_due(db_session)

        assert events == [(due.id, "Ended")]

    async def test_invokes_bulk_generation_once_per_event(
        self, db_session: AsyncSession, session_factory, organiser_user: User
    ):
        first = make_event(organiser_user, "First", days_ago=2)
        second = make_event(organiser_user, "Second", days_ago=1)
        db_session.add_all([first, second])
        await db_session.commit()

        service = MagicMock()
        service.generate_for_event = AsyncMock(return_value={"success": True, "total": 0, "results": []})

        summary = await certificate_autosend_job(session_factory=session_factory, service_factory=lambda s: service)

        assert summary == {"matched": 2, "processed": 2, "failed": 0}
        assert service.generate_for_event.await_count == 2
        calls = service.generate_for_event.await_args_list
        assert [c.args[0] for c in calls] == [first.id, second.id]
        for c in calls:
            assert c.kwargs == {"send_email": True, "save_pdf": True, "force_regenerate": False}

    async def test_failure_in_one_event_continues(
        self, db_session: AsyncSession, session_factory, organiser_user: User
    ):
        db_session.add_all([
            make_event(organiser_user, "Broken", days_ago=2),
            make_event(organiser_user, "Fine", days_ago=1),
        ])
        await db_session.commit()

        service = MagicMock()
        service.generate_for_event = AsyncMock(side_effect=[
            RuntimeError("database went away"),
            {"success": True, "total": 1, "results": [{"status": "success"}]},
        ])

        summary = await certificate_autosend_job(session_factory=session_factory, service_factory=lambda s: service)

        assert summary == {"matched": 2, "processed": 1, "failed": 1}

    async def test_no_events_due(self, session_factory):
        service_factory = MagicMock()

        summary = await certificate_autosend_job(session_factory=session_factory, service_factory=service_factory)

        assert summary == {"matched": 0, "processed": 0, "failed": 0}
        service_factory.assert_not_called()

    async def test_sent_event_not_picked_up_again(
        self, db_session: AsyncSession, session_factory, organiser_user: User, participant_user: User,
        test_settings
    ):
        event = make_event(organiser_user, "Ended", days_ago=1)
        db_session.add(event)
        await db_session.commit()
        event_id = event.id
        await mark_present(db_session, event, participant_user)

        renderer = MagicMock()
        renderer.render = AsyncMock(return_value=b"%PDF-1.4")
        mailer = MagicMock()
        mailer.send_certificate = AsyncMock(return_value="msg-id")

        def service_factory(session):
            return CertificateService(session, renderer=renderer, mailer=mailer, settings=test_settings)

        first = await certificate_autosend_job(session_factory=session_factory, service_factory=service_factory)
        second = await certificate_autosend_job(session_factory=session_factory, service_factory=service_factory)

        assert first["processed"] == 1
        assert second["matched"] == 0
        mailer.send_certificate.assert_awaited_once()

        async with session_factory() as session:
            stored = await session.get(Event, event_id)
            assert stored.certificates_sent is True

    async def test_job_registration(self):
        scheduler = AsyncIOScheduler(timezone="UTC")

        schedule_certificate_autosend_job(scheduler, hours=1)
        schedule_session_cleanup_job(scheduler)

        job = scheduler.get_job("certificate_autosend")
        assert job is not None
        assert job.trigger.interval == timedelta(hours=1)
        assert job.max_instances == 1
        assert job.coalesce is True
        assert scheduler.get_job("session_cleanup") is not None


@pytest.mark.unit
@pytest.mark.asyncio
class TestSessionCleanup:
    """Test removal of expired and logged-out sessions."""

    async def test_removes_expired_and_inactive(
        self, db_session: AsyncSession, session_factory, participant_user: User
    ):
        now = datetime.now(timezone.utc)
        db_session.add_all([
            Session(token_hash="a" * 64, user_id=participant_user.id, expires_at=now + timedelta(hours=1)),
            Session(token_hash="b" * 64, user_id=participant_user.id, expires_at=now - timedelta(hours=1)),
            Session(token_hash="c" * 64, user_id=participant_user.id, expires_at=now + timedelta(hours=1),
                    is_active=False),
        ])
        await db_session.commit()

        deleted = await session_cleanup_job(session_factory=session_factory)

        assert deleted == 2
        async with session_factory() as session:
            remaining = (await session.execute(select(Session.token_hash))).scalars().all()
        assert remaining == ["a" * 64]
