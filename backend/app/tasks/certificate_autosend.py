"""Certificate auto-send background job.

Finds events that have ended, opted in to automatic delivery and have not
had certificates sent yet, then runs a normal bulk generation for each one.
The events.certificates_sent flag set by the bulk run is what stops an
event from being picked up again.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from sqlalchemy import select
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import get_settings
from app.database import AsyncSessionLocal
from app.models.event import Event
from app.services.certificate_service import CertificateService


logger = logging.getLogger(__name__)


async def find_events_due(session) -> list[tuple[int, str]]:
    """(id, title) of every event due for automatic certificate delivery."""
    result = await session.execute(
        select(Event.id, Event.title)
        .where(
            Event.event_date < datetime.now(timezone.utc),
            Event.auto_send_after_event_end == True,
            Event.certificates_sent == False,
        )
        .order_by(Event.event_date, Event.id)
    )
    return [(row.id, row.title) for row in result.all()]


async def certificate_autosend_job(
    session_factory: Callable = AsyncSessionLocal,
    service_factory: Callable = CertificateService,
) -> dict:
    """
    Generate and email certificates for every event that is due.

    Events are processed one after another, each in its own database
    session. A failure in one event is logged and the job moves on.

    Returns:
        {"matched", "processed", "failed"} counts
    """
    logger.info("Starting certificate auto-send job...")
    start_time = datetime.now(timezone.utc)

    async with session_factory() as session:
        events = await find_events_due(session)

    if not events:
        logger.info("No events pending certificate auto-send")
        return {"matched": 0, "processed": 0, "failed": 0}

    logger.info("Found %d events pending certificate auto-send", len(events))

    processed = 0
    failed = 0
    for event_id, title in events:
        try:
            async with session_factory() as session:
                service = service_factory(session)
                result = await service.generate_for_event(
                    event_id,
                    send_email=True,
                    save_pdf=True,
                    force_regenerate=False,
                )
            processed += 1
            statuses = [r.get("status") for r in result.get("results", [])]
            logger.info(
                "Auto-send for event %d (%s): %d attendees, %d sent, %d failed, %d skipped",
                event_id, title, result.get("total", 0),
                statuses.count("success"), statuses.count("failed"), statuses.count("skipped"),
            )
        except Exception as e:
            failed += 1
            logger.error("Certificate auto-send failed for event %d (%s): %s", event_id, title, str(e))

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Certificate auto-send completed: %d processed, %d failed in %.2f seconds",
        processed, failed, duration
    )
    return {"matched": len(events), "processed": processed, "failed": failed}


def schedule_certificate_autosend_job(scheduler: AsyncIOScheduler, hours: Optional[int] = None):
    """Register the certificate auto-send job with the scheduler."""
    interval_hours = hours or get_settings().CERTIFICATE_AUTOSEND_INTERVAL_HOURS

    scheduler.add_job(
        certificate_autosend_job,
        'interval',
        hours=interval_hours,
        id='certificate_autosend',
        name='Certificate Auto-Send',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("Scheduled certificate auto-send job to run every %d hour(s)", interval_hours)
