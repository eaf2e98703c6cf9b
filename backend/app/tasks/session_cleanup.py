"""Session cleanup background job - removes expired and logged-out sessions."""
import logging
from datetime import datetime, timezone
from typing import Callable
from sqlalchemy import delete
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.database import AsyncSessionLocal
from app.models.session import Session


logger = logging.getLogger(__name__)


async def session_cleanup_job(session_factory: Callable = AsyncSessionLocal) -> int:
    """
    Delete sessions that expired or were logged out.

    Returns:
        Number of sessions deleted
    """
    logger.info("Starting session cleanup job...")
    start_time = datetime.now(timezone.utc)

    async with session_factory() as session:
        delete_result = await session.execute(
            delete(Session).where(
                (Session.expires_at < datetime.now(timezone.utc)) |
                (Session.is_active == False)
            )
        )
        await session.commit()

    deleted_count = delete_result.rowcount or 0
    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Session cleanup completed: %d sessions deleted in %.2f seconds",
        deleted_count, duration
    )
    return deleted_count


def schedule_session_cleanup_job(scheduler: AsyncIOScheduler):
    """Register the session cleanup job with the scheduler."""
    scheduler.add_job(
        session_cleanup_job,
        'interval',
        hours=1,
        id='session_cleanup',
        name='Session Cleanup',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    logger.info("Scheduled session cleanup job to run every hour")
