"""Background job scheduler using APScheduler.

One scheduler per process. Deployments run it either inside the web
process (see app.main lifespan) or in the standalone run_scheduler.py
worker, never both, so that each job has a single runner.
"""
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance, creating it if necessary."""
    global scheduler
    if scheduler is None:
        jobstores = {
            'default': MemoryJobStore()
        }
        executors = {
            'default': AsyncIOExecutor()
        }
        job_defaults = {
            'coalesce': True,  # Combine missed job runs into one
            'max_instances': 1,  # Only one instance of a job at a time
            'misfire_grace_time': 300  # 5 minutes grace period for misfired jobs
        }

        scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone='UTC'
        )

        logger.info("Scheduler created with UTC timezone")

    return scheduler


def register_jobs(sched: AsyncIOScheduler) -> None:
    """Add every periodic job to the scheduler."""
    from app.tasks.certificate_autosend import schedule_certificate_autosend_job
    from app.tasks.session_cleanup import schedule_session_cleanup_job

    schedule_certificate_autosend_job(sched)
    schedule_session_cleanup_job(sched)


async def start_scheduler():
    """Start the scheduler and register all jobs."""
    sched = get_scheduler()

    if sched.running:
        logger.warning("Scheduler is already running")
        return

    register_jobs(sched)
    sched.start()
    logger.info("Scheduler started with %d jobs", len(sched.get_jobs()))

    for job in sched.get_jobs():
        logger.info("  - Job: %s, Next run: %s", job.id, job.next_run_time)


async def stop_scheduler():
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
    scheduler = None


def list_jobs() -> list[dict]:
    """List all scheduled jobs and their status."""
    sched = get_scheduler()
    jobs = []
    for job in sched.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if getattr(job, "next_run_time", None) else None,
            "trigger": str(job.trigger),
        })
    return jobs
