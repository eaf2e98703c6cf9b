"""Background tasks and job scheduler."""
from app.tasks.scheduler import (
    get_scheduler,
    start_scheduler,
    stop_scheduler,
    list_jobs,
)
from app.tasks.certificate_autosend import certificate_autosend_job
from app.tasks.session_cleanup import session_cleanup_job

__all__ = [
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "list_jobs",
    "certificate_autosend_job",
    "session_cleanup_job",
]
