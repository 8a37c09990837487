"""APScheduler setup for one-shot navigation timers."""

import datetime
import logging

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Create the scheduler that runs tracker timers on the service event loop."""
    return AsyncIOScheduler(timezone=datetime.timezone.utc)


def schedule_once(scheduler, func, delay_seconds: float, job_id: str, name: str) -> Job:
    """Run func once after delay_seconds, replacing any pending job with the same id."""
    run_date = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=delay_seconds)
    return scheduler.add_job(
        func,
        "date",
        run_date=run_date,
        id=job_id,
        name=name,
        replace_existing=True,
        misfire_grace_time=None,
    )


def cancel_job(job: Job | None) -> None:
    """Remove a pending job; already-run or removed jobs are ignored."""
    if job is None:
        return
    try:
        job.remove()
    except JobLookupError:
        logger.debug("Job %s already gone", job.id)
