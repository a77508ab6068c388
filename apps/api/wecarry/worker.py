"""
Background worker for processing scheduled jobs.

Usage:
    python -m wecarry.worker

The worker polls for pending jobs and processes them. It also installs the
event dispatcher, since job handlers commit work that emits events.
"""

import asyncio
import logging
import os
from datetime import datetime

from wecarry.core.config import settings
from wecarry.core.structured_logging import build_log_context
from wecarry.db.enums import JobType
from wecarry.db.session import SessionLocal
from wecarry.db.types import utcnow
from wecarry.events.listeners import build_default_dispatcher
from wecarry.events.outbox import set_dispatcher
from wecarry.jobs.registry import resolve_job_handler
from wecarry.services import job_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Worker configuration
POLL_INTERVAL_SECONDS = int(os.getenv("WORKER_POLL_INTERVAL", "10"))
BATCH_SIZE = int(os.getenv("WORKER_BATCH_SIZE", "10"))

# Maintenance jobs scheduled at most once per day
DAILY_JOBS = (JobType.FILE_CLEANUP, JobType.TOKEN_CLEANUP)


async def process_job(db, job) -> None:
    """Process a single job based on its type."""
    logger.info("Processing job %s (type=%s, attempt=%s)", job.id, job.job_type, job.attempts)
    handler = resolve_job_handler(job.job_type)
    await handler(db, job)


def schedule_daily_jobs(db, now: datetime | None = None) -> int:
    """Queue today's maintenance jobs. Returns how many were new."""
    day = (now or utcnow()).date().isoformat()
    scheduled = 0
    for job_type in DAILY_JOBS:
        if job_service.schedule_job_once(db, job_type, {}, f"{job_type.value}:{day}"):
            scheduled += 1
    return scheduled


async def run_pending_jobs(db, limit: int = BATCH_SIZE) -> int:
    """Run one batch of due jobs. Returns how many completed."""
    jobs = job_service.get_pending_jobs(db, limit=limit)
    if jobs:
        logger.info("Found %d pending jobs", len(jobs))

    completed = 0
    for job in jobs:
        try:
            job_service.mark_job_running(db, job)
            await process_job(db, job)
            job_service.mark_job_completed(db, job)
            completed += 1
            logger.info("Job %s completed successfully", job.id)
        except Exception as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.error(
                "Job %s failed: %s",
                job.id,
                type(e).__name__,
                extra=build_log_context(event=job.job_type, route="worker", method="background"),
            )
    return completed


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s, env: %s)",
        POLL_INTERVAL_SECONDS,
        BATCH_SIZE,
        settings.ENV,
    )
    set_dispatcher(build_default_dispatcher())

    while True:
        with SessionLocal() as db:
            try:
                schedule_daily_jobs(db)
                await run_pending_jobs(db)
            except Exception:
                logger.exception(
                    "Error in worker loop",
                    extra=build_log_context(route="worker", method="background"),
                )

        await asyncio.sleep(POLL_INTERVAL_SECONDS)


if __name__ == "__main__":
    asyncio.run(worker_loop())
